"""Exceptions raised by the event sync pipeline."""


class SyncError(Exception):
    """Base class for pipeline errors."""


class SourceUnavailable(SyncError):
    """A provider call failed or returned an unusable payload."""


class MalformedRecord(SyncError):
    """A provider record lacks a required field."""


class StoreStructureMissing(SyncError):
    """The target workbook, sheet or header row does not exist."""


class ConfigurationUnresolved(SyncError):
    """No usable store location could be resolved."""


class IndexReloadFailed(SyncError):
    """The datasheet index did not accept the reload signal."""
