"""Content-derived identifiers for canonical events."""
import hashlib
import re
from typing import Optional

from processor.models import CanonicalEvent

ID_DIGEST_LENGTH = 12
ID_DELIMITER = "|"


def _coordinate_text(value: Optional[float]) -> str:
    """Serialize a coordinate for hashing; integral floats drop the '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def assign_id(event: CanonicalEvent) -> str:
    """
    Build a stable identifier from source, date, location and coordinates.

    Title, description and url are excluded so enriching those fields keeps
    the same row identity across syncs. The digest is truncated, so
    uniqueness is not guaranteed.

    Args:
        event: CanonicalEvent to identify

    Returns:
        Identifier of the form ``<source>_<12 hex chars>``
    """
    composite = ID_DELIMITER.join([
        event.source or "",
        event.date or "",
        event.location or "",
        _coordinate_text(event.latitude),
        _coordinate_text(event.longitude),
    ])

    digest = hashlib.sha1(composite.encode("utf-8")).hexdigest()[:ID_DIGEST_LENGTH]
    prefix = re.sub(r"\s+", "_", event.source or "unknown")

    return f"{prefix}_{digest}"
