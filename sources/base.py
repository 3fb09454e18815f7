"""Shared plumbing for provider adapters."""
import logging
import math
from datetime import datetime
from typing import Any, Iterable, List, Optional

import requests

from processor.errors import MalformedRecord, SourceUnavailable
from processor.models import (
    DEFAULT_TIME,
    UNKNOWN_LOCATION,
    UNKNOWN_SOURCE,
    CanonicalEvent,
    Casualties,
    FetchOutcome,
    SourceResult,
)

logger = logging.getLogger(__name__)

DATE_FORMATS = [
    '%Y-%m-%d',                 # ISO 8601 date
    '%Y-%m-%dT%H:%M:%S%z',      # ISO 8601 timestamp with offset
    '%Y-%m-%dT%H:%M:%S.%f%z',   # with fractional seconds
    '%Y-%m-%dT%H:%M:%S',        # naive timestamp
    '%Y-%m-%d %H:%M:%S',
    '%Y/%m/%d',
]


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a provider date to YYYY-MM-DD.

    Args:
        value: Date string in one of the supported formats

    Returns:
        ISO date string or None if parsing fails
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
        except ValueError:
            continue

    return None


def to_float(value: Any) -> Optional[float]:
    """Coerce a numeric or numeric string value, returning None when unusable or non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    text = str(value).strip().replace(',', '')
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return default


def build_event(
    *,
    date: Optional[str],
    source: str,
    location: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    time: Optional[str] = None,
    event_type: str = "",
    title: Optional[str] = None,
    description: Optional[str] = None,
    url: Optional[str] = None,
    casualties: Optional[Casualties] = None,
) -> CanonicalEvent:
    """Build a CanonicalEvent with the contract defaults applied."""
    return CanonicalEvent(
        date=normalize_date(date),
        time=time or DEFAULT_TIME,
        location=location or UNKNOWN_LOCATION,
        latitude=latitude,
        longitude=longitude,
        source=source or UNKNOWN_SOURCE,
        event_type=event_type,
        title=title,
        description=description,
        url=url,
        casualties=casualties,
    )


class SourceAdapter:
    """
    Base class for provider adapters.

    Subclasses implement ``_fetch_records`` (network call, returns raw
    records) and ``_map_record`` (raw record to CanonicalEvent). ``fetch``
    makes a single attempt and never raises.
    """

    SOURCE_NAME = UNKNOWN_SOURCE
    KNOWN_UNSTABLE = False

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Initialize the adapter.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.SOURCE_NAME

    def fetch(self) -> FetchOutcome:
        """
        Fetch and normalize provider records.

        Returns:
            FetchOutcome carrying either results or a failure reason
        """
        try:
            records = self._fetch_records()
        except (SourceUnavailable, requests.RequestException, ValueError) as e:
            logger.error(f"{self.name} fetch error: {e}")
            return FetchOutcome(source=self.name, error=str(e))

        results = self._map_records(records)
        logger.info(f"{self.name} returned {len(results)} events")
        return FetchOutcome(source=self.name, results=results)

    def _map_records(self, records: Iterable[Any]) -> List[SourceResult]:
        results = []
        for record in records:
            try:
                event = self._map_record(record)
            except (MalformedRecord, KeyError, TypeError, AttributeError, ValueError, OverflowError) as e:
                logger.debug(f"{self.name} dropped record: {e}")
                continue
            results.append(SourceResult(source=self.name, event=event))
        return results

    def _get_json(self, url: str, **kwargs) -> Any:
        """GET a JSON document, raising SourceUnavailable on non-success status."""
        response = self.session.get(url, timeout=self.timeout, **kwargs)
        if not response.ok:
            raise SourceUnavailable(
                f"{self.name} request failed: {response.status_code}"
            )
        return response.json()

    def _fetch_records(self) -> Iterable[Any]:
        raise NotImplementedError

    def _map_record(self, record: Any) -> CanonicalEvent:
        raise NotImplementedError
