"""Data models for event aggregation and sync."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

DEFAULT_TIME = "12:00"
UNKNOWN_LOCATION = "Unknown Location"
UNKNOWN_SOURCE = "Unknown Source"


@dataclass(frozen=True)
class Casualties:
    """Killed/injured counts attached to casualty-type events."""
    killed: int = 0
    injured: int = 0


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized event shared by every source adapter."""
    date: Optional[str]
    time: str = DEFAULT_TIME
    location: str = UNKNOWN_LOCATION
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: str = UNKNOWN_SOURCE
    event_type: str = ""
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    casualties: Optional[Casualties] = None


@dataclass(frozen=True)
class SourceResult:
    """One canonical event tagged with the adapter that produced it."""
    source: str
    event: CanonicalEvent


@dataclass
class FetchOutcome:
    """Result of a single adapter invocation.

    A successful fetch may still carry no results; ``error`` is only set
    when the provider could not be reached or returned unusable data.
    """
    source: str
    results: List[SourceResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class EventFilters:
    """Optional read-time filters, all bounds inclusive."""
    source: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


@dataclass
class SyncResult:
    """Result of one sync process."""
    trigger: str
    events_written: int
    source_counts: Dict[str, int]
    failed_sources: List[str]
    duration_seconds: float
