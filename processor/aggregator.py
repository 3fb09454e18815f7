"""Merge, filter and order canonical events from every source."""
import logging
import re
from typing import Iterable, List, Optional

from processor.models import CanonicalEvent, EventFilters, FetchOutcome, SourceResult

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def flatten(outcomes: Iterable[FetchOutcome]) -> List[SourceResult]:
    """Concatenate adapter results in registration order."""
    source_results = []
    for outcome in outcomes:
        source_results.extend(outcome.results)
    return source_results


def _clean_text(value) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _clean_date(value) -> Optional[str]:
    text = _clean_text(value)
    if text is None or not ISO_DATE_RE.match(text):
        if text is not None:
            logger.warning(f"Ignoring malformed date filter: {text}")
        return None
    return text


def apply_filters(
    events: Iterable[CanonicalEvent],
    filters: Optional[EventFilters]
) -> List[CanonicalEvent]:
    """
    Keep events matching every supplied filter.

    Source is an exact, case-sensitive match. Date bounds are inclusive and
    an undated event never satisfies a bound. Malformed filter values are
    treated as absent.

    Args:
        events: Events to filter
        filters: Filters to apply, or None

    Returns:
        Matching events in their input order
    """
    events = list(events)
    if filters is None:
        return events

    source = _clean_text(filters.source)
    date_from = _clean_date(filters.date_from)
    date_to = _clean_date(filters.date_to)

    filtered = []
    for event in events:
        if source is not None and event.source != source:
            continue
        if date_from is not None and (not event.date or event.date < date_from):
            continue
        if date_to is not None and (not event.date or event.date > date_to):
            continue
        filtered.append(event)

    return filtered


def sort_events(events: Iterable[CanonicalEvent]) -> List[CanonicalEvent]:
    """Order dated events newest first, then undated ones; ties keep input order."""
    events = list(events)
    dated = [event for event in events if event.date]
    undated = [event for event in events if not event.date]

    # list.sort is stable, also with reverse=True
    dated.sort(key=lambda event: event.date, reverse=True)
    return dated + undated


def aggregate(
    source_results: Iterable[SourceResult],
    filters: Optional[EventFilters] = None
) -> List[CanonicalEvent]:
    """
    Build the ordered event dataset for one run.

    Args:
        source_results: SourceResults in adapter registration order
        filters: Optional read-time filters

    Returns:
        Filtered events, newest first, undated last
    """
    events = [result.event for result in source_results]
    filtered = apply_filters(events, filters)
    ordered = sort_events(filtered)

    logger.debug(
        f"Aggregated {len(ordered)} events out of {len(events)} source results"
    )
    return ordered
