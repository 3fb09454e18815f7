"""Adapters for the Tech For Palestine casualty datasets."""
import logging
from datetime import date
from typing import Any, Iterable, List

from processor.errors import MalformedRecord, SourceUnavailable
from processor.models import CanonicalEvent, Casualties
from sources.base import SourceAdapter, build_event, normalize_date, to_int

logger = logging.getLogger(__name__)


class TechForPalestineSummary(SourceAdapter):
    """Casualty totals from the Gaza summary endpoint."""

    SOURCE_NAME = "TechForPalestine"
    BASE_URL = "https://data.techforpalestine.org/api/v3/summary.json"

    # Central Gaza; every summary point stacks here
    LATITUDE = 31.4
    LONGITUDE = 34.38
    LOCATION = "Gaza Strip"

    def _fetch_records(self) -> Iterable[Any]:
        data = self._get_json(self.BASE_URL)
        if not isinstance(data, dict):
            raise SourceUnavailable("Unexpected summary response format")

        gaza = data.get('gaza')
        if not isinstance(gaza, dict):
            raise SourceUnavailable("Summary response has no Gaza section")

        killed = gaza.get('killed') if isinstance(gaza.get('killed'), dict) else {}
        injured = gaza.get('injured') if isinstance(gaza.get('injured'), dict) else {}
        today = date.today().isoformat()

        records = []
        total = to_int(killed.get('total'))
        if total:
            records.append({
                'date': today,
                'title': f"Total Killed: {total}",
                'description': f"Total officially recorded deaths: {total}",
                'casualties': Casualties(
                    killed=total,
                    injured=to_int(injured.get('total'))
                ),
            })

        children = to_int(killed.get('children'))
        if children:
            records.append({
                'date': today,
                'title': f"Children Killed: {children}",
                'description': f"Number of children killed: {children}",
            })

        women = to_int(killed.get('women'))
        if women:
            records.append({
                'date': today,
                'title': f"Women Killed: {women}",
                'description': f"Number of women killed: {women}",
            })

        return records

    def _map_record(self, record: Any) -> CanonicalEvent:
        return build_event(
            date=record['date'],
            location=self.LOCATION,
            latitude=self.LATITUDE,
            longitude=self.LONGITUDE,
            source=self.SOURCE_NAME,
            event_type="casualty_summary",
            title=record['title'],
            description=record['description'],
            casualties=record.get('casualties'),
        )


class TechForPalestineDaily(SourceAdapter):
    """Daily casualty series, trimmed to the most recent window."""

    SOURCE_NAME = "TechForPalestine-Daily"
    BASE_URL = "https://data.techforpalestine.org/api/v2/casualties_daily.json"
    DEFAULT_WINDOW = 45

    LATITUDE = 31.5
    LONGITUDE = 34.466
    LOCATION = "Gaza"

    def __init__(self, timeout: int = 30, session=None, window: int = DEFAULT_WINDOW):
        """
        Initialize the daily series adapter.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
            window: Number of most recent entries to keep (default: 45)
        """
        super().__init__(timeout=timeout, session=session)
        self.window = window

    def _fetch_records(self) -> List[Any]:
        data = self._get_json(self.BASE_URL)
        if not isinstance(data, list):
            raise SourceUnavailable("Unexpected daily casualties response format")

        # Bound payload size to the most recent entries
        return data[-self.window:] if self.window > 0 else []

    def _map_record(self, record: Any) -> CanonicalEvent:
        if not isinstance(record, dict):
            raise MalformedRecord("daily entry is not an object")

        report_date = normalize_date(record.get('report_date'))
        if not report_date:
            raise MalformedRecord(f"missing report_date: {record.get('report_date')!r}")

        killed = to_int(record.get('killed'))
        injured = to_int(record.get('injured'))

        return build_event(
            date=report_date,
            location=self.LOCATION,
            latitude=self.LATITUDE,
            longitude=self.LONGITUDE,
            source=self.SOURCE_NAME,
            event_type="daily_casualty",
            title=f"Daily Casualties: {killed} Killed",
            casualties=Casualties(killed=killed, injured=injured),
        )
