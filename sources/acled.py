"""Adapter for ACLED conflict events (login, then read)."""
import logging
import time
from typing import Any, Iterable, Optional

from processor.errors import MalformedRecord, SourceUnavailable
from processor.models import CanonicalEvent, Casualties
from sources.base import SourceAdapter, build_event, normalize_date, to_float, to_int

logger = logging.getLogger(__name__)


class AcledConflictEvents(SourceAdapter):
    """Conflict events from the ACLED read API."""

    SOURCE_NAME = "ACLED"
    TOKEN_URL = "https://acleddata.com/oauth/token"
    BASE_URL = "https://acleddata.com/api/acled/read"
    CLIENT_ID = "acled"
    MIN_TOKEN_TTL = 300  # seconds

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        timeout: int = 30,
        session=None,
        country: str = "Palestine",
        limit: int = 500
    ):
        """
        Initialize the ACLED adapter.

        Args:
            username: ACLED account email
            password: ACLED account password
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
            country: Country name filter (default: Palestine)
            limit: Maximum number of events per read (default: 500)
        """
        super().__init__(timeout=timeout, session=session)
        self.username = username
        self.password = password
        self.country = country
        self.limit = limit
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def _login(self) -> str:
        """
        Return a bearer token, performing the password grant when needed.

        Raises:
            SourceUnavailable: If credentials are missing or the grant fails
        """
        if self._access_token and self._token_expires_at - time.time() > self.MIN_TOKEN_TTL:
            return self._access_token

        if not self.username or not self.password:
            raise SourceUnavailable("ACLED credentials not configured")

        response = self.session.post(
            self.TOKEN_URL,
            data={
                'username': self.username,
                'password': self.password,
                'grant_type': 'password',
                'client_id': self.CLIENT_ID,
            },
            timeout=self.timeout
        )
        if not response.ok:
            raise SourceUnavailable(f"ACLED login failed: {response.status_code}")

        tokens = response.json()
        access_token = tokens.get('access_token') if isinstance(tokens, dict) else None
        if not access_token:
            raise SourceUnavailable("ACLED login response missing access_token")

        self._access_token = access_token
        self._token_expires_at = time.time() + to_int(tokens.get('expires_in'), 0)
        logger.info("Authenticated against ACLED")
        return access_token

    def _fetch_records(self) -> Iterable[Any]:
        token = self._login()

        data = self._get_json(
            self.BASE_URL,
            params={
                '_format': 'json',
                'country': self.country,
                'limit': str(self.limit),
            },
            headers={'Authorization': f"Bearer {token}"}
        )

        if not isinstance(data, dict) or data.get('success') is False:
            raise SourceUnavailable("ACLED read request was not successful")

        records = data.get('data')
        if not isinstance(records, list):
            raise SourceUnavailable("Unexpected ACLED response format")
        return records

    def _map_record(self, record: Any) -> CanonicalEvent:
        if not isinstance(record, dict):
            raise MalformedRecord("event is not an object")

        event_date = normalize_date(record.get('event_date'))
        if not event_date:
            raise MalformedRecord(f"missing event_date: {record.get('event_date')!r}")

        location = record.get('location') or None
        category = record.get('sub_event_type') or record.get('event_type') or "Conflict event"

        return build_event(
            date=event_date,
            location=location,
            latitude=to_float(record.get('latitude')),
            longitude=to_float(record.get('longitude')),
            source=self.SOURCE_NAME,
            event_type="conflict_event",
            title=f"{category}: {location or 'Unknown Location'}",
            description=record.get('notes') or None,
            casualties=Casualties(killed=to_int(record.get('fatalities')), injured=0),
        )
