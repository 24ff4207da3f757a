"""
Google Calendar provider adapter.

Implements the ProviderAdapter protocol using the Google Calendar API.
The Google API client is synchronous, so calls run in a thread pool for
async compatibility.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from functools import partial
from typing import Optional

from family_calendar.integrations.base import (
    EventDraft,
    ExternalCalendarEvent,
    LinkedCalendar,
    RawProviderEvent,
)
from family_calendar.integrations.exceptions import AuthExpiredError
from family_calendar.integrations.google_calendar.adapter import (
    PROVIDER_TAG,
    GoogleCalendarAdapter,
    _format_datetime,
)
from family_calendar.integrations.google_calendar.auth import GoogleOAuthClient
from family_calendar.integrations.google_calendar.client import GoogleCalendarClient

logger = logging.getLogger(__name__)


class GoogleCalendarProvider:
    """
    ProviderAdapter for Google Calendar.

    A new API client is built per call from the linked calendar's current
    access token; tokens are refreshed first when expired.
    """

    provider = PROVIDER_TAG

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        executor: Optional[ThreadPoolExecutor] = None,
        refresh_margin: timedelta = timedelta(0),
    ):
        """
        Initialize the provider.

        Args:
            oauth_client: Client for Google's token endpoint
            executor: Thread pool for running sync API calls (creates default if None)
            refresh_margin: Refresh tokens this long before they expire
        """
        self._oauth = oauth_client
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._refresh_margin = refresh_margin
        self._adapter = GoogleCalendarAdapter()

    async def _run_in_executor(self, func, *args, **kwargs):
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            partial(func, *args, **kwargs),
        )

    def _client(self, access_token: str) -> GoogleCalendarClient:
        return GoogleCalendarClient(access_token)

    async def ensure_fresh_token(
        self,
        calendar: LinkedCalendar,
    ) -> tuple[str, LinkedCalendar]:
        """
        Return a usable access token, refreshing it when expired.

        The given calendar is never modified; a refresh yields a new
        LinkedCalendar carrying the new token and expiry.

        Raises:
            AuthExpiredError: If there is no refresh token or it is rejected
        """
        if not calendar.is_expired(margin=self._refresh_margin):
            return calendar.access_token, calendar

        if not calendar.refresh_token:
            logger.warning(
                f"Token expired and no refresh token for linked calendar {calendar.id}"
            )
            raise AuthExpiredError(
                f"Access token expired and no refresh token available for {calendar.id}"
            )

        tokens = await self._oauth.refresh_token(calendar.refresh_token)
        refreshed = calendar.with_tokens(tokens.access_token, tokens.expiry)
        logger.info(f"Refreshed access token for linked calendar {calendar.id}")
        return refreshed.access_token, refreshed

    async def fetch_events(
        self,
        calendar: LinkedCalendar,
        time_min: datetime,
        time_max: datetime,
    ) -> list[RawProviderEvent]:
        """
        List raw Google events in [time_min, time_max).

        Expects a calendar whose token is already fresh.
        """
        client = self._client(calendar.access_token)
        google_events = await self._run_in_executor(
            client.list_all_events,
            calendar_id=calendar.provider_calendar_id,
            time_min=_format_datetime(time_min),
            time_max=_format_datetime(time_max),
        )
        logger.debug(
            f"Retrieved {len(google_events)} events from {calendar.provider_calendar_id} "
            f"between {time_min} and {time_max}"
        )
        return google_events

    async def create_event(
        self,
        calendar: LinkedCalendar,
        draft: EventDraft,
    ) -> RawProviderEvent:
        """Create an event in the linked Google calendar."""
        body = self._adapter.to_google_event(draft)
        client = self._client(calendar.access_token)
        created = await self._run_in_executor(
            client.insert_event,
            calendar_id=calendar.provider_calendar_id,
            body=body,
        )
        logger.info(f"Created event '{draft.title}' with Google ID {created.get('id')}")
        return created

    async def update_event(
        self,
        calendar: LinkedCalendar,
        external_event_id: str,
        patch: dict,
    ) -> RawProviderEvent:
        """Patch an event in the linked Google calendar."""
        body = self._adapter.to_update_body(patch)
        client = self._client(calendar.access_token)
        updated = await self._run_in_executor(
            client.patch_event,
            calendar_id=calendar.provider_calendar_id,
            event_id=external_event_id,
            body=body,
        )
        logger.info(f"Updated Google event {external_event_id}: {list(patch.keys())}")
        return updated

    async def delete_event(
        self,
        calendar: LinkedCalendar,
        external_event_id: str,
    ) -> None:
        """Delete an event from the linked Google calendar."""
        client = self._client(calendar.access_token)
        await self._run_in_executor(
            client.delete_event,
            calendar_id=calendar.provider_calendar_id,
            event_id=external_event_id,
        )

    async def list_calendars(self, access_token: str) -> dict:
        """List calendars of the account owning access_token (for linking)."""
        client = self._client(access_token)
        return await self._run_in_executor(client.list_calendars)

    def normalize(
        self,
        raw_event: RawProviderEvent,
        calendar: LinkedCalendar,
    ) -> Optional[ExternalCalendarEvent]:
        return self._adapter.from_google_event(raw_event, calendar)

    async def close(self):
        """Clean up resources."""
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False
