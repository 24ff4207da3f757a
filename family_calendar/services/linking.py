"""
Linking external calendar accounts.

Turns the authorization code produced by the consent UI into stored
LinkedCalendars, one per calendar the account can write to.
"""

import logging
import re
from typing import Callable, Optional

from family_calendar.integrations.base import (
    DEFAULT_EVENT_COLOR,
    CalendarOption,
    LinkedCalendar,
    LinkedCalendarRegistry,
)
from family_calendar.integrations.exceptions import LocalStoreError
from family_calendar.integrations.google_calendar.adapter import (
    PROVIDER_TAG,
    GoogleCalendarAdapter,
)
from family_calendar.integrations.google_calendar.auth import GoogleOAuthClient
from family_calendar.integrations.google_calendar.provider import GoogleCalendarProvider
from family_calendar.models.base import new_id

logger = logging.getLogger(__name__)

FAMILY_CALENDAR_NAME = "Family Calendar"

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class AccountLinkingService:
    """Links, recolors and unlinks external calendars."""

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        google: GoogleCalendarProvider,
        registry: LinkedCalendarRegistry,
        default_color: str = DEFAULT_EVENT_COLOR,
        on_change: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
    ):
        self._oauth = oauth_client
        self._google = google
        self._registry = registry
        self._default_color = default_color
        self._on_change = on_change

    async def link_google_account(
        self,
        code: str,
        redirect_uri: Optional[str],
        user_id: str,
        family_id: str,
    ) -> list[LinkedCalendar]:
        """
        Link every writable calendar of a Google account.

        Args:
            code: Authorization code from the consent UI
            redirect_uri: Redirect URI the code was issued for
            user_id: User linking the account
            family_id: Family that will see the calendars

        Returns:
            The stored linked calendars

        Raises:
            AuthExpiredError: If Google rejects the code
            ProviderUnavailableError: If Google cannot be reached
            MalformedResponseError: If Google's responses are unusable
        """
        tokens = await self._oauth.exchange_code(code, redirect_uri)
        user_info = await self._oauth.get_user_info(tokens.access_token)

        response = await self._google.list_calendars(tokens.access_token)
        writable = [
            cal for cal in GoogleCalendarAdapter.parse_calendar_list(response)
            if cal.writable
        ]
        logger.info(
            f"Account {user_info.email} has {len(writable)} writable calendars"
        )

        linked = []
        for provider_calendar in writable:
            calendar = LinkedCalendar(
                id=new_id(),
                user_id=user_id,
                family_id=family_id,
                provider=PROVIDER_TAG,
                account_email=user_info.email,
                provider_calendar_id=provider_calendar.id,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=tokens.expiry,
                display_name=provider_calendar.name,
                color=provider_calendar.color or self._default_color,
            )
            try:
                linked.append(await self._registry.upsert(calendar))
            except LocalStoreError as e:
                logger.error(f"Failed to store calendar {provider_calendar.id}: {e}")

        self._notify(family_id, None)
        return linked

    async def update_color(self, calendar_id: str, color: str) -> LinkedCalendar:
        """
        Change a linked calendar's color.

        Raises:
            ValueError: If color is not a #RRGGBB hex string
        """
        if not _HEX_COLOR.match(color):
            raise ValueError(f"Invalid color: {color!r}")
        calendar = await self._registry.update_color(calendar_id, color)
        # Cached external events carry the old color
        self._notify(calendar.family_id, calendar.id)
        return calendar

    async def unlink(self, calendar_id: str) -> None:
        calendar = await self._registry.get(calendar_id)
        await self._registry.delete(calendar_id)
        self._notify(calendar.family_id if calendar else None, calendar_id)

    async def calendar_options(self, user_id: str) -> list[CalendarOption]:
        """Calendars a user can write new events to, family calendar first."""
        options = [
            CalendarOption(
                id=None,
                name=FAMILY_CALENDAR_NAME,
                color=self._default_color,
                is_default=True,
            )
        ]
        for calendar in await self._registry.list_for_user(user_id):
            options.append(CalendarOption(id=calendar.id, name=calendar.name, color=calendar.color))
        return options

    def _notify(self, family_id: Optional[str], calendar_id: Optional[str]) -> None:
        if self._on_change is not None:
            self._on_change(family_id, calendar_id)
