"""
External event fetcher.

Pulls one linked calendar's events for a window through its provider
adapter and normalizes them. A fetch never raises: any provider failure
(network, auth, malformed payload) degrades to an empty list and is
recorded in the health map, so one broken account cannot blank out the
rest of the family's calendar.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional

from family_calendar.integrations.base import (
    ExternalCalendarEvent,
    LinkedCalendar,
    LinkedCalendarRegistry,
    ensure_utc,
)
from family_calendar.integrations.exceptions import (
    AuthExpiredError,
    LocalStoreError,
    UnsupportedProviderError,
)
from family_calendar.integrations.registry import ProviderRegistry
from family_calendar.services.cache import TTLCache

logger = logging.getLogger(__name__)

# Retrying these within the same cycle cannot succeed
_NO_RETRY = (AuthExpiredError, UnsupportedProviderError)


class ExternalEventFetcher:
    """
    Fetches and normalizes events from linked calendars.

    Successful results are cached per (calendar id, time_min, time_max);
    failures and cache-bypassing fetches are never cached.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        registry: LinkedCalendarRegistry,
        cache_ttl_seconds: float = 300,
        retries: int = 1,
        cache: Optional[TTLCache] = None,
    ):
        """
        Args:
            providers: Adapter lookup by provider tag
            registry: Where refreshed tokens are persisted
            cache_ttl_seconds: How long a successful fetch stays fresh
            retries: Automatic retries after a failed attempt
            cache: Override the result cache (used by tests)
        """
        self._providers = providers
        self._registry = registry
        self._retries = max(0, retries)
        self._cache: TTLCache[list[ExternalCalendarEvent]] = cache or TTLCache(cache_ttl_seconds)
        self._health: dict[str, bool] = {}

    @property
    def health(self) -> dict[str, bool]:
        """Last fetch outcome per linked calendar id (True = succeeded)."""
        return dict(self._health)

    def is_healthy(self, calendar_id: str) -> Optional[bool]:
        return self._health.get(calendar_id)

    async def fetch(
        self,
        calendar: LinkedCalendar,
        time_min: datetime,
        time_max: datetime,
        use_cache: bool = True,
    ) -> list[ExternalCalendarEvent]:
        """
        Fetch a linked calendar's events in [time_min, time_max).

        Args:
            calendar: Linked calendar to read
            time_min: Window start
            time_max: Window end
            use_cache: Set False to neither read nor store cached results (sync status checks)

        Returns:
            Normalized events, or an empty list if the calendar is unavailable
        """
        key = (calendar.id, ensure_utc(time_min), ensure_utc(time_max))

        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug(f"Using cached events for linked calendar {calendar.id}")
                return list(cached)

        attempts = 1 + self._retries
        for attempt in range(1, attempts + 1):
            try:
                events = await self._fetch_once(calendar, time_min, time_max)
            except _NO_RETRY as e:
                logger.warning(f"Linked calendar {calendar.id} unavailable: {e}")
                break
            except Exception as e:
                logger.warning(
                    f"Fetch attempt {attempt}/{attempts} failed for linked calendar "
                    f"{calendar.id}: {e}"
                )
                continue

            self._health[calendar.id] = True
            if use_cache:
                self._cache.set(key, events)
            return list(events)

        self._health[calendar.id] = False
        return []

    async def fetch_all(
        self,
        calendars: Iterable[LinkedCalendar],
        time_min: datetime,
        time_max: datetime,
        use_cache: bool = True,
    ) -> dict[str, list[ExternalCalendarEvent]]:
        """
        Fetch several calendars concurrently.

        Returns:
            Events keyed by linked calendar id, in the given calendar order
        """
        calendars = list(calendars)
        results = await asyncio.gather(
            *(self.fetch(cal, time_min, time_max, use_cache=use_cache) for cal in calendars)
        )
        return {cal.id: events for cal, events in zip(calendars, results)}

    def invalidate(self, calendar_ids: Optional[Iterable[str]] = None) -> None:
        """Drop cached windows for the given calendars (all when None)."""
        if calendar_ids is None:
            self._cache.clear()
            return
        ids = set(calendar_ids)
        dropped = self._cache.invalidate_where(lambda key: key[0] in ids)
        logger.debug(f"Invalidated {dropped} cached windows for {sorted(ids)}")

    async def _fetch_once(
        self,
        calendar: LinkedCalendar,
        time_min: datetime,
        time_max: datetime,
    ) -> list[ExternalCalendarEvent]:
        adapter = self._providers.for_calendar(calendar)

        _, fresh = await adapter.ensure_fresh_token(calendar)
        if fresh is not calendar:
            await self._persist_tokens(fresh)

        raw_events = await adapter.fetch_events(fresh, time_min, time_max)

        events = []
        for raw in raw_events:
            event = adapter.normalize(raw, fresh)
            if event is not None:
                events.append(event)

        logger.info(
            f"Fetched {len(events)} events from linked calendar {calendar.id} "
            f"({calendar.provider})"
        )
        return events

    async def _persist_tokens(self, calendar: LinkedCalendar) -> None:
        try:
            await self._registry.update_tokens(
                calendar.id,
                calendar.access_token,
                calendar.expires_at,
            )
        except LocalStoreError as e:
            # The refreshed token is still valid for this fetch
            logger.error(f"Failed to persist refreshed token for {calendar.id}: {e}")
