"""
Calendar service - the reconciliation core's public surface.

Provides a unified interface for reading the family's merged calendar and
writing events, hiding where each event actually lives:

- get_reconciled_events: local events + every linked calendar, deduplicated
- create_event / update_event / delete_event: routed by WriteRouter
- get_sync_status: per linked calendar health check
- refresh: forced re-fetch of external data
"""

import asyncio
import logging
import time as time_module
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Iterable, Optional, Sequence

from family_calendar.integrations.base import (
    CalendarEvent,
    EventDraft,
    LinkedCalendar,
    LinkedCalendarRegistry,
    LocalEventStore,
    ensure_utc,
)
from family_calendar.integrations.registry import ProviderRegistry
from family_calendar.services.cache import TTLCache
from family_calendar.services.fetcher import ExternalEventFetcher
from family_calendar.services.reconciler import (
    default_window,
    events_on_date,
    reconcile,
)
from family_calendar.services.write_router import WriteRouter

logger = logging.getLogger(__name__)


class CalendarService:
    """
    Reconciled calendar access for one application instance.

    Reconciled views are cached per (family_id, linked calendar ids,
    time_min, time_max) until a mutation or refresh touches the family, or
    for cache_ttl_seconds at most so external edits become visible.

    Usage:
        service = CalendarService(store, calendars, providers, fetcher)
        events = await service.get_reconciled_events("fam-1")
    """

    def __init__(
        self,
        store: LocalEventStore,
        calendars: LinkedCalendarRegistry,
        providers: ProviderRegistry,
        fetcher: ExternalEventFetcher,
        sync_check_hours: int = 24,
        cache_ttl_seconds: Optional[float] = 300,
        clock: Callable[[], float] = time_module.monotonic,
    ):
        self._store = store
        self._calendars = calendars
        self._fetcher = fetcher
        self._check_window = timedelta(hours=sync_check_hours)
        self._views: TTLCache[list[CalendarEvent]] = TTLCache(cache_ttl_seconds, clock=clock)
        self.router = WriteRouter(store, calendars, providers, on_change=self.invalidate)

    @property
    def fetcher(self) -> ExternalEventFetcher:
        return self._fetcher

    async def _linked_calendars(
        self,
        family_id: str,
        user_id: Optional[str] = None,
    ) -> list[LinkedCalendar]:
        """Synced calendars of the family, plus the user's own when given."""
        linked = {cal.id: cal for cal in await self._calendars.list_for_family(family_id)}
        if user_id:
            for cal in await self._calendars.list_for_user(user_id):
                if cal.is_synced:
                    linked.setdefault(cal.id, cal)
        return list(linked.values())

    async def get_reconciled_events(
        self,
        family_id: str,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> list[CalendarEvent]:
        """
        Get the family's merged calendar for a window.

        Local store failures propagate; linked calendar failures only remove
        that calendar's events (see get_sync_status).

        Args:
            family_id: Family whose calendar to read
            time_min: Window start (defaults to the first of this month)
            time_max: Window end (defaults to the end of next month)
            user_id: Also include this user's own linked calendars

        Returns:
            Deduplicated events ordered by start

        Raises:
            LocalStoreError: If local events cannot be read
        """
        if time_min is None or time_max is None:
            default_min, default_max = default_window()
            time_min = time_min or default_min
            time_max = time_max or default_max
        time_min = ensure_utc(time_min)
        time_max = ensure_utc(time_max)
        if time_max <= time_min:
            raise ValueError("time_max must be after time_min")

        linked = await self._linked_calendars(family_id, user_id)
        key = (family_id, tuple(sorted(cal.id for cal in linked)), time_min, time_max)

        cached = self._views.get(key)
        if cached is not None:
            logger.debug(f"Using cached view for family {family_id}")
            return list(cached)

        local_events = await self._store.list_by_range(family_id, time_min, time_max)
        external = await self._fetcher.fetch_all(linked, time_min, time_max)
        events = reconcile(local_events, external)

        failed = [cal.id for cal in linked if self._fetcher.is_healthy(cal.id) is False]
        if failed:
            logger.warning(
                f"Family {family_id} view is missing {len(failed)} linked calendar(s): {failed}"
            )
        else:
            self._views.set(key, events)

        logger.info(
            f"Reconciled {len(events)} events for family {family_id} "
            f"({len(local_events)} local, {len(linked)} linked calendars)"
        )
        return list(events)

    async def get_events_on_date(
        self,
        family_id: str,
        day: date,
        user_id: Optional[str] = None,
        tz: Optional[tzinfo] = None,
    ) -> list[CalendarEvent]:
        """Events occupying one calendar day, read through the monthly view."""
        time_min, time_max = default_window(
            datetime.combine(day, time(12), tzinfo=timezone.utc)
        )
        events = await self.get_reconciled_events(family_id, time_min, time_max, user_id)
        return events_on_date(events, day, tz)

    async def create_event(self, draft: EventDraft) -> CalendarEvent:
        return await self.router.create(draft)

    async def update_event(self, event_id: str, patch: dict) -> CalendarEvent:
        return await self.router.update(event_id, patch)

    async def delete_event(self, event_id: str) -> None:
        await self.router.delete(event_id)

    async def get_sync_status(self, calendar_ids: Sequence[str]) -> dict[str, bool]:
        """
        Check each linked calendar over the next sync_check_hours.

        Checks bypass the event cache and run concurrently.

        Returns:
            {calendar_id: True if the check fetch succeeded}; unknown ids are False
        """
        now = datetime.now(timezone.utc)
        calendar_ids = list(dict.fromkeys(calendar_ids))

        calendars = await asyncio.gather(*(self._calendars.get(cid) for cid in calendar_ids))
        known = [cal for cal in calendars if cal is not None]

        await self._fetcher.fetch_all(known, now, now + self._check_window, use_cache=False)

        status = {cid: False for cid in calendar_ids}
        for cal in known:
            status[cal.id] = self._fetcher.is_healthy(cal.id) is True
        return status

    async def refresh(
        self,
        family_id: str,
        calendar_ids: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Force the next read to re-fetch.

        Drops cached external results for the given calendars (every linked
        calendar of the family when None) and the family's reconciled views.
        """
        if calendar_ids is None:
            calendar_ids = [cal.id for cal in await self._calendars.list_for_family(family_id)]
        calendar_ids = list(calendar_ids)

        self._fetcher.invalidate(calendar_ids)
        self._drop_views(family_id)
        logger.info(f"Refreshed family {family_id} ({len(calendar_ids)} linked calendars)")

    def invalidate(
        self,
        family_id: Optional[str],
        linked_calendar_id: Optional[str] = None,
    ) -> None:
        """
        Drop cached data after a write.

        Args:
            family_id: Family whose views to drop (all families when None)
            linked_calendar_id: Also drop this calendar's cached events
        """
        if linked_calendar_id:
            self._fetcher.invalidate([linked_calendar_id])
        self._drop_views(family_id)

    def _drop_views(self, family_id: Optional[str]) -> None:
        if family_id is None:
            self._views.clear()
            return
        self._views.invalidate_where(lambda key: key[0] == family_id)
