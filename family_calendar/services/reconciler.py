"""
Event reconciliation.

Merges a family's local events with events fetched from linked calendars
into one deduplicated, time-ordered list, and answers day and range queries
over the merged list.
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable, Mapping, Optional, Sequence, Union

from family_calendar.integrations.base import CalendarEvent, ensure_utc

logger = logging.getLogger(__name__)

ExternalResults = Union[Mapping[str, Sequence[CalendarEvent]], Iterable[Sequence[CalendarEvent]]]


def _start_key(event: CalendarEvent) -> datetime:
    return ensure_utc(event.start)


def reconcile(
    local_events: Sequence[CalendarEvent],
    external_results: ExternalResults,
) -> list[CalendarEvent]:
    """
    Merge local and external events.

    Events without an external_event_id are always kept. Otherwise only the
    first occurrence of each external_event_id survives, so a local mirror
    row wins over the fetched copy of the same event. The result is sorted
    by start with ties kept in input order.

    If merging fails, the family's local events are returned alone.

    Args:
        local_events: Events from the local store
        external_results: Per-calendar fetch results (a mapping of calendar id
            to events, or any iterable of event lists)

    Returns:
        Reconciled events ordered by start
    """
    try:
        if isinstance(external_results, Mapping):
            external_results = external_results.values()

        merged: list[CalendarEvent] = list(local_events)
        for events in external_results:
            merged.extend(events)

        seen: set[str] = set()
        unique: list[CalendarEvent] = []
        for event in merged:
            external_id = event.external_event_id
            if external_id:
                if external_id in seen:
                    continue
                seen.add(external_id)
            unique.append(event)

        # sorted() is stable
        return sorted(unique, key=_start_key)
    except Exception as e:
        logger.error(f"Reconciliation failed, returning local events only: {e}")
        return sorted(local_events, key=_start_key)


def _local_date(dt: datetime, tz: Optional[tzinfo]) -> date:
    dt = ensure_utc(dt)
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.date()


def events_on_date(
    events: Iterable[CalendarEvent],
    day: date,
    tz: Optional[tzinfo] = None,
) -> list[CalendarEvent]:
    """
    Events occupying a calendar day.

    Uses date-only comparison so all-day and multi-day events show on every
    day they touch.

    Args:
        events: Reconciled events
        day: Calendar day to query
        tz: Zone whose wall clock defines the day (UTC when None)
    """
    return [
        event for event in events
        if _local_date(event.start, tz) <= day <= _local_date(event.end, tz)
    ]


def events_in_range(
    events: Iterable[CalendarEvent],
    range_start: datetime,
    range_end: datetime,
) -> list[CalendarEvent]:
    """Events overlapping [range_start, range_end], endpoints inclusive."""
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    return [
        event for event in events
        if ensure_utc(event.start) <= range_end and ensure_utc(event.end) >= range_start
    ]


def _first_of_month(year: int, month: int) -> datetime:
    # Normalize month overflow (13 -> January of next year)
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def default_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Default fetch window: the current month plus the next one.

    Returns:
        (first day of this month, first day of the month after next), UTC
    """
    now = ensure_utc(now or datetime.now(timezone.utc))
    return _first_of_month(now.year, now.month), _first_of_month(now.year, now.month + 2)

