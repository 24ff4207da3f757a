"""
Services for Family Calendar.

Local storage, external fetching, reconciliation and write routing.
"""

from family_calendar.services.calendar_service import CalendarService
from family_calendar.services.event_store import SQLAlchemyEventStore
from family_calendar.services.fetcher import ExternalEventFetcher
from family_calendar.services.linked_calendars import SQLAlchemyLinkedCalendarRegistry
from family_calendar.services.linking import AccountLinkingService
from family_calendar.services.reconciler import (
    default_window,
    events_in_range,
    events_on_date,
    reconcile,
)
from family_calendar.services.write_router import WriteRouter

__all__ = [
    "AccountLinkingService",
    "CalendarService",
    "ExternalEventFetcher",
    "SQLAlchemyEventStore",
    "SQLAlchemyLinkedCalendarRegistry",
    "WriteRouter",
    "default_window",
    "events_in_range",
    "events_on_date",
    "reconcile",
]
