"""
External service integrations for Family Calendar.

Provides the canonical event types and the provider abstraction layer for
linked external calendars.
"""

from family_calendar.integrations.base import (
    CalendarEvent,
    EventDraft,
    ExternalCalendarEvent,
    LinkedCalendar,
    LinkedCalendarRegistry,
    LocalEventStore,
    ProviderAdapter,
)
from family_calendar.integrations.registry import ProviderRegistry

__all__ = [
    "CalendarEvent",
    "EventDraft",
    "ExternalCalendarEvent",
    "LinkedCalendar",
    "LinkedCalendarRegistry",
    "LocalEventStore",
    "ProviderAdapter",
    "ProviderRegistry",
]
