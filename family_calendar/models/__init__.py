"""
SQLAlchemy models for Family Calendar.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

from family_calendar.models.base import Base, BaseModel, UTCDateTime
from family_calendar.models.events import EventRecord
from family_calendar.models.linked_calendars import LinkedCalendarRecord

__all__ = [
    "Base",
    "BaseModel",
    "UTCDateTime",
    "EventRecord",
    "LinkedCalendarRecord",
]
