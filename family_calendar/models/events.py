"""
Event model.

Stores the family's own events, including local mirror rows of events this
app created in a linked external calendar. Events fetched from external
calendars are never stored here.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from family_calendar.integrations.base import DEFAULT_EVENT_COLOR, CalendarEvent
from family_calendar.models.base import BaseModel, UTCDateTime

# Columns a patch may touch; anything else is ignored by the store.
# linked_calendar_id and external_event_id are fixed at creation.
# Updatable columns that may not be set to None
REQUIRED_FIELDS = frozenset({"title", "start", "end", "color"})
UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "start",
    "end",
    "user_id",
    "family_id",
    "color",
})


class EventRecord(BaseModel):
    """
    Row for a family event.

    linked_calendar_id and external_event_id are both set for mirror rows
    and both NULL for purely local events.
    """

    __tablename__ = "events"

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Event title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Event description"
    )

    start_time: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        doc="Event start (UTC)"
    )

    end_time: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        doc="Event end (UTC)"
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Owning user"
    )

    family_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        doc="Owning family"
    )

    color: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DEFAULT_EVENT_COLOR,
        doc="Hex display color"
    )

    linked_calendar_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        doc="Linked calendar this event was written to (NULL for family events)"
    )

    external_event_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Provider event ID for mirror rows"
    )

    __table_args__ = (
        Index("ix_events_family_start", "family_id", "start_time"),
        Index("ix_events_external", "linked_calendar_id", "external_event_id"),
    )

    def to_event(self) -> CalendarEvent:
        """Convert the row to the canonical event shape."""
        return CalendarEvent(
            id=self.id,
            title=self.title,
            description=self.description,
            start=self.start_time,
            end=self.end_time,
            user_id=self.user_id,
            family_id=self.family_id,
            color=self.color,
            linked_calendar_id=self.linked_calendar_id,
            external_event_id=self.external_event_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<EventRecord(id={self.id}, title={self.title!r}, start={self.start_time})>"
