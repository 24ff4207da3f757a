"""
Local event store backed by SQLAlchemy.

Typed CRUD over the family's own event rows. Owns no merge logic. Every
database failure is raised as LocalStoreError so it can never be mistaken
for an absorbable external failure.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from family_calendar.database import Database
from family_calendar.integrations.base import (
    DEFAULT_EVENT_COLOR,
    CalendarEvent,
    EventDraft,
    ensure_utc,
)
from family_calendar.integrations.exceptions import EventNotFoundError, LocalStoreError
from family_calendar.models.events import REQUIRED_FIELDS, UPDATABLE_FIELDS, EventRecord

logger = logging.getLogger(__name__)

# Canonical field name -> column attribute
_COLUMNS = {
    "start": "start_time",
    "end": "end_time",
}

FILTERABLE_FIELDS = frozenset({
    "user_id",
    "family_id",
    "linked_calendar_id",
    "external_event_id",
})


def _column_name(field_name: str) -> str:
    return _COLUMNS.get(field_name, field_name)


class SQLAlchemyEventStore:
    """LocalEventStore implementation using the local database."""

    def __init__(self, database: Database):
        self._db = database

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._db.session() as session:
                yield session
        except LocalStoreError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Local event store failed to {action}: {e}")
            raise LocalStoreError(f"Failed to {action}: {e}", original_error=e)

    async def list(self, filters: Optional[dict] = None) -> Sequence[CalendarEvent]:
        """
        List events matching equality filters, ordered by start.

        Raises:
            ValueError: If a filter names an unknown field
        """
        filters = filters or {}
        unknown = set(filters) - FILTERABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported event filters: {sorted(unknown)}")

        stmt = select(EventRecord)
        for key, value in filters.items():
            stmt = stmt.where(getattr(EventRecord, key) == value)
        stmt = stmt.order_by(EventRecord.start_time)

        async with self._session("list events") as session:
            result = await session.execute(stmt)
            return [row.to_event() for row in result.scalars().all()]

    async def get(self, event_id: str) -> Optional[CalendarEvent]:
        async with self._session(f"get event {event_id}") as session:
            row = await session.get(EventRecord, event_id)
            return row.to_event() if row else None

    async def insert(self, draft: EventDraft) -> CalendarEvent:
        """Insert a new event row and return it with its assigned id."""
        draft.validate()

        record = EventRecord(
            title=draft.title.strip(),
            description=draft.description,
            start_time=ensure_utc(draft.start),
            end_time=ensure_utc(draft.end),
            user_id=draft.user_id,
            family_id=draft.family_id,
            color=draft.color or DEFAULT_EVENT_COLOR,
            linked_calendar_id=draft.linked_calendar_id,
            external_event_id=draft.external_event_id,
        )

        async with self._session("insert event") as session:
            session.add(record)
            await session.flush()
            event = record.to_event()

        logger.info(f"Created event '{event.title}' ({event.id}) in local store")
        return event

    async def update(self, event_id: str, patch: dict) -> CalendarEvent:
        """
        Apply a partial update to an event row.

        Fields outside the updatable set are ignored.

        Raises:
            EventNotFoundError: If the event does not exist
            ValueError: If the update clears a required field or would
                leave end at or before start
        """
        async with self._session(f"update event {event_id}") as session:
            record = await session.get(EventRecord, event_id)
            if record is None:
                raise EventNotFoundError(f"Event {event_id} not found")

            for key, value in patch.items():
                if key not in UPDATABLE_FIELDS:
                    logger.debug(f"Ignoring non-updatable field '{key}' for event {event_id}")
                    continue
                if value is None and key in REQUIRED_FIELDS:
                    raise ValueError(f"Event {key} cannot be cleared")
                if key in ("start", "end") and isinstance(value, datetime):
                    value = ensure_utc(value)
                setattr(record, _column_name(key), value)

            if ensure_utc(record.end_time) <= ensure_utc(record.start_time):
                raise ValueError("Event end must be after its start")

            await session.flush()
            event = record.to_event()

        logger.info(f"Updated event {event_id}: {list(patch.keys())}")
        return event

    async def delete(self, event_id: str) -> None:
        """
        Delete an event row.

        Raises:
            EventNotFoundError: If the event does not exist
        """
        async with self._session(f"delete event {event_id}") as session:
            record = await session.get(EventRecord, event_id)
            if record is None:
                raise EventNotFoundError(f"Event {event_id} not found")
            await session.delete(record)

        logger.info(f"Deleted event {event_id} from local store")

    async def list_by_range(
        self,
        family_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CalendarEvent]:
        """Get a family's events overlapping [start, end), ordered by start."""
        stmt = (
            select(EventRecord)
            .where(
                EventRecord.family_id == family_id,
                EventRecord.start_time < ensure_utc(end),
                EventRecord.end_time > ensure_utc(start),
            )
            .order_by(EventRecord.start_time)
        )

        async with self._session(f"list events for family {family_id}") as session:
            result = await session.execute(stmt)
            events = [row.to_event() for row in result.scalars().all()]

        logger.debug(
            f"Retrieved {len(events)} local events for family {family_id} "
            f"between {start} and {end}"
        )
        return events
