"""
Linked calendar registry backed by SQLAlchemy.

Adapted from the token storage pattern: tokens are read and written as one
unit, and a refresh always persists the access token with its expiry.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from family_calendar.database import Database
from family_calendar.integrations.base import LinkedCalendar, ensure_utc
from family_calendar.integrations.exceptions import LocalStoreError
from family_calendar.models.linked_calendars import LinkedCalendarRecord

logger = logging.getLogger(__name__)


class SQLAlchemyLinkedCalendarRegistry:
    """LinkedCalendarRegistry implementation using the local database."""

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
            logger.error(f"Linked calendar registry failed to {action}: {e}")
            raise LocalStoreError(f"Failed to {action}: {e}", original_error=e)

    async def _get_record(self, session: AsyncSession, calendar_id: str) -> LinkedCalendarRecord:
        record = await session.get(LinkedCalendarRecord, calendar_id)
        if record is None:
            raise LocalStoreError(f"Linked calendar {calendar_id} not found")
        return record

    async def list_for_user(self, user_id: str) -> Sequence[LinkedCalendar]:
        stmt = (
            select(LinkedCalendarRecord)
            .where(LinkedCalendarRecord.user_id == user_id)
            .order_by(LinkedCalendarRecord.created_at)
        )
        async with self._session(f"list calendars for user {user_id}") as session:
            result = await session.execute(stmt)
            return [row.to_linked_calendar() for row in result.scalars().all()]

    async def list_for_family(self, family_id: str) -> Sequence[LinkedCalendar]:
        """List the synced calendars contributing to a family's view."""
        stmt = (
            select(LinkedCalendarRecord)
            .where(
                LinkedCalendarRecord.family_id == family_id,
                LinkedCalendarRecord.is_synced.is_(True),
            )
            .order_by(LinkedCalendarRecord.created_at)
        )
        async with self._session(f"list calendars for family {family_id}") as session:
            result = await session.execute(stmt)
            return [row.to_linked_calendar() for row in result.scalars().all()]

    async def get(self, calendar_id: str) -> Optional[LinkedCalendar]:
        async with self._session(f"get linked calendar {calendar_id}") as session:
            record = await session.get(LinkedCalendarRecord, calendar_id)
            return record.to_linked_calendar() if record else None

    async def update_tokens(
        self,
        calendar_id: str,
        access_token: str,
        expires_at: datetime,
    ) -> None:
        """
        Persist a refreshed access token and its expiry in one write.

        Raises:
            LocalStoreError: If the calendar does not exist or the write fails
        """
        async with self._session(f"update tokens for {calendar_id}") as session:
            record = await self._get_record(session, calendar_id)
            record.access_token = access_token
            record.expires_at = ensure_utc(expires_at)

        logger.info(f"Stored refreshed token for linked calendar {calendar_id}")

    async def upsert(self, calendar: LinkedCalendar) -> LinkedCalendar:
        """
        Insert or update a linked calendar.

        Keyed on (user_id, provider, provider_calendar_id); an existing row
        keeps its id and color.
        """
        stmt = select(LinkedCalendarRecord).where(
            LinkedCalendarRecord.user_id == calendar.user_id,
            LinkedCalendarRecord.provider == calendar.provider,
            LinkedCalendarRecord.provider_calendar_id == calendar.provider_calendar_id,
        )

        async with self._session(f"upsert calendar {calendar.provider_calendar_id}") as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()

            if record is None:
                record = LinkedCalendarRecord(
                    id=calendar.id,
                    user_id=calendar.user_id,
                    family_id=calendar.family_id,
                    provider=calendar.provider,
                    provider_calendar_id=calendar.provider_calendar_id,
                    color=calendar.color,
                )
                session.add(record)
                logger.info(
                    f"Linked {calendar.provider} calendar {calendar.provider_calendar_id} "
                    f"for user {calendar.user_id}"
                )
            else:
                logger.info(
                    f"Updated {calendar.provider} calendar {calendar.provider_calendar_id} "
                    f"for user {calendar.user_id}"
                )

            record.family_id = calendar.family_id
            record.account_email = calendar.account_email
            record.display_name = calendar.display_name
            record.access_token = calendar.access_token
            if calendar.refresh_token:
                record.refresh_token = calendar.refresh_token
            record.expires_at = ensure_utc(calendar.expires_at) if calendar.expires_at else None
            record.is_synced = calendar.is_synced

            await session.flush()
            return record.to_linked_calendar()

    async def update_color(self, calendar_id: str, color: str) -> LinkedCalendar:
        async with self._session(f"update color for {calendar_id}") as session:
            record = await self._get_record(session, calendar_id)
            record.color = color
            await session.flush()
            return record.to_linked_calendar()

    async def delete(self, calendar_id: str) -> None:
        async with self._session(f"delete linked calendar {calendar_id}") as session:
            record = await self._get_record(session, calendar_id)
            await session.delete(record)

        logger.info(f"Unlinked calendar {calendar_id}")
