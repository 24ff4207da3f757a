"""
Unit tests for the ORM records and UTCDateTime TypeDecorator.

Tests:
- UTCDateTime normalization on SQLite
- Record defaults (id, timestamps, color)
- Conversion to the canonical event and linked calendar types
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from family_calendar.models.base import UTCDateTime
from family_calendar.models.events import EventRecord
from family_calendar.models.linked_calendars import LinkedCalendarRecord


class TestUTCDateTime:
    """Test the UTCDateTime TypeDecorator."""

    def test_naive_taken_as_utc(self):
        value = UTCDateTime().process_bind_param(datetime(2026, 3, 5, 9), None)
        assert value == datetime(2026, 3, 5, 9, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        value = UTCDateTime().process_bind_param(datetime(2026, 3, 5, 4, tzinfo=eastern), None)
        assert value == datetime(2026, 3, 5, 9, tzinfo=timezone.utc)
        assert value.utcoffset() == timedelta(0)

    def test_result_tagged_utc(self):
        value = UTCDateTime().process_result_value(datetime(2026, 3, 5, 9), None)
        assert value.tzinfo is not None

    def test_none_passthrough(self):
        assert UTCDateTime().process_bind_param(None, None) is None
        assert UTCDateTime().process_result_value(None, None) is None

    @pytest.mark.asyncio
    async def test_round_trip_is_aware(self, database):
        eastern = timezone(timedelta(hours=-5))
        async with database.session() as session:
            session.add(
                EventRecord(
                    id="e1",
                    title="Dentist",
                    start_time=datetime(2026, 3, 5, 4, tzinfo=eastern),
                    end_time=datetime(2026, 3, 5, 5, tzinfo=eastern),
                )
            )

        async with database.session() as session:
            record = (await session.execute(select(EventRecord))).scalar_one()

        assert record.start_time == datetime(2026, 3, 5, 9, tzinfo=timezone.utc)
        assert record.start_time.utcoffset() == timedelta(0)


class TestEventRecord:
    @pytest.mark.asyncio
    async def test_defaults(self, database):
        async with database.session() as session:
            record = EventRecord(
                title="Dentist",
                start_time=datetime(2026, 3, 5, 9, tzinfo=timezone.utc),
                end_time=datetime(2026, 3, 5, 10, tzinfo=timezone.utc),
            )
            session.add(record)
            await session.flush()

        assert len(record.id) == 36
        assert record.color == "#007AFF"
        assert record.created_at is not None

    def test_to_event(self):
        record = EventRecord(
            id="e1",
            title="Dentist",
            start_time=datetime(2026, 3, 5, 9, tzinfo=timezone.utc),
            end_time=datetime(2026, 3, 5, 10, tzinfo=timezone.utc),
            family_id="fam-1",
            color="#FF0000",
            linked_calendar_id="cal-1",
            external_event_id="g-1",
        )

        event = record.to_event()

        assert event.id == "e1"
        assert event.start == datetime(2026, 3, 5, 9, tzinfo=timezone.utc)
        assert event.mirrors_external
        assert not event.is_local


class TestLinkedCalendarRecord:
    def _record(self, **overrides) -> LinkedCalendarRecord:
        values = dict(
            user_id="user-1",
            family_id="fam-1",
            provider="google",
            account_email="parent@example.com",
            provider_calendar_id="primary",
            access_token="access-1",
            color="#FF0000",
        )
        values.update(overrides)
        return LinkedCalendarRecord(**values)

    @pytest.mark.asyncio
    async def test_unique_per_user_provider_calendar(self, database):
        with pytest.raises(IntegrityError):
            async with database.session() as session:
                session.add(self._record())
                session.add(self._record())

    @pytest.mark.asyncio
    async def test_same_calendar_for_two_users(self, database):
        async with database.session() as session:
            session.add(self._record())
            session.add(self._record(user_id="user-2"))

    def test_to_linked_calendar(self):
        calendar = self._record(id="cal-1", display_name=None, is_synced=True).to_linked_calendar()

        assert calendar.id == "cal-1"
        assert calendar.name == "Google Calendar"
        assert calendar.refresh_token is None
