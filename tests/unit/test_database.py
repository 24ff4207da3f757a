"""Tests for the async database handle."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import text

from family_calendar.database import Database, create_database, get_async_database_url
from family_calendar.models.events import EventRecord


def _record() -> EventRecord:
    return EventRecord(
        title="Test",
        start_time=datetime(2026, 3, 5, 9, tzinfo=timezone.utc),
        end_time=datetime(2026, 3, 5, 10, tzinfo=timezone.utc),
    )


@pytest.mark.parametrize(
    "url, expected",
    [
        ("sqlite:///./data/cal.db", "sqlite+aiosqlite:///./data/cal.db"),
        ("sqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ("postgresql://u:p@db/cal", "postgresql+asyncpg://u:p@db/cal"),
        ("postgresql+asyncpg://u:p@db/cal", "postgresql+asyncpg://u:p@db/cal"),
    ],
)
def test_get_async_database_url(url, expected):
    assert get_async_database_url(url) == expected


@pytest.mark.asyncio
async def test_session_commits(database):
    async with database.session() as session:
        session.add(_record())

    async with database.session() as session:
        result = await session.execute(text("SELECT COUNT(*) FROM events"))
        assert result.scalar() == 1


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(database):
    with pytest.raises(RuntimeError):
        async with database.session() as session:
            session.add(_record())
            raise RuntimeError("boom")

    async with database.session() as session:
        result = await session.execute(text("SELECT COUNT(*) FROM events"))
        assert result.scalar() == 0


@pytest.mark.asyncio
async def test_create_database_from_settings(settings):
    db = create_database(settings)
    try:
        assert isinstance(db, Database)
        await db.create_all()
        await db.drop_all()
    finally:
        await db.dispose()
