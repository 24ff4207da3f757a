"""
Pytest configuration and fixtures for Family Calendar tests.

Provides an in-memory database, the SQLAlchemy-backed stores and sample
linked calendars and events.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from family_calendar.config import Settings
from family_calendar.database import Database
from family_calendar.integrations.base import (
    CalendarEvent,
    ExternalCalendarEvent,
    LinkedCalendar,
)
from family_calendar.services.event_store import SQLAlchemyEventStore
from family_calendar.services.linked_calendars import SQLAlchemyLinkedCalendarRegistry


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        google_oauth_client_id="test-client-id",
        google_oauth_client_secret="test-client-secret",
    )


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """
    Create a clean in-memory database for each test.

    Yields:
        Database: handle with all tables created
    """
    db = Database("sqlite:///:memory:")
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def event_store(database: Database) -> SQLAlchemyEventStore:
    return SQLAlchemyEventStore(database)


@pytest.fixture
def calendar_registry(database: Database) -> SQLAlchemyLinkedCalendarRegistry:
    return SQLAlchemyLinkedCalendarRegistry(database)


@pytest.fixture
def linked_calendar() -> LinkedCalendar:
    """A Google calendar with a token valid for another hour."""
    return LinkedCalendar(
        id="cal-1",
        user_id="user-1",
        family_id="fam-1",
        provider="google",
        account_email="parent@example.com",
        provider_calendar_id="primary",
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        display_name="Work",
        color="#FF0000",
    )


@pytest.fixture
def expired_calendar(linked_calendar: LinkedCalendar) -> LinkedCalendar:
    return replace(
        linked_calendar,
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )


def _make_event(
    event_id: str,
    start: datetime,
    end: datetime = None,
    title: str = None,
    external_event_id: str = None,
    linked_calendar_id: str = None,
) -> CalendarEvent:
    """Local event (or mirror row when external ids are given)."""
    return CalendarEvent(
        id=event_id,
        title=title or event_id,
        start=start,
        end=end or start + timedelta(hours=1),
        family_id="fam-1",
        external_event_id=external_event_id,
        linked_calendar_id=linked_calendar_id,
    )


def _make_external_event(
    external_event_id: str,
    start: datetime,
    end: datetime = None,
    title: str = None,
    calendar_id: str = "cal-1",
) -> ExternalCalendarEvent:
    """Event as returned by the fetcher for a linked calendar."""
    return ExternalCalendarEvent(
        id=f"external_{external_event_id}",
        title=title or external_event_id,
        start=start,
        end=end or start + timedelta(hours=1),
        family_id="fam-1",
        color="#FF0000",
        linked_calendar_id=calendar_id,
        external_event_id=external_event_id,
        source="google",
    )


@pytest.fixture
def make_event():
    """Factory for local events."""
    return _make_event


@pytest.fixture
def make_external_event():
    """Factory for fetched external events."""
    return _make_external_event
