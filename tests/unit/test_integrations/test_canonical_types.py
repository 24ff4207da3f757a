"""Tests for canonical event types."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from family_calendar.integrations.base import (
    CalendarEvent,
    EventDraft,
    LinkedCalendar,
    ProviderCalendar,
    ensure_utc,
    is_all_day_span,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestAllDayDetection:
    """Tests for is_all_day_span."""

    def test_midnight_to_end_of_day(self):
        """Start 00:00:00.000 and end 23:59:59.999 is all-day."""
        assert is_all_day_span(utc(2026, 3, 5, 0, 0), utc(2026, 3, 5, 23, 59, 59, 999000))

    def test_midnight_to_next_midnight(self):
        """Start 00:00 and end 00:00 the next day is all-day."""
        assert is_all_day_span(utc(2026, 3, 5), utc(2026, 3, 6))

    def test_ends_at_2359_without_seconds(self):
        assert is_all_day_span(utc(2026, 3, 5), utc(2026, 3, 5, 23, 59))

    def test_multi_day(self):
        assert is_all_day_span(utc(2026, 3, 5), utc(2026, 3, 7, 23, 59, 59))

    def test_timed_event(self):
        """09:00 to 10:00 is not all-day."""
        assert not is_all_day_span(utc(2026, 3, 5, 9), utc(2026, 3, 5, 10))

    def test_start_not_exactly_midnight(self):
        assert not is_all_day_span(utc(2026, 3, 5, 0, 0, 1), utc(2026, 3, 5, 23, 59))
        assert not is_all_day_span(utc(2026, 3, 5, 0, 0, 0, 1000), utc(2026, 3, 6))

    def test_same_midnight_is_not_all_day(self):
        assert not is_all_day_span(utc(2026, 3, 5), utc(2026, 3, 5))

    def test_event_property(self):
        event = CalendarEvent(id="e1", title="Holiday", start=utc(2026, 3, 5), end=utc(2026, 3, 6))
        assert event.all_day is True
        assert event.duration_minutes == 24 * 60


class TestCalendarEvent:
    def test_local_event(self):
        event = CalendarEvent(id="e1", title="Dinner", start=utc(2026, 3, 5, 18), end=utc(2026, 3, 5, 19))
        assert event.is_local is True
        assert event.mirrors_external is False

    def test_mirror_row(self):
        event = CalendarEvent(
            id="e1",
            title="Dentist",
            start=utc(2026, 3, 5, 9),
            end=utc(2026, 3, 5, 10),
            linked_calendar_id="cal-1",
            external_event_id="g1",
        )
        assert event.is_local is False
        assert event.mirrors_external is True


class TestEventDraft:
    def test_validate_accepts_valid_draft(self):
        EventDraft(title="Soccer", start=utc(2026, 3, 5, 9), end=utc(2026, 3, 5, 10)).validate()

    def test_validate_rejects_blank_title(self):
        draft = EventDraft(title="   ", start=utc(2026, 3, 5, 9), end=utc(2026, 3, 5, 10))
        with pytest.raises(ValueError, match="title"):
            draft.validate()

    def test_validate_rejects_end_before_start(self):
        draft = EventDraft(title="Soccer", start=utc(2026, 3, 5, 10), end=utc(2026, 3, 5, 9))
        with pytest.raises(ValueError, match="end"):
            draft.validate()

    def test_validate_rejects_zero_length(self):
        draft = EventDraft(title="Soccer", start=utc(2026, 3, 5, 10), end=utc(2026, 3, 5, 10))
        with pytest.raises(ValueError):
            draft.validate()

    def test_with_external_event_copies(self):
        draft = EventDraft(title="Soccer", start=utc(2026, 3, 5, 9), end=utc(2026, 3, 5, 10))
        mirror = draft.with_external_event("g1")
        assert mirror.external_event_id == "g1"
        assert draft.external_event_id is None
        assert mirror.title == "Soccer"


class TestLinkedCalendar:
    @pytest.fixture
    def calendar(self):
        return LinkedCalendar(
            id="cal-1",
            user_id="user-1",
            family_id="fam-1",
            provider="google",
            account_email="a@example.com",
            provider_calendar_id="primary",
            access_token="old",
            refresh_token="refresh",
            expires_at=utc(2026, 3, 5, 12),
            display_name="Work",
            color="#00FF00",
        )

    def test_is_expired(self, calendar):
        assert calendar.is_expired(now=utc(2026, 3, 5, 12)) is True
        assert calendar.is_expired(now=utc(2026, 3, 5, 11, 59)) is False

    def test_is_expired_with_margin(self, calendar):
        now = utc(2026, 3, 5, 11, 58)
        assert calendar.is_expired(now=now, margin=timedelta(minutes=5)) is True

    def test_no_expiry_never_expires(self, calendar):
        calendar = replace(calendar, expires_at=None)
        assert calendar.is_expired(now=utc(2100, 1, 1)) is False

    def test_with_tokens_returns_new_value(self, calendar):
        refreshed = calendar.with_tokens("new", utc(2026, 3, 5, 13))

        assert refreshed is not calendar
        assert refreshed.access_token == "new"
        assert refreshed.expires_at == utc(2026, 3, 5, 13)
        # Other fields untouched
        assert refreshed.color == "#00FF00"
        assert refreshed.display_name == "Work"
        assert refreshed.refresh_token == "refresh"
        # Original unchanged
        assert calendar.access_token == "old"

    def test_frozen(self, calendar):
        with pytest.raises(AttributeError):
            calendar.access_token = "mutated"

    def test_name_falls_back_to_provider(self, calendar):
        calendar = replace(calendar, display_name=None)
        assert calendar.name == "Google Calendar"


class TestHelpers:
    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2026, 3, 5, 9)).tzinfo == timezone.utc

    def test_ensure_utc_converts_offset(self):
        tz = timezone(timedelta(hours=-5))
        result = ensure_utc(datetime(2026, 3, 5, 9, tzinfo=tz))
        assert result == utc(2026, 3, 5, 14)

    def test_provider_calendar_writable(self):
        assert ProviderCalendar(id="a", name="A", access_role="owner").writable
        assert ProviderCalendar(id="b", name="B", access_role="writer").writable
        assert not ProviderCalendar(id="c", name="C", access_role="reader").writable
        assert not ProviderCalendar(id="d", name="D", access_role="freeBusyReader").writable
