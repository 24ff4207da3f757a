"""
Bidirectional mapping between canonical events and Google Calendar API format.

Handles:
- DateTime formatting (RFC 3339 for Google API)
- All-day event handling (date-only fields, exclusive end date)
- Normalization of fetched events into ExternalCalendarEvent
- Calendar list parsing for account linking
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from dateutil.parser import ParserError, parse as parse_datetime

from family_calendar.integrations.base import (
    EXTERNAL_ID_PREFIX,
    EventDraft,
    ExternalCalendarEvent,
    LinkedCalendar,
    ProviderCalendar,
    RawProviderEvent,
    ensure_utc,
    is_all_day_span,
)
from family_calendar.integrations.exceptions import MalformedResponseError

PROVIDER_TAG = "google"

UNTITLED_EVENT = "Untitled Event"

# Last representable instant of an all-day event's final day
END_OF_DAY = time(23, 59, 59, 999000)


class GoogleCalendarAdapter:
    """Maps between canonical events and Google Calendar API format."""

    @staticmethod
    def to_google_event(draft: EventDraft) -> dict:
        """
        Convert an event draft to Google Calendar API format.

        All-day detection uses the draft's own wall-clock times; all-day
        events are written with date fields, everything else with UTC
        dateTime fields.

        Args:
            draft: Event to create

        Returns:
            Dict suitable for Google Calendar API insert
        """
        google_event: dict = {
            "summary": draft.title,
        }

        if draft.description:
            google_event["description"] = draft.description

        google_event.update(_encode_times(draft.start, draft.end))
        return google_event

    @staticmethod
    def from_google_event(
        google_event: RawProviderEvent,
        calendar: LinkedCalendar,
    ) -> Optional[ExternalCalendarEvent]:
        """
        Convert a Google Calendar event to the canonical external shape.

        Cancelled events are dropped. The event color always comes from the
        linked calendar, never from the provider event.

        Args:
            google_event: Event from Google Calendar API
            calendar: Linked calendar the event was fetched from

        Returns:
            ExternalCalendarEvent, or None if the event is cancelled

        Raises:
            MalformedResponseError: If id or start/end are missing or invalid
        """
        if not isinstance(google_event, dict):
            raise MalformedResponseError(
                f"Expected event object, got {type(google_event).__name__}"
            )

        if google_event.get("status") == "cancelled":
            return None

        provider_id = google_event.get("id")
        if not provider_id:
            raise MalformedResponseError("Google event is missing its id")

        start, end = _decode_times(google_event.get("start"), google_event.get("end"))
        if end <= start:
            raise MalformedResponseError(
                f"Google event {provider_id} ends before it starts"
            )

        now = datetime.now(timezone.utc)

        return ExternalCalendarEvent(
            id=f"{EXTERNAL_ID_PREFIX}{provider_id}",
            title=google_event.get("summary") or UNTITLED_EVENT,
            description=google_event.get("description"),
            start=start,
            end=end,
            user_id=calendar.user_id,
            family_id=calendar.family_id,
            color=calendar.color,
            linked_calendar_id=calendar.id,
            external_event_id=provider_id,
            created_at=_parse_optional_datetime(google_event.get("created")) or now,
            updated_at=_parse_optional_datetime(google_event.get("updated")) or now,
            source=PROVIDER_TAG,
            html_link=google_event.get("htmlLink"),
            read_only=True,
        )

    @staticmethod
    def to_update_body(patch: dict) -> dict:
        """
        Convert a canonical patch dict to Google Calendar API format.

        Args:
            patch: Field updates (title, description, start, end)

        Returns:
            Dict suitable for Google Calendar API patch
        """
        google_updates: dict = {}

        if "title" in patch:
            google_updates["summary"] = patch["title"]

        if "description" in patch:
            google_updates["description"] = patch["description"]

        start = patch.get("start")
        end = patch.get("end")
        if start is not None and end is not None:
            google_updates.update(_encode_times(start, end))
        elif start is not None:
            google_updates["start"] = _encode_datetime(start)
        elif end is not None:
            google_updates["end"] = _encode_datetime(end)

        return google_updates

    @staticmethod
    def parse_calendar_list(response: dict) -> list[ProviderCalendar]:
        """
        Parse a calendarList.list response.

        Raises:
            MalformedResponseError: If items is missing or not a list
        """
        items = response.get("items") if isinstance(response, dict) else None
        if not isinstance(items, list):
            raise MalformedResponseError("Calendar list response has no items")

        calendars = []
        for item in items:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            calendars.append(
                ProviderCalendar(
                    id=item["id"],
                    name=item.get("summary") or item["id"],
                    access_role=item.get("accessRole", "reader"),
                    color=item.get("backgroundColor"),
                    description=item.get("description"),
                )
            )
        return calendars


def _encode_times(start: datetime, end: datetime) -> dict:
    """Encode a start/end pair as Google start/end objects."""
    if is_all_day_span(start, end):
        # Google all-day end dates are exclusive
        if end.hour == 23:
            end_date = end.date() + timedelta(days=1)
        else:
            end_date = end.date()
        return {
            "start": {"date": start.date().isoformat()},
            "end": {"date": end_date.isoformat()},
        }
    return {
        "start": _encode_datetime(start),
        "end": _encode_datetime(end),
    }


def _encode_datetime(dt: datetime) -> dict:
    return {
        "dateTime": _format_datetime(dt),
        "timeZone": "UTC",
    }


def _decode_times(start_data, end_data) -> tuple[datetime, datetime]:
    """Decode Google start/end objects to UTC datetimes."""
    if not isinstance(start_data, dict) or not isinstance(end_data, dict):
        raise MalformedResponseError("Google event is missing start or end")

    try:
        if start_data.get("dateTime") and end_data.get("dateTime"):
            return (
                _parse_datetime(start_data["dateTime"]),
                _parse_datetime(end_data["dateTime"]),
            )

        if start_data.get("date") and end_data.get("date"):
            start_day = _parse_date(start_data["date"])
            last_day = _parse_date(end_data["date"]) - timedelta(days=1)
            if last_day < start_day:
                last_day = start_day
            return (
                datetime.combine(start_day, time.min, tzinfo=timezone.utc),
                datetime.combine(last_day, END_OF_DAY, tzinfo=timezone.utc),
            )
    except (ParserError, ValueError, TypeError, OverflowError) as e:
        raise MalformedResponseError(
            f"Invalid Google event time: {e}",
            original_error=e,
        )

    raise MalformedResponseError("Google event has neither dateTime nor date fields")


def _format_datetime(dt: datetime) -> str:
    """
    Format datetime to RFC 3339 format for Google API.

    Args:
        dt: Datetime to format (naive values are taken as UTC)

    Returns:
        RFC 3339 formatted string in UTC
    """
    return ensure_utc(dt).isoformat()


def _parse_datetime(dt_str: str) -> datetime:
    """
    Parse datetime string from Google API.

    Args:
        dt_str: RFC 3339 datetime string

    Returns:
        Parsed datetime normalized to UTC
    """
    return ensure_utc(parse_datetime(dt_str))


def _parse_date(date_str: str) -> date:
    """
    Parse date string from Google API (for all-day events).

    Args:
        date_str: Date string in YYYY-MM-DD format
    """
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def _parse_optional_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _parse_datetime(value)
    except (ParserError, ValueError, TypeError, OverflowError):
        return None
