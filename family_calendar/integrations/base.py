"""
Canonical event types and collaborator protocols.

Defines the normalized event shape shared by the local store, the external
providers and the reconciler, plus the interfaces of the collaborators the
core consumes (local event store, linked calendar registry, provider adapters).
"""

from abc import abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol, Sequence

DEFAULT_EVENT_COLOR = "#007AFF"

# Canonical ids of fetched external events live in their own namespace
EXTERNAL_ID_PREFIX = "external_"

# Provider wire format (a decoded JSON object)
RawProviderEvent = dict[str, Any]


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_all_day_span(start: datetime, end: datetime) -> bool:
    """
    Check whether a start/end pair describes an all-day event.

    An event is all-day when it starts exactly at midnight and either ends at
    23:59 (same or a later day) or ends exactly at midnight of a later day.
    """
    if (start.hour, start.minute, start.second, start.microsecond) != (0, 0, 0, 0):
        return False
    if end.hour == 23 and end.minute == 59:
        return end.date() >= start.date()
    if (end.hour, end.minute, end.second, end.microsecond) == (0, 0, 0, 0):
        return end.date() > start.date()
    return False


@dataclass
class CalendarEvent:
    """
    Normalized event representation across local and external sources.

    linked_calendar_id is None for family (local) events. external_event_id is
    set only when the event lives in, or mirrors, an external calendar.
    """

    id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR
    linked_calendar_id: Optional[str] = None
    external_event_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_local(self) -> bool:
        """Check if this is a family event with no external counterpart."""
        return self.linked_calendar_id is None

    @property
    def mirrors_external(self) -> bool:
        """Check if this row mirrors an event living in an external calendar."""
        return bool(self.external_event_id and self.linked_calendar_id)

    @property
    def all_day(self) -> bool:
        return is_all_day_span(self.start, self.end)

    @property
    def duration_minutes(self) -> int:
        """Calculate event duration in minutes."""
        delta = self.end - self.start
        return int(delta.total_seconds() / 60)


@dataclass
class ExternalCalendarEvent(CalendarEvent):
    """
    Event fetched live from a linked calendar.

    The extra fields are transient: external events are never persisted.
    """

    is_external: bool = True
    source: str = ""
    html_link: Optional[str] = None
    read_only: bool = True


@dataclass
class EventDraft:
    """
    Request to create a new event.

    Used as input to WriteRouter.create() and LocalEventStore.insert().
    """

    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    color: Optional[str] = None
    linked_calendar_id: Optional[str] = None
    external_event_id: Optional[str] = None

    @property
    def all_day(self) -> bool:
        return is_all_day_span(self.start, self.end)

    def validate(self) -> None:
        """
        Check the draft before it is written anywhere.

        Raises:
            ValueError: If the title is blank or end is not after start
        """
        if not self.title or not self.title.strip():
            raise ValueError("Event title cannot be empty")
        if ensure_utc(self.end) <= ensure_utc(self.start):
            raise ValueError("Event end must be after its start")

    def with_external_event(self, external_event_id: str) -> "EventDraft":
        """Copy of this draft carrying the provider's event id."""
        return replace(self, external_event_id=external_event_id)


@dataclass(frozen=True)
class LinkedCalendar:
    """
    A third-party calendar the user granted this app access to.

    Immutable: a token refresh produces a new value via with_tokens(), which
    always updates the access token and its expiry together.
    """

    id: str
    user_id: str
    family_id: str
    provider: str
    account_email: str
    provider_calendar_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    display_name: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR
    is_synced: bool = True

    def is_expired(
        self,
        now: Optional[datetime] = None,
        margin: timedelta = timedelta(0),
    ) -> bool:
        """Check if the access token is expired (or expiring within margin)."""
        if self.expires_at is None:
            return False
        now = ensure_utc(now or datetime.now(timezone.utc))
        return now >= ensure_utc(self.expires_at) - margin

    def with_tokens(self, access_token: str, expires_at: datetime) -> "LinkedCalendar":
        """Return a copy with a refreshed access token and expiry."""
        return replace(self, access_token=access_token, expires_at=ensure_utc(expires_at))

    @property
    def name(self) -> str:
        return self.display_name or f"{self.provider.capitalize()} Calendar"


@dataclass
class CalendarOption:
    """A calendar an event can be written to (None id = family calendar)."""

    id: Optional[str]
    name: str
    color: str
    is_default: bool = False


@dataclass
class ProviderCalendar:
    """A calendar listed by a provider account during linking."""

    id: str
    name: str
    access_role: str
    color: Optional[str] = None
    description: Optional[str] = None

    @property
    def writable(self) -> bool:
        return self.access_role in ("owner", "writer")


class LocalEventStore(Protocol):
    """
    Protocol for the family's own event records.

    Implementations:
    - SQLAlchemyEventStore: local database

    Any backend failure is raised as LocalStoreError.
    """

    @abstractmethod
    async def list(self, filters: Optional[dict] = None) -> Sequence[CalendarEvent]:
        """
        List events matching equality filters.

        Args:
            filters: Field name to value (e.g. {"family_id": "fam-1"})

        Returns:
            Events ordered by start
        """
        ...

    @abstractmethod
    async def get(self, event_id: str) -> Optional[CalendarEvent]:
        """Get a single event, or None if not found."""
        ...

    @abstractmethod
    async def insert(self, draft: EventDraft) -> CalendarEvent:
        """Insert a new event and return it with its assigned id."""
        ...

    @abstractmethod
    async def update(self, event_id: str, patch: dict) -> CalendarEvent:
        """
        Apply a partial update.

        Raises:
            EventNotFoundError: If the event does not exist
        """
        ...

    @abstractmethod
    async def delete(self, event_id: str) -> None:
        """
        Delete an event.

        Raises:
            EventNotFoundError: If the event does not exist
        """
        ...

    @abstractmethod
    async def list_by_range(
        self,
        family_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CalendarEvent]:
        """
        Get a family's events overlapping [start, end).

        Returns:
            Events ordered by start
        """
        ...


class LinkedCalendarRegistry(Protocol):
    """Protocol for stored linked calendars and their tokens."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> Sequence[LinkedCalendar]:
        ...

    @abstractmethod
    async def list_for_family(self, family_id: str) -> Sequence[LinkedCalendar]:
        ...

    @abstractmethod
    async def get(self, calendar_id: str) -> Optional[LinkedCalendar]:
        ...

    @abstractmethod
    async def update_tokens(
        self,
        calendar_id: str,
        access_token: str,
        expires_at: datetime,
    ) -> None:
        """Persist a refreshed access token and its expiry in one write."""
        ...

    @abstractmethod
    async def upsert(self, calendar: LinkedCalendar) -> LinkedCalendar:
        """Insert or update keyed on (user_id, provider, provider_calendar_id)."""
        ...

    @abstractmethod
    async def update_color(self, calendar_id: str, color: str) -> LinkedCalendar:
        ...

    @abstractmethod
    async def delete(self, calendar_id: str) -> None:
        ...


class ProviderAdapter(Protocol):
    """
    Capability implemented once per external calendar provider.

    Adapters are selected by ProviderRegistry using LinkedCalendar.provider.
    They never mutate the LinkedCalendar they are given.
    """

    provider: str

    @abstractmethod
    async def ensure_fresh_token(
        self,
        calendar: LinkedCalendar,
    ) -> tuple[str, LinkedCalendar]:
        """
        Return a usable access token, refreshing it if expired.

        Returns:
            (access_token, calendar) where calendar is a new value when the
            token was refreshed and the same value otherwise

        Raises:
            AuthExpiredError: If no refresh token exists or refresh is rejected
        """
        ...

    @abstractmethod
    async def fetch_events(
        self,
        calendar: LinkedCalendar,
        time_min: datetime,
        time_max: datetime,
    ) -> list[RawProviderEvent]:
        """List raw provider events in [time_min, time_max)."""
        ...

    @abstractmethod
    async def create_event(
        self,
        calendar: LinkedCalendar,
        draft: EventDraft,
    ) -> RawProviderEvent:
        """Create an event in the external calendar."""
        ...

    @abstractmethod
    async def update_event(
        self,
        calendar: LinkedCalendar,
        external_event_id: str,
        patch: dict,
    ) -> RawProviderEvent:
        """Partially update an external event."""
        ...

    @abstractmethod
    async def delete_event(
        self,
        calendar: LinkedCalendar,
        external_event_id: str,
    ) -> None:
        """Delete an external event (already-gone counts as success)."""
        ...

    @abstractmethod
    def normalize(
        self,
        raw_event: RawProviderEvent,
        calendar: LinkedCalendar,
    ) -> Optional[ExternalCalendarEvent]:
        """
        Convert a raw provider event to the canonical shape.

        Returns:
            The event, or None for cancelled/removed events

        Raises:
            MalformedResponseError: If the payload is unusable
        """
        ...
