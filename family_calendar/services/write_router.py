"""
Write routing for event mutations.

Decides per mutation whether it targets the local store or a linked
external calendar:

- create: local, or external followed by a local mirror row. External
  failures are raised and nothing is written locally.
- update/delete: the external side is attempted first for mirror rows; its
  failure is logged and the local change is applied anyway.

Every successful mutation notifies the change callback so cached views for
the owning family can be dropped.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from family_calendar.integrations.base import (
    EXTERNAL_ID_PREFIX,
    CalendarEvent,
    EventDraft,
    LinkedCalendar,
    LinkedCalendarRegistry,
    LocalEventStore,
    ProviderAdapter,
    ensure_utc,
)
from family_calendar.integrations.exceptions import (
    CalendarSyncError,
    EventNotFoundError,
    LocalStoreError,
    ReadOnlyEventError,
)
from family_calendar.integrations.registry import ProviderRegistry
from family_calendar.models.events import REQUIRED_FIELDS

logger = logging.getLogger(__name__)

# Which calendar an event lives in is fixed at creation.
ROUTING_FIELDS = frozenset({"linked_calendar_id", "external_event_id"})

# Called with (family_id, linked_calendar_id) after a successful mutation
ChangeCallback = Callable[[Optional[str], Optional[str]], None]


@dataclass
class ExternalWriteFailure:
    """An external update/delete that failed while the local write went through."""

    event_id: str
    operation: str
    error: CalendarSyncError
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class WriteRouter:
    """
    Routes create/update/delete to the local store or an external provider.

    Usage:
        router = WriteRouter(store, calendars, providers, on_change=service.invalidate)
        event = await router.create(EventDraft(title="Dentist", start=..., end=...))
    """

    def __init__(
        self,
        store: LocalEventStore,
        calendars: LinkedCalendarRegistry,
        providers: ProviderRegistry,
        on_change: Optional[ChangeCallback] = None,
        failure_history: int = 50,
    ):
        self._store = store
        self._calendars = calendars
        self._providers = providers
        self._on_change = on_change
        self._failures: deque[ExternalWriteFailure] = deque(maxlen=failure_history)

    @property
    def recent_failures(self) -> list[ExternalWriteFailure]:
        """External update/delete failures absorbed by local-first writes."""
        return list(self._failures)

    async def create(self, draft: EventDraft) -> CalendarEvent:
        """
        Create an event.

        Raises:
            ValueError: If the draft is invalid or names an unknown calendar
            AuthExpiredError: If the linked calendar's token cannot be refreshed
            ConflictOnCreateError: If the provider rejects the event
            ProviderUnavailableError: If the provider cannot be reached
            LocalStoreError: If the local write fails
        """
        draft.validate()

        if not draft.linked_calendar_id:
            event = await self._store.insert(draft)
            self._notify(event)
            return event

        calendar = await self._calendars.get(draft.linked_calendar_id)
        if calendar is None:
            raise ValueError(f"Unknown linked calendar: {draft.linked_calendar_id}")

        adapter, calendar = await self._prepare(calendar)
        raw = await adapter.create_event(calendar, draft)
        external_id = raw["id"]

        mirror = draft.with_external_event(external_id)
        if mirror.color is None:
            mirror.color = calendar.color

        try:
            event = await self._store.insert(mirror)
        except LocalStoreError:
            logger.error(
                f"Event {external_id} was created in linked calendar {calendar.id} "
                f"but its local mirror could not be stored"
            )
            raise

        logger.info(f"Created event {event.id} mirroring external event {external_id}")
        self._notify(event)
        return event

    async def update(self, event_id: str, patch: dict) -> CalendarEvent:
        """
        Update an event.

        Mirror rows are patched externally first; an external failure is
        recorded and the local update still happens.

        Raises:
            ReadOnlyEventError: If the id belongs to a fetched external event
            EventNotFoundError: If the event does not exist
            ValueError: If the patch clears a required field, touches routing
                fields or leaves end at or before start
            LocalStoreError: If the local write fails
        """
        current = await self._load(event_id)
        _validate_patch(current, patch)

        if current.mirrors_external:
            await self._external_write(
                current,
                "update",
                lambda adapter, calendar: adapter.update_event(
                    calendar,
                    current.external_event_id,
                    _external_patch(current, patch),
                ),
            )

        event = await self._store.update(event_id, patch)
        if event.family_id != current.family_id:
            self._notify(current)
        self._notify(event)
        return event

    async def delete(self, event_id: str) -> None:
        """
        Delete an event.

        Raises:
            ReadOnlyEventError: If the id belongs to a fetched external event
            EventNotFoundError: If the event does not exist
            LocalStoreError: If the local delete fails
        """
        current = await self._load(event_id)

        if current.mirrors_external:
            await self._external_write(
                current,
                "delete",
                lambda adapter, calendar: adapter.delete_event(
                    calendar,
                    current.external_event_id,
                ),
            )

        await self._store.delete(event_id)
        self._notify(current)

    async def _load(self, event_id: str) -> CalendarEvent:
        if event_id.startswith(EXTERNAL_ID_PREFIX):
            raise ReadOnlyEventError(
                f"Event {event_id} comes from a linked calendar and is read-only"
            )
        current = await self._store.get(event_id)
        if current is None:
            raise EventNotFoundError(f"Event {event_id} not found")
        return current

    async def _prepare(self, calendar: LinkedCalendar) -> tuple[ProviderAdapter, LinkedCalendar]:
        """Resolve the adapter and make sure the calendar's token is fresh."""
        adapter = self._providers.for_calendar(calendar)
        _, fresh = await adapter.ensure_fresh_token(calendar)
        if fresh is not calendar:
            await self._calendars.update_tokens(fresh.id, fresh.access_token, fresh.expires_at)
        return adapter, fresh

    async def _external_write(self, current: CalendarEvent, operation: str, call) -> None:
        try:
            calendar = await self._calendars.get(current.linked_calendar_id)
            if calendar is None:
                logger.warning(
                    f"Linked calendar {current.linked_calendar_id} no longer exists; "
                    f"applying {operation} of event {current.id} locally only"
                )
                return
            adapter, calendar = await self._prepare(calendar)
            await call(adapter, calendar)
        except LocalStoreError:
            raise
        except CalendarSyncError as e:
            logger.warning(
                f"External {operation} failed for event {current.id} "
                f"(external {current.external_event_id}), applying locally: {e}"
            )
            self._failures.append(ExternalWriteFailure(current.id, operation, e))

    def _notify(self, event: CalendarEvent) -> None:
        if self._on_change is not None:
            self._on_change(event.family_id, event.linked_calendar_id)


def _validate_patch(current: CalendarEvent, patch: dict) -> None:
    routing = sorted(ROUTING_FIELDS.intersection(patch))
    if routing:
        raise ValueError(f"Cannot change {', '.join(routing)} of an existing event")
    cleared = sorted(name for name in REQUIRED_FIELDS if name in patch and patch[name] is None)
    if cleared:
        raise ValueError(f"Cannot clear required field(s): {', '.join(cleared)}")
    if "title" in patch and (not patch["title"] or not str(patch["title"]).strip()):
        raise ValueError("Event title cannot be empty")
    if "start" in patch or "end" in patch:
        start = patch["start"] if "start" in patch else current.start
        end = patch["end"] if "end" in patch else current.end
        if ensure_utc(end) <= ensure_utc(start):
            raise ValueError("Event end must be after its start")


def _external_patch(current: CalendarEvent, patch: dict) -> dict:
    """Patch for the provider; time changes always carry both ends."""
    external = dict(patch)
    if "start" in patch or "end" in patch:
        external.setdefault("start", current.start)
        external.setdefault("end", current.end)
    return external
