"""
Pydantic request and response models for the Family Calendar API.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from family_calendar.integrations.base import (
    CalendarEvent,
    CalendarOption,
    ExternalCalendarEvent,
    LinkedCalendar,
    ensure_utc,
)


# =============================================================================
# Request Models
# =============================================================================


class CreateEventRequest(BaseModel):
    """Request to create an event in the family or a linked calendar."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Soccer practice"])
    start: datetime = Field(..., description="Event start (ISO 8601, UTC if no offset)")
    end: datetime = Field(..., description="Event end (ISO 8601, UTC if no offset)")
    description: Optional[str] = Field(None, max_length=5000)
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    linked_calendar_id: Optional[str] = Field(
        None,
        description="Linked calendar to write to (omit for the family calendar)",
    )

    @field_validator("title")
    @classmethod
    def validate_title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_times(self) -> "CreateEventRequest":
        if ensure_utc(self.end) <= ensure_utc(self.start):
            raise ValueError("end must be after start")
        return self


class UpdateEventRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @model_validator(mode="after")
    def validate_required_not_null(self) -> "UpdateEventRequest":
        cleared = [
            name
            for name in ("title", "start", "end", "color")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


class SyncStatusRequest(BaseModel):
    calendar_ids: list[str] = Field(..., description="Linked calendar IDs to check")


class RefreshRequest(BaseModel):
    calendar_ids: Optional[list[str]] = Field(
        None,
        description="Linked calendars to re-fetch (all of the family's when omitted)",
    )


class LinkGoogleAccountRequest(BaseModel):
    """Authorization code returned by the Google consent screen."""

    code: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = None
    user_id: str = Field(..., min_length=1)
    family_id: str = Field(..., min_length=1)


# =============================================================================
# Response Models
# =============================================================================


class EventResponse(BaseModel):
    """One event of the reconciled calendar."""

    id: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool
    color: str
    user_id: Optional[str] = None
    family_id: Optional[str] = None
    linked_calendar_id: Optional[str] = None
    external_event_id: Optional[str] = None
    is_external: bool = False
    read_only: bool = False
    source: Optional[str] = None
    html_link: Optional[str] = None

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventResponse":
        external = isinstance(event, ExternalCalendarEvent)
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
            color=event.color,
            user_id=event.user_id,
            family_id=event.family_id,
            linked_calendar_id=event.linked_calendar_id,
            external_event_id=event.external_event_id,
            is_external=external,
            read_only=event.read_only if external else False,
            source=event.source if external else None,
            html_link=event.html_link if external else None,
        )


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    time_min: Optional[datetime] = None
    time_max: Optional[datetime] = None


class SyncStatusResponse(BaseModel):
    status: dict[str, bool] = Field(..., description="True when the calendar is reachable")


class LinkedCalendarResponse(BaseModel):
    id: str
    provider: str
    account_email: str
    provider_calendar_id: str
    name: str
    color: str

    @classmethod
    def from_calendar(cls, calendar: LinkedCalendar) -> "LinkedCalendarResponse":
        return cls(
            id=calendar.id,
            provider=calendar.provider,
            account_email=calendar.account_email,
            provider_calendar_id=calendar.provider_calendar_id,
            name=calendar.name,
            color=calendar.color,
        )


class LinkAccountResponse(BaseModel):
    calendars: list[LinkedCalendarResponse]


class CalendarOptionResponse(BaseModel):
    id: Optional[str] = None
    name: str
    color: str
    is_default: bool = False

    @classmethod
    def from_option(cls, option: CalendarOption) -> "CalendarOptionResponse":
        return cls(
            id=option.id,
            name=option.name,
            color=option.color,
            is_default=option.is_default,
        )


class HealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    version: str
    database_connected: bool
    providers: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    retryable: bool = False
