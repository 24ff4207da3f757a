"""
Linked calendar storage model.

Stores the external calendars a user linked, with the OAuth tokens used to
reach them. access_token and expires_at are always written together.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from family_calendar.integrations.base import DEFAULT_EVENT_COLOR, LinkedCalendar
from family_calendar.models.base import BaseModel, UTCDateTime


class LinkedCalendarRecord(BaseModel):
    """
    Row for one linked external calendar.

    Attributes:
        user_id: User who linked the calendar
        family_id: Family whose view includes the calendar
        provider: Provider tag ('google')
        account_email: Account the calendar belongs to
        provider_calendar_id: Calendar ID on the provider side
        display_name: Calendar name shown in the UI
        color: Color inherited by every event fetched from the calendar
        access_token: Current access token
        refresh_token: Refresh token for obtaining new access tokens
        expires_at: When the access token expires
    """

    __tablename__ = "linked_calendars"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="User who linked the calendar"
    )

    family_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="Family the calendar is shared with"
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="google",
        doc="Provider tag"
    )

    account_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Account email on the provider"
    )

    provider_calendar_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Calendar ID on the provider side"
    )

    display_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Calendar name"
    )

    color: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DEFAULT_EVENT_COLOR,
        doc="Hex color for events from this calendar"
    )

    access_token: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="OAuth access token"
    )

    refresh_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="OAuth refresh token"
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=True,
        doc="When the access token expires"
    )

    is_synced: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        doc="Whether the calendar is included in the family view"
    )

    __table_args__ = (
        Index(
            "ix_linked_calendars_user_provider_calendar",
            "user_id",
            "provider",
            "provider_calendar_id",
            unique=True,
        ),
    )

    def to_linked_calendar(self) -> LinkedCalendar:
        """Convert the row to an immutable LinkedCalendar value."""
        return LinkedCalendar(
            id=self.id,
            user_id=self.user_id,
            family_id=self.family_id,
            provider=self.provider,
            account_email=self.account_email,
            provider_calendar_id=self.provider_calendar_id,
            display_name=self.display_name,
            color=self.color,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            is_synced=self.is_synced,
        )

    def __repr__(self) -> str:
        return (
            f"<LinkedCalendarRecord(user_id={self.user_id}, provider={self.provider}, "
            f"calendar={self.provider_calendar_id})>"
        )
