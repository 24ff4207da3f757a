"""
Google Calendar integration for Family Calendar.

Provides Google Calendar as a linked external calendar provider.
"""

from family_calendar.integrations.google_calendar.adapter import GoogleCalendarAdapter
from family_calendar.integrations.google_calendar.auth import (
    GoogleOAuthClient,
    GoogleUserInfo,
    OAuthTokens,
)
from family_calendar.integrations.google_calendar.client import GoogleCalendarClient
from family_calendar.integrations.google_calendar.provider import GoogleCalendarProvider

__all__ = [
    "GoogleCalendarAdapter",
    "GoogleCalendarClient",
    "GoogleCalendarProvider",
    "GoogleOAuthClient",
    "GoogleUserInfo",
    "OAuthTokens",
]
