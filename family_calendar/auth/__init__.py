"""
Authentication module for Family Calendar.

Tracks the signed-in user as an explicit state machine.
"""

from family_calendar.auth.session import (
    AuthSession,
    AuthSnapshot,
    AuthState,
    InvalidTransitionError,
    SessionEvent,
    UserProfile,
)

__all__ = [
    "AuthSession",
    "AuthSnapshot",
    "AuthState",
    "InvalidTransitionError",
    "SessionEvent",
    "UserProfile",
]
