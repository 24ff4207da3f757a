"""
Auth session state machine.

Single source of truth for who is signed in. The auth backend reports
session changes as events; this object turns them into explicit states:

    UNAUTHENTICATED -> INITIALIZING -> AUTHENTICATED(profile)
    INITIALIZING | AUTHENTICATED -> ERROR

Listeners are called after every transition with the new snapshot.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class SessionEvent(str, Enum):
    """Session changes reported by the auth backend."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    SIGNED_OUT = "SIGNED_OUT"


class InvalidTransitionError(Exception):
    """Event not allowed in the current state."""

    def __init__(self, state: AuthState, event: str):
        super().__init__(f"Cannot handle {event} while {state.value}")
        self.state = state
        self.event = event


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    family_id: Optional[str] = None


@dataclass(frozen=True)
class AuthSnapshot:
    """State of the session after a transition."""

    state: AuthState
    profile: Optional[UserProfile] = None
    error: Optional[Exception] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED


Listener = Callable[[AuthSnapshot], None]

# Events accepted per state; SIGNED_OUT is accepted everywhere
_ALLOWED = {
    AuthState.UNAUTHENTICATED: {SessionEvent.SIGNED_IN, SessionEvent.SIGNED_OUT},
    AuthState.INITIALIZING: {
        SessionEvent.INITIAL_SESSION,
        SessionEvent.SIGNED_IN,
        SessionEvent.SIGNED_OUT,
    },
    AuthState.AUTHENTICATED: {
        SessionEvent.SIGNED_IN,
        SessionEvent.TOKEN_REFRESHED,
        SessionEvent.USER_UPDATED,
        SessionEvent.SIGNED_OUT,
    },
    AuthState.ERROR: {SessionEvent.SIGNED_IN, SessionEvent.SIGNED_OUT},
}


class AuthSession:
    """
    Explicit finite-state machine for the signed-in user.

    Usage:
        session = AuthSession()
        unsubscribe = session.subscribe(lambda snap: print(snap.state))
        session.begin()
        session.handle(SessionEvent.INITIAL_SESSION, profile)
    """

    def __init__(self):
        self._snapshot = AuthSnapshot(AuthState.UNAUTHENTICATED)
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._snapshot

    @property
    def state(self) -> AuthState:
        return self._snapshot.state

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._snapshot.profile

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def begin(self) -> AuthSnapshot:
        """Start restoring a session (app start or retry after an error)."""
        if self.state not in (AuthState.UNAUTHENTICATED, AuthState.ERROR):
            raise InvalidTransitionError(self.state, "begin")
        return self._transition(AuthSnapshot(AuthState.INITIALIZING))

    def fail(self, error: Exception) -> AuthSnapshot:
        """Record an auth backend failure."""
        if self.state not in (AuthState.INITIALIZING, AuthState.AUTHENTICATED):
            raise InvalidTransitionError(self.state, "fail")
        logger.warning(f"Auth session failed: {error}")
        return self._transition(AuthSnapshot(AuthState.ERROR, error=error))

    def handle(
        self,
        event: SessionEvent,
        profile: Optional[UserProfile] = None,
    ) -> AuthSnapshot:
        """
        Apply a session change reported by the auth backend.

        Args:
            event: What happened
            profile: The signed-in user, if the event carries a session

        Raises:
            InvalidTransitionError: If the event is not allowed in this state
                or a sign-in event arrives without a profile
        """
        event = SessionEvent(event)
        if event not in _ALLOWED[self.state]:
            raise InvalidTransitionError(self.state, event.value)

        if event == SessionEvent.SIGNED_OUT:
            return self._transition(AuthSnapshot(AuthState.UNAUTHENTICATED))

        if event == SessionEvent.INITIAL_SESSION:
            # No stored session means the user is simply signed out
            if profile is None:
                return self._transition(AuthSnapshot(AuthState.UNAUTHENTICATED))
            return self._transition(AuthSnapshot(AuthState.AUTHENTICATED, profile=profile))

        if event == SessionEvent.TOKEN_REFRESHED and profile is None:
            return self._transition(self._snapshot)

        if profile is None:
            raise InvalidTransitionError(self.state, f"{event.value} without a profile")
        return self._transition(AuthSnapshot(AuthState.AUTHENTICATED, profile=profile))

    def _transition(self, snapshot: AuthSnapshot) -> AuthSnapshot:
        previous = self._snapshot.state
        self._snapshot = snapshot
        logger.debug(f"Auth session {previous.value} -> {snapshot.state.value}")
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot
