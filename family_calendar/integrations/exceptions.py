"""
Exceptions for calendar reconciliation and routing.

Provides structured error handling with retryable flags.

Propagation policy:
- Read path (external fetches) absorbs every error below except LocalStoreError.
- Write path absorbs external errors for update/delete only.
- LocalStoreError is never absorbed.
"""


class CalendarSyncError(Exception):
    """Base exception for calendar operations."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        if retryable is not None:
            self.retryable = retryable


class AuthExpiredError(CalendarSyncError):
    """
    Access token expired and could not be refreshed.

    Causes:
    - No refresh token stored for the linked calendar
    - Provider rejected the refresh token
    - Provider returned 401 for an API call

    The linked calendar is treated as unavailable for the current cycle.
    """

    retryable = False


class ProviderUnavailableError(CalendarSyncError):
    """
    Network or HTTP failure talking to an external provider.

    Retryable after backoff.
    """

    retryable = True


class MalformedResponseError(CalendarSyncError):
    """Provider payload did not have the expected shape."""

    retryable = False


class ConflictOnCreateError(CalendarSyncError):
    """External provider rejected an event insert."""

    retryable = False


class UnsupportedProviderError(CalendarSyncError):
    """No adapter is registered for a linked calendar's provider tag."""

    retryable = False


class ReadOnlyEventError(CalendarSyncError):
    """
    Mutation attempted on an externally fetched event.

    External events not created through this app are read-only.
    """

    retryable = False


class LocalStoreError(CalendarSyncError):
    """Local event store or registry failure. Always surfaced."""

    retryable = False


class EventNotFoundError(LocalStoreError):
    """Event id does not exist in the local store."""

    retryable = False
