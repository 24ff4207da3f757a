"""
Google Calendar API client wrapper with retry and error handling.

Provides a clean interface over the Google Calendar API v3 for a single
linked calendar's bearer token.
"""

import logging
from typing import Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from family_calendar.integrations.exceptions import (
    AuthExpiredError,
    CalendarSyncError,
    ConflictOnCreateError,
    MalformedResponseError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, CalendarSyncError):
        return exception.retryable
    return False


def _handle_http_error(error: HttpError, creating: bool = False) -> None:
    """Convert HttpError to the matching CalendarSyncError."""
    status = error.resp.status
    message = str(error)
    content = error.content.decode("utf-8", "replace") if isinstance(error.content, bytes) else ""
    details = f"{message} {content}".lower()

    if status == 401:
        raise AuthExpiredError(
            "Authentication failed - access token may be invalid or expired",
            original_error=error,
        )
    elif status == 403 and ("quota" in details or "rate limit" in details):
        raise ProviderUnavailableError(
            "API quota exceeded",
            original_error=error,
        )
    elif status in RETRYABLE_STATUSES:
        raise ProviderUnavailableError(
            f"Google Calendar API unavailable ({status})",
            original_error=error,
        )
    elif creating and 400 <= status < 500:
        raise ConflictOnCreateError(
            f"Google Calendar rejected the new event ({status}): {message}",
            original_error=error,
        )
    else:
        raise ProviderUnavailableError(
            f"Google Calendar API error ({status}): {message}",
            original_error=error,
            retryable=False,
        )


def _handle_transport_error(error: Exception) -> None:
    raise ProviderUnavailableError(
        f"Could not reach Google Calendar: {error}",
        original_error=error,
    )


class GoogleCalendarClient:
    """
    Wrapper around Google Calendar API v3.

    Provides:
    - Automatic retry with exponential backoff
    - Consistent error handling
    - Pagination handling for list operations
    """

    def __init__(self, access_token: str):
        """
        Initialize the client.

        Args:
            access_token: Bearer token for the linked calendar's account
        """
        self._service: Resource = build(
            "calendar",
            "v3",
            credentials=Credentials(token=access_token),
            cache_discovery=False,
        )

    @property
    def service(self) -> Resource:
        """Get the underlying Google API service."""
        return self._service

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def list_events(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
        max_results: int = 250,
        page_token: Optional[str] = None,
    ) -> dict:
        """
        List events from a calendar, recurring events expanded.

        Args:
            calendar_id: Calendar to query
            time_min: Lower bound (RFC 3339)
            time_max: Upper bound (RFC 3339)
            max_results: Maximum events per page
            page_token: Token for pagination

        Returns:
            API response with items and nextPageToken
        """
        try:
            response = self._service.events().list(
                calendarId=calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy="startTime",
                maxResults=max_results,
                pageToken=page_token,
            ).execute()
        except HttpError as e:
            _handle_http_error(e)
        except (HttpLib2Error, OSError) as e:
            _handle_transport_error(e)

        if not isinstance(response, dict) or not isinstance(response.get("items", []), list):
            raise MalformedResponseError(
                f"Unexpected events.list response for {calendar_id}"
            )
        return response

    def list_all_events(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
    ) -> list[dict]:
        """
        List all events with automatic pagination.

        Args:
            calendar_id: Calendar to query
            time_min: Lower bound (RFC 3339)
            time_max: Upper bound (RFC 3339)

        Returns:
            List of all raw events in the range
        """
        all_events = []
        page_token = None

        while True:
            response = self.list_events(
                calendar_id=calendar_id,
                time_min=time_min,
                time_max=time_max,
                page_token=page_token,
            )

            all_events.extend(response.get("items", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(all_events)} events from {calendar_id}")
        return all_events

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        """
        Create a new event.

        Not retried: a retried insert can duplicate the event.

        Args:
            calendar_id: Calendar to create event in
            body: Event data in Google Calendar format

        Returns:
            Created event with ID
        """
        try:
            result = self._service.events().insert(
                calendarId=calendar_id,
                body=body,
            ).execute()
        except HttpError as e:
            _handle_http_error(e, creating=True)
        except (HttpLib2Error, OSError) as e:
            _handle_transport_error(e)

        if not isinstance(result, dict) or not result.get("id"):
            raise MalformedResponseError("Google Calendar returned an event without an id")

        logger.info(f"Created event {result['id']} in {calendar_id}")
        return result

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def patch_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        """
        Patch an existing event (partial update).

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to update
            body: Fields to update

        Returns:
            Updated event
        """
        try:
            result = self._service.events().patch(
                calendarId=calendar_id,
                eventId=event_id,
                body=body,
            ).execute()
            logger.info(f"Patched event {event_id} in {calendar_id}")
            return result
        except HttpError as e:
            _handle_http_error(e)
        except (HttpLib2Error, OSError) as e:
            _handle_transport_error(e)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to delete
        """
        try:
            self._service.events().delete(
                calendarId=calendar_id,
                eventId=event_id,
            ).execute()
            logger.info(f"Deleted event {event_id} from {calendar_id}")
        except HttpError as e:
            if e.resp.status in (404, 410):
                # Already deleted - consider success
                logger.warning(f"Event {event_id} already deleted")
                return
            _handle_http_error(e)
        except (HttpLib2Error, OSError) as e:
            _handle_transport_error(e)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def list_calendars(self) -> dict:
        """
        List the calendars visible to the token's account.

        Returns:
            calendarList.list response
        """
        try:
            return self._service.calendarList().list().execute()
        except HttpError as e:
            _handle_http_error(e)
        except (HttpLib2Error, OSError) as e:
            _handle_transport_error(e)
