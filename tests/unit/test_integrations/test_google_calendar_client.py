"""Tests for Google Calendar API client."""

from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from family_calendar.integrations.exceptions import (
    AuthExpiredError,
    ConflictOnCreateError,
    MalformedResponseError,
    ProviderUnavailableError,
)
from family_calendar.integrations.google_calendar.client import (
    GoogleCalendarClient,
    _handle_http_error,
    _is_retryable_error,
)


def make_http_error(status: int, message: str = "Error") -> HttpError:
    """Create a mock HttpError for testing."""
    resp = MagicMock()
    resp.status = status
    resp.reason = message
    return HttpError(resp=resp, content=message.encode())


class TestIsRetryableError:
    """Tests for retry decision logic."""

    def test_provider_unavailable_is_retryable(self):
        assert _is_retryable_error(ProviderUnavailableError("down")) is True

    def test_non_retryable_override(self):
        error = ProviderUnavailableError("bad request", retryable=False)
        assert _is_retryable_error(error) is False

    def test_auth_error_not_retryable(self):
        assert _is_retryable_error(AuthExpiredError("expired")) is False

    def test_other_exceptions(self):
        """Should return False for exceptions outside the taxonomy."""
        assert _is_retryable_error(ValueError("test")) is False
        assert _is_retryable_error(make_http_error(503)) is False


class TestHandleHttpError:
    """Tests for HTTP error to exception mapping."""

    def test_401_auth_expired(self):
        with pytest.raises(AuthExpiredError) as exc_info:
            _handle_http_error(make_http_error(401))
        assert "expired" in str(exc_info.value)

    def test_403_quota(self):
        with pytest.raises(ProviderUnavailableError) as exc_info:
            _handle_http_error(make_http_error(403, "Quota exceeded"))
        assert exc_info.value.retryable is True

    def test_403_rate_limit(self):
        with pytest.raises(ProviderUnavailableError):
            _handle_http_error(make_http_error(403, "User rate limit exceeded"))

    def test_403_forbidden_not_retryable(self):
        with pytest.raises(ProviderUnavailableError) as exc_info:
            _handle_http_error(make_http_error(403, "Forbidden"))
        assert exc_info.value.retryable is False

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        with pytest.raises(ProviderUnavailableError) as exc_info:
            _handle_http_error(make_http_error(status))
        assert exc_info.value.retryable is True
        assert str(status) in str(exc_info.value)

    def test_4xx_on_insert_is_conflict(self):
        with pytest.raises(ConflictOnCreateError):
            _handle_http_error(make_http_error(409, "duplicate"), creating=True)
        with pytest.raises(ConflictOnCreateError):
            _handle_http_error(make_http_error(400, "invalid"), creating=True)

    def test_401_on_insert_is_auth(self):
        with pytest.raises(AuthExpiredError):
            _handle_http_error(make_http_error(401), creating=True)

    def test_other_4xx(self):
        with pytest.raises(ProviderUnavailableError) as exc_info:
            _handle_http_error(make_http_error(404, "Not Found"))
        assert exc_info.value.retryable is False
        assert isinstance(exc_info.value.original_error, HttpError)


class TestGoogleCalendarClient:
    """Tests for GoogleCalendarClient operations."""

    @pytest.fixture
    def mock_build(self):
        with patch("family_calendar.integrations.google_calendar.client.build") as mock_build:
            yield mock_build

    @pytest.fixture
    def mock_service(self, mock_build):
        """Create mock Google Calendar service."""
        service = MagicMock()
        mock_build.return_value = service
        return service

    @pytest.fixture
    def client(self, mock_service):
        return GoogleCalendarClient("access-token")

    def test_builds_service_with_bearer_token(self, mock_build):
        GoogleCalendarClient("access-token")

        args, kwargs = mock_build.call_args
        assert args == ("calendar", "v3")
        assert kwargs["credentials"].token == "access-token"
        assert kwargs["cache_discovery"] is False

    def test_list_events(self, client, mock_service):
        mock_response = {"items": [{"id": "event-1"}]}
        mock_service.events().list().execute.return_value = mock_response

        result = client.list_events(
            calendar_id="primary",
            time_min="2026-01-15T00:00:00+00:00",
            time_max="2026-01-16T00:00:00+00:00",
        )

        assert result == mock_response
        _, kwargs = mock_service.events().list.call_args
        assert kwargs["calendarId"] == "primary"
        assert kwargs["singleEvents"] is True

    def test_list_events_malformed_payload(self, client, mock_service):
        mock_service.events().list().execute.return_value = {"items": "nope"}

        with pytest.raises(MalformedResponseError):
            client.list_events("primary", "a", "b")

    def test_list_events_auth_error_not_retried(self, client, mock_service):
        mock_service.events().list().execute.side_effect = make_http_error(401)

        with pytest.raises(AuthExpiredError):
            client.list_events("primary", "a", "b")
        assert mock_service.events().list().execute.call_count == 1

    def test_list_all_events_pagination(self, client, mock_service):
        """Should follow nextPageToken until exhausted."""
        page1 = {"items": [{"id": "event-1"}], "nextPageToken": "token-1"}
        page2 = {"items": [{"id": "event-2"}]}
        mock_service.events().list().execute.side_effect = [page1, page2]

        result = client.list_all_events("primary", "a", "b")

        assert [e["id"] for e in result] == ["event-1", "event-2"]

    def test_insert_event(self, client, mock_service):
        body = {"summary": "New Event", "start": {}, "end": {}}
        mock_service.events().insert().execute.return_value = {"id": "new-1", **body}

        result = client.insert_event(calendar_id="primary", body=body)

        assert result["id"] == "new-1"

    def test_insert_event_rejected(self, client, mock_service):
        mock_service.events().insert().execute.side_effect = make_http_error(409, "duplicate")

        with pytest.raises(ConflictOnCreateError):
            client.insert_event(calendar_id="primary", body={})

    def test_insert_event_without_id(self, client, mock_service):
        mock_service.events().insert().execute.return_value = {"summary": "x"}

        with pytest.raises(MalformedResponseError):
            client.insert_event(calendar_id="primary", body={})

    def test_patch_event(self, client, mock_service):
        mock_service.events().patch().execute.return_value = {"id": "g1", "summary": "New"}

        result = client.patch_event("primary", "g1", {"summary": "New"})

        assert result["summary"] == "New"

    def test_delete_event(self, client, mock_service):
        client.delete_event(calendar_id="primary", event_id="g1")
        mock_service.events().delete.assert_called()

    @pytest.mark.parametrize("status", [404, 410])
    def test_delete_already_gone(self, client, mock_service, status):
        """Deleting an event that no longer exists counts as success."""
        mock_service.events().delete().execute.side_effect = make_http_error(status)

        client.delete_event(calendar_id="primary", event_id="g1")

    def test_list_calendars(self, client, mock_service):
        mock_service.calendarList().list().execute.return_value = {"items": []}
        assert client.list_calendars() == {"items": []}
