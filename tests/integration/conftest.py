"""
Integration test fixtures for Family Calendar.

Provides an in-memory Google Calendar, a mocked Google OAuth endpoint and
an API client running the real application container, for testing complete
link, read and write flows end to end.
"""

import itertools
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from family_calendar.api.main import create_app
from family_calendar.app import startup
from family_calendar.integrations.exceptions import ProviderUnavailableError
from family_calendar.integrations.google_calendar.auth import (
    GOOGLE_USERINFO_URL,
    GoogleOAuthClient,
)


# =============================================================================
# Pytest Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


# =============================================================================
# Fake Google Calendar
# =============================================================================


class FakeGoogleCalendar:
    """
    In-memory stand-in for the Google Calendar API.

    Stores raw Google event bodies per calendar id and records the bearer
    token of every call. Setting offline makes every call fail the way an
    unreachable API does.
    """

    def __init__(self):
        self.calendar_list = [
            {"id": "primary", "summary": "Work", "accessRole": "owner", "backgroundColor": "#FF0000"},
            {"id": "kids", "summary": "Kids", "accessRole": "writer"},
            {"id": "holidays", "summary": "Holidays", "accessRole": "reader"},
        ]
        self.events: dict[str, list[dict]] = {"primary": [], "kids": [], "holidays": []}
        self.tokens_seen: list[str] = []
        self.offline = False
        self._ids = itertools.count(1)

    def add_event(self, calendar_id: str, summary: str, start: str, end: str) -> dict:
        event = {
            "id": f"g-{next(self._ids)}",
            "summary": summary,
            "start": {"dateTime": start},
            "end": {"dateTime": end},
            "status": "confirmed",
        }
        self.events[calendar_id].append(event)
        return event

    def client(self, access_token: str) -> "FakeGoogleClient":
        return FakeGoogleClient(self, access_token)


class FakeGoogleClient:
    """Same surface as GoogleCalendarClient, backed by FakeGoogleCalendar."""

    def __init__(self, google: FakeGoogleCalendar, access_token: str):
        self._google = google
        self._token = access_token

    def _call(self) -> None:
        self._google.tokens_seen.append(self._token)
        if self._google.offline:
            raise ProviderUnavailableError("Could not reach Google Calendar: connection refused")

    def list_all_events(self, calendar_id: str, time_min: str, time_max: str) -> list[dict]:
        self._call()
        return [dict(event) for event in self._google.events[calendar_id]]

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        self._call()
        event = dict(body, id=f"g-{next(self._google._ids)}", status="confirmed")
        self._google.events[calendar_id].append(event)
        return dict(event)

    def patch_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        self._call()
        for event in self._google.events[calendar_id]:
            if event["id"] == event_id:
                event.update(body)
                return dict(event)
        raise ProviderUnavailableError(f"Event {event_id} not found", retryable=False)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._call()
        self._google.events[calendar_id] = [
            event for event in self._google.events[calendar_id] if event["id"] != event_id
        ]

    def list_calendars(self) -> dict:
        self._call()
        return {"items": list(self._google.calendar_list)}


@pytest.fixture
def fake_google():
    """Empty Google account with two writable calendars and one read-only."""
    return FakeGoogleCalendar()


# =============================================================================
# Mock OAuth Endpoint
# =============================================================================


@pytest.fixture
def oauth_endpoint():
    """
    Settings for the mocked Google token endpoint.

    expires_in applies to tokens issued by the code exchange; refreshed
    tokens are always valid for an hour.
    """
    return {"expires_in": 3600, "refresh_calls": 0}


@pytest.fixture
def oauth_transport(settings, oauth_endpoint):
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == GOOGLE_USERINFO_URL:
            return httpx.Response(200, json={"email": "parent@example.com", "name": "Pat"})

        if str(request.url) == settings.google_token_url:
            form = dict(httpx.QueryParams(request.content.decode()))
            if form["grant_type"] == "authorization_code":
                if form["code"] != "good-code":
                    return httpx.Response(400, json={"error": "invalid_grant"})
                return httpx.Response(
                    200,
                    json={
                        "access_token": "access-1",
                        "refresh_token": "refresh-1",
                        "expires_in": oauth_endpoint["expires_in"],
                    },
                )
            oauth_endpoint["refresh_calls"] += 1
            return httpx.Response(200, json={"access_token": "access-2", "expires_in": 3600})

        return httpx.Response(404)

    return httpx.MockTransport(handler)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def integration_api_client(settings, fake_google, oauth_transport):
    """
    API client running the real container against fake Google services.

    Yields:
        dict with client, google (FakeGoogleCalendar) and container
    """
    state = {}

    async def container_factory():
        oauth_client = GoogleOAuthClient(settings, transport=oauth_transport)
        state["container"] = await startup(settings, oauth_client=oauth_client)
        return state["container"]

    with patch(
        "family_calendar.integrations.google_calendar.provider.GoogleCalendarClient",
        side_effect=fake_google.client,
    ):
        app = create_app(settings, container_factory=container_factory)
        with TestClient(app) as client:
            yield {
                "client": client,
                "google": fake_google,
                "container": state["container"],
            }


@pytest.fixture
def linked_account(integration_api_client):
    """Link the fake Google account for user-1 in fam-1."""
    response = integration_api_client["client"].post(
        "/linked-calendars/google",
        json={"code": "good-code", "user_id": "user-1", "family_id": "fam-1"},
    )
    assert response.status_code == 201
    return {cal["provider_calendar_id"]: cal for cal in response.json()["calendars"]}
