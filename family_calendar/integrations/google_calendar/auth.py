"""
Google OAuth 2.0 token handling for linked calendars.

Implements the parts of the authorization code flow the core consumes:
1. Exchange an authorization code (from the consent UI) for tokens
2. Read the account's user info
3. Refresh an expired access token using the refresh token
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import httpx

from family_calendar.config import Settings, get_settings
from family_calendar.integrations.exceptions import (
    AuthExpiredError,
    MalformedResponseError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# Calendar API scopes
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


@dataclass
class OAuthTokens:
    """OAuth token response from Google."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: int
    token_type: str = "Bearer"
    scope: str = ""
    issued_at: Optional[datetime] = None

    @property
    def expiry(self) -> datetime:
        """Calculate token expiry time."""
        issued_at = self.issued_at or datetime.now(timezone.utc)
        return issued_at + timedelta(seconds=self.expires_in)


@dataclass
class GoogleUserInfo:
    """User info from Google OAuth."""

    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


def _parse_token_response(token_data, refresh_token: Optional[str] = None) -> OAuthTokens:
    if not isinstance(token_data, dict) or "access_token" not in token_data:
        raise MalformedResponseError("Token response has no access_token")
    try:
        expires_in = int(token_data.get("expires_in", 3600))
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"Invalid expires_in in token response: {token_data.get('expires_in')!r}",
            original_error=e,
        )
    return OAuthTokens(
        access_token=token_data["access_token"],
        # Google omits refresh_token on refresh; keep the original one
        refresh_token=token_data.get("refresh_token") or refresh_token,
        expires_in=expires_in,
        token_type=token_data.get("token_type", "Bearer"),
        scope=token_data.get("scope", ""),
        issued_at=datetime.now(timezone.utc),
    )


class GoogleOAuthClient:
    """
    Talks to Google's OAuth endpoints.

    Usage:
        oauth = GoogleOAuthClient(settings)

        # Linking: code from the consent UI
        tokens = await oauth.exchange_code(code, redirect_uri)
        user_info = await oauth.get_user_info(tokens.access_token)

        # Later, when the access token has expired
        new_tokens = await oauth.refresh_token(tokens.refresh_token)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Application settings (defaults to get_settings())
            transport: Optional httpx transport (used by tests)
        """
        settings = settings or get_settings()
        self.client_id = settings.google_oauth_client_id
        self.client_secret = settings.google_oauth_client_secret
        self.redirect_uri = settings.google_oauth_redirect_uri
        self.token_url = settings.google_token_url
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_OAUTH_CLIENT_ID and "
                "GOOGLE_OAUTH_CLIENT_SECRET in environment."
            )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def get_authorization_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            state: Random string to prevent CSRF attacks
            redirect_uri: Overrides the configured redirect URI

        Returns:
            URL to send the user to for consent
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(CALENDAR_SCOPES),
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Always show consent screen (ensures refresh token)
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> OAuthTokens:
        """
        Exchange authorization code for access and refresh tokens.

        Raises:
            AuthExpiredError: If Google rejects the code
            ProviderUnavailableError: If the token endpoint cannot be reached
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri or self.redirect_uri,
        }

        token_data = await self._post_token(data, "exchange authorization code")
        logger.info("Exchanged authorization code for tokens")
        return _parse_token_response(token_data)

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        """
        Refresh an expired access token.

        Raises:
            AuthExpiredError: If the refresh token is rejected
            ProviderUnavailableError: If the token endpoint cannot be reached
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        token_data = await self._post_token(data, "refresh access token")
        logger.info("Refreshed access token")
        return _parse_token_response(token_data, refresh_token=refresh_token)

    async def get_user_info(self, access_token: str) -> GoogleUserInfo:
        """
        Get user info from Google using access token.

        Raises:
            AuthExpiredError: If the token is rejected
            ProviderUnavailableError: If the request fails
        """
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            async with self._http() as client:
                response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
                response.raise_for_status()
                user_data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                raise AuthExpiredError("Access token rejected by userinfo", original_error=e)
            raise ProviderUnavailableError(
                f"Failed to fetch user information ({e.response.status_code})",
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Failed to fetch user information: {e}", original_error=e)
        except ValueError as e:
            raise MalformedResponseError("Userinfo response is not JSON", original_error=e)

        if not isinstance(user_data, dict) or not user_data.get("email"):
            raise MalformedResponseError("Userinfo response has no email")

        return GoogleUserInfo(
            email=user_data["email"],
            name=user_data.get("name"),
            picture=user_data.get("picture"),
        )

    async def _post_token(self, data: dict, action: str) -> dict:
        try:
            async with self._http() as client:
                response = await client.post(self.token_url, data=data)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500:
                raise ProviderUnavailableError(
                    f"Failed to {action}: token endpoint returned {status}",
                    original_error=e,
                )
            raise AuthExpiredError(
                f"Failed to {action}: rejected with {status}",
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Failed to {action}: {e}", original_error=e)
        except ValueError as e:
            raise MalformedResponseError(
                f"Failed to {action}: response is not JSON",
                original_error=e,
            )
