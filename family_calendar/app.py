"""
Application container.

Builds every collaborator explicitly from Settings at startup and releases
them at teardown. Nothing is created at import time; the HTTP layer keeps the
container on app.state.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from family_calendar.config import Settings, get_settings
from family_calendar.database import Database
from family_calendar.integrations.google_calendar.auth import GoogleOAuthClient
from family_calendar.integrations.google_calendar.provider import GoogleCalendarProvider
from family_calendar.integrations.registry import ProviderRegistry
from family_calendar.services.calendar_service import CalendarService
from family_calendar.services.event_store import SQLAlchemyEventStore
from family_calendar.services.fetcher import ExternalEventFetcher
from family_calendar.services.linked_calendars import SQLAlchemyLinkedCalendarRegistry
from family_calendar.services.linking import AccountLinkingService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything one running application instance owns."""

    settings: Settings
    database: Database
    events: SQLAlchemyEventStore
    calendars: SQLAlchemyLinkedCalendarRegistry
    providers: ProviderRegistry
    google: GoogleCalendarProvider
    calendar_service: CalendarService
    linking: AccountLinkingService

    async def shutdown(self) -> None:
        """Release provider threads and database connections."""
        logger.info("Shutting down Family Calendar")
        await self.google.close()
        await self.database.dispose()


def build_container(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
) -> Container:
    """
    Wire the application from settings.

    Args:
        settings: Application settings (defaults to get_settings())
        database: Use this database handle instead of settings.database_url
        oauth_client: Use this OAuth client (tests inject one with a mock transport)
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)

    events = SQLAlchemyEventStore(database)
    calendars = SQLAlchemyLinkedCalendarRegistry(database)

    oauth_client = oauth_client or GoogleOAuthClient(settings)
    google = GoogleCalendarProvider(
        oauth_client,
        refresh_margin=timedelta(seconds=settings.token_refresh_margin_seconds),
    )
    providers = ProviderRegistry([google])

    fetcher = ExternalEventFetcher(
        providers,
        calendars,
        cache_ttl_seconds=settings.external_cache_ttl_seconds,
        retries=settings.external_fetch_retries,
    )
    calendar_service = CalendarService(
        events,
        calendars,
        providers,
        fetcher,
        sync_check_hours=settings.sync_check_hours,
        cache_ttl_seconds=settings.external_cache_ttl_seconds,
    )
    linking = AccountLinkingService(
        oauth_client,
        google,
        calendars,
        default_color=settings.default_calendar_color,
        on_change=calendar_service.invalidate,
    )

    return Container(
        settings=settings,
        database=database,
        events=events,
        calendars=calendars,
        providers=providers,
        google=google,
        calendar_service=calendar_service,
        linking=linking,
    )


async def startup(settings: Optional[Settings] = None, **overrides) -> Container:
    """
    Build the container and prepare the database.

    Tables are created directly in development; production relies on
    Alembic migrations.
    """
    settings = settings or get_settings()
    settings.validate_production_config()

    container = build_container(settings, **overrides)
    if settings.is_development:
        await container.database.create_all()

    logger.info(
        f"Family Calendar started ({settings.python_env}, "
        f"providers: {container.providers.providers})"
    )
    return container
