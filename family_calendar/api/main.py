"""
FastAPI application for Family Calendar.

Exposes the reconciliation core over HTTP:
- Reconciled family calendar (range and single day)
- Event create/update/delete routed to the right calendar
- Linked calendar health and forced refresh
- Linking Google accounts and listing calendar options
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from family_calendar import __version__
from family_calendar.api.dependencies import (
    get_calendar_service,
    get_container,
    get_linking_service,
)
from family_calendar.api.middleware import RequestLoggingMiddleware
from family_calendar.api.models import (
    CalendarOptionResponse,
    CreateEventRequest,
    ErrorResponse,
    EventListResponse,
    EventResponse,
    HealthResponse,
    LinkAccountResponse,
    LinkedCalendarResponse,
    LinkGoogleAccountRequest,
    RefreshRequest,
    SyncStatusRequest,
    SyncStatusResponse,
    UpdateEventRequest,
)
from family_calendar.app import Container, startup
from family_calendar.config import Settings
from family_calendar.integrations.base import EventDraft
from family_calendar.integrations.exceptions import (
    AuthExpiredError,
    CalendarSyncError,
    ConflictOnCreateError,
    EventNotFoundError,
    LocalStoreError,
    MalformedResponseError,
    ProviderUnavailableError,
    ReadOnlyEventError,
    UnsupportedProviderError,
)
from family_calendar.logging_config import configure_logging
from family_calendar.services.calendar_service import CalendarService
from family_calendar.services.linking import AccountLinkingService

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type, int, str]] = [
    (EventNotFoundError, 404, "not_found"),
    (LocalStoreError, 500, "local_store_error"),
    (ReadOnlyEventError, 403, "read_only"),
    (AuthExpiredError, 401, "auth_expired"),
    (ConflictOnCreateError, 409, "conflict_on_create"),
    (UnsupportedProviderError, 422, "unsupported_provider"),
    (ProviderUnavailableError, 502, "provider_unavailable"),
    (MalformedResponseError, 502, "malformed_response"),
]


def status_for(exc: CalendarSyncError) -> tuple[int, str]:
    """HTTP status and error type for a calendar error."""
    for error_class, status_code, error_type in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code, error_type
    return 500, "calendar_error"


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    container_factory: Optional[Callable[[], Awaitable[Container]]] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        container_factory: Builds the container at startup (tests pass a fake)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging(settings)
        logger.info("Starting Family Calendar API")
        if container_factory is not None:
            container = await container_factory()
        else:
            container = await startup(settings)
        app.state.container = container
        logger.info("Family Calendar API started")

        yield

        logger.info("Shutting down Family Calendar API")
        app.state.container = None
        await container.shutdown()

    app = FastAPI(
        title="Family Calendar API",
        description=(
            "Family calendar merging the family's own events with linked "
            "external calendars."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)
    _register_exception_handlers(app)
    _register_routes(app)
    return app


# =============================================================================
# Exception Handlers
# =============================================================================


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error_type": "http_error",
                "message": exc.detail,
                "retryable": exc.status_code >= 500,
            },
        )

    @app.exception_handler(CalendarSyncError)
    async def calendar_error_handler(request: Request, exc: CalendarSyncError):
        status_code, error_type = status_for(exc)
        if status_code >= 500:
            logger.error(f"{error_type}: {exc}")
        else:
            logger.info(f"{error_type}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={
                "error_type": error_type,
                "message": exc.message,
                "retryable": exc.retryable,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=422,
            content={
                "error_type": "validation_error",
                "message": str(exc),
                "retryable": False,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error_type": "internal_error",
                "message": "An unexpected error occurred",
                "retryable": True,
            },
        )


# =============================================================================
# Routes
# =============================================================================


def _register_routes(app: FastAPI) -> None:
    error_responses = {
        401: {"model": ErrorResponse, "description": "Linked calendar authorization expired"},
        403: {"model": ErrorResponse, "description": "Event is read-only"},
        404: {"model": ErrorResponse, "description": "Event not found"},
        409: {"model": ErrorResponse, "description": "Provider rejected the new event"},
        502: {"model": ErrorResponse, "description": "Provider unavailable"},
    }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """Check API health, including the database connection."""
        container = get_container(request)
        try:
            async with container.database.session() as session:
                await session.execute(text("SELECT 1"))
            database_connected = True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            database_connected = False

        return HealthResponse(
            status="healthy" if database_connected else "unhealthy",
            version=__version__,
            database_connected=database_connected,
            providers=container.providers.providers,
        )

    @app.get(
        "/families/{family_id}/events",
        response_model=EventListResponse,
        summary="Reconciled family calendar",
        tags=["Events"],
    )
    async def list_family_events(
        family_id: str,
        time_min: Optional[datetime] = Query(None, description="Window start (ISO 8601)"),
        time_max: Optional[datetime] = Query(None, description="Window end (ISO 8601)"),
        user_id: Optional[str] = Query(None, description="Include this user's linked calendars"),
        service: CalendarService = Depends(get_calendar_service),
    ) -> EventListResponse:
        """
        List the family's events merged with its linked calendars.

        Defaults to the current and next month. Unreachable linked calendars
        contribute nothing; see POST /sync-status.
        """
        events = await service.get_reconciled_events(family_id, time_min, time_max, user_id)
        return EventListResponse(
            events=[EventResponse.from_event(e) for e in events],
            total=len(events),
            time_min=time_min,
            time_max=time_max,
        )

    @app.get(
        "/families/{family_id}/events/day/{day}",
        response_model=EventListResponse,
        summary="Events on one day",
        tags=["Events"],
    )
    async def list_day_events(
        family_id: str,
        day: date,
        user_id: Optional[str] = Query(None),
        service: CalendarService = Depends(get_calendar_service),
    ) -> EventListResponse:
        events = await service.get_events_on_date(family_id, day, user_id=user_id)
        return EventListResponse(
            events=[EventResponse.from_event(e) for e in events],
            total=len(events),
        )

    @app.post(
        "/events",
        response_model=EventResponse,
        status_code=201,
        responses=error_responses,
        tags=["Events"],
    )
    async def create_event(
        request: CreateEventRequest,
        service: CalendarService = Depends(get_calendar_service),
    ) -> EventResponse:
        """
        Create an event.

        With linked_calendar_id the event is created in that calendar first
        and mirrored locally; the request fails if the provider rejects it.
        """
        draft = EventDraft(
            title=request.title,
            start=request.start,
            end=request.end,
            description=request.description,
            user_id=request.user_id,
            family_id=request.family_id,
            color=request.color,
            linked_calendar_id=request.linked_calendar_id,
        )
        event = await service.create_event(draft)
        return EventResponse.from_event(event)

    @app.patch(
        "/events/{event_id}",
        response_model=EventResponse,
        responses=error_responses,
        tags=["Events"],
    )
    async def update_event(
        event_id: str,
        request: UpdateEventRequest,
        service: CalendarService = Depends(get_calendar_service),
    ) -> EventResponse:
        """
        Update an event.

        The local copy is always updated, even if the linked calendar is
        unreachable.
        """
        patch = request.to_patch()
        if not patch:
            raise HTTPException(status_code=400, detail="No fields to update")
        event = await service.update_event(event_id, patch)
        return EventResponse.from_event(event)

    @app.delete(
        "/events/{event_id}",
        status_code=204,
        responses=error_responses,
        tags=["Events"],
    )
    async def delete_event(
        event_id: str,
        service: CalendarService = Depends(get_calendar_service),
    ) -> Response:
        await service.delete_event(event_id)
        return Response(status_code=204)

    @app.post(
        "/sync-status",
        response_model=SyncStatusResponse,
        summary="Linked calendar health",
        tags=["Linked Calendars"],
    )
    async def sync_status(
        request: SyncStatusRequest,
        service: CalendarService = Depends(get_calendar_service),
    ) -> SyncStatusResponse:
        status = await service.get_sync_status(request.calendar_ids)
        return SyncStatusResponse(status=status)

    @app.post(
        "/families/{family_id}/refresh",
        status_code=204,
        summary="Force re-fetch of linked calendars",
        tags=["Linked Calendars"],
    )
    async def refresh_family(
        family_id: str,
        request: Optional[RefreshRequest] = None,
        service: CalendarService = Depends(get_calendar_service),
    ) -> Response:
        calendar_ids = request.calendar_ids if request else None
        await service.refresh(family_id, calendar_ids)
        return Response(status_code=204)

    @app.post(
        "/linked-calendars/google",
        response_model=LinkAccountResponse,
        status_code=201,
        responses={401: error_responses[401], 502: error_responses[502]},
        tags=["Linked Calendars"],
    )
    async def link_google_account(
        request: LinkGoogleAccountRequest,
        linking: AccountLinkingService = Depends(get_linking_service),
    ) -> LinkAccountResponse:
        """Link every writable calendar of a Google account using a consent code."""
        calendars = await linking.link_google_account(
            request.code,
            request.redirect_uri,
            request.user_id,
            request.family_id,
        )
        return LinkAccountResponse(
            calendars=[LinkedCalendarResponse.from_calendar(c) for c in calendars]
        )

    @app.get(
        "/users/{user_id}/calendar-options",
        response_model=list[CalendarOptionResponse],
        tags=["Linked Calendars"],
    )
    async def calendar_options(
        user_id: str,
        linking: AccountLinkingService = Depends(get_linking_service),
    ) -> list[CalendarOptionResponse]:
        """Calendars a new event can be written to, family calendar first."""
        options = await linking.calendar_options(user_id)
        return [CalendarOptionResponse.from_option(o) for o in options]


app = create_app()
