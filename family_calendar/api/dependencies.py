"""
FastAPI dependency injection providers.

The application container is built in the lifespan handler and stored on
app.state; these providers hand its parts to the route handlers.
"""

import logging

from fastapi import HTTPException, Request

from family_calendar.app import Container
from family_calendar.services.calendar_service import CalendarService
from family_calendar.services.linking import AccountLinkingService

logger = logging.getLogger(__name__)


def get_container(request: Request) -> Container:
    """
    Get the running application's container.

    Raises:
        HTTPException: If the application has not finished starting
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        logger.error("Application container not initialized")
        raise HTTPException(
            status_code=503,
            detail="Service temporarily unavailable - not initialized",
        )
    return container


def get_calendar_service(request: Request) -> CalendarService:
    return get_container(request).calendar_service


def get_linking_service(request: Request) -> AccountLinkingService:
    return get_container(request).linking
