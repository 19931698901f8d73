"""
FastAPI application entrypoint for the review desk service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reviewdesk.api.routes import router as api_router
from reviewdesk.core.config import get_settings
from reviewdesk.core.errors import ReviewDeskError
from reviewdesk.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def handle_reviewdesk_error(request: Request, exc: ReviewDeskError) -> JSONResponse:
    """Render integration errors with the reconnect hint the dashboard relies on."""
    logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=int(exc.http_status), content=exc.to_dict())


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Review Desk",
        version="0.1.0",
        description="REST API for connecting Google Business Profile and managing reviews.",
    )
    app.add_exception_handler(ReviewDeskError, handle_reviewdesk_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
