"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timecard_engine import __version__
from timecard_engine.api.routes import (
    attestation_router,
    clock_router,
    health_router,
    pay_period_router,
    time_entry_router,
)
from timecard_engine.config import configure_logging, get_settings
from timecard_engine.database import create_schema, dispose_db, init_db
from timecard_engine.errors import TimecardError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(settings)
    init_db()
    if settings.create_schema:
        await create_schema()
    yield
    # Shutdown
    await dispose_db()


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Timecard Engine API",
        description="Tutor clock sessions, schedule reconciliation, and timecard approvals",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(TimecardError)
    async def timecard_exception_handler(
        request: Request, exc: TimecardError
    ) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    for router in (clock_router, time_entry_router, attestation_router, pay_period_router):
        app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
