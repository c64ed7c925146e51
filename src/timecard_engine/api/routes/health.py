"""Health check endpoints."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from timecard_engine import __version__
from timecard_engine.api.dependencies import AppSettings, Clock, DbSession
from timecard_engine.api.schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(CamelModel):
    """Service, database and schedule source status."""

    status: str
    version: str
    checked_at: str
    database: str
    schedule_source: str


async def _database_ok(db: DbSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, settings: AppSettings, now: Clock) -> HealthResponse:
    """Report database reachability and whether a schedule source is configured.

    A missing schedule source degrades clock-out finalize only, so it does not
    change the overall status.
    """
    database_ok = await _database_ok(db)
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=__version__,
        checked_at=now().isoformat(),
        database="healthy" if database_ok else "unhealthy",
        schedule_source="configured" if settings.schedule_source_url else "unconfigured",
    )


@router.get("/ready")
async def readiness_check(db: DbSession) -> JSONResponse:
    """Ready once the database answers."""
    if await _database_ok(db):
        return JSONResponse({"status": "ready"})
    return JSONResponse(
        {"status": "unavailable"}, status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Process is up."""
    return {"status": "alive"}
