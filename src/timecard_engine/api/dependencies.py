"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.calculators.types import utc_now
from timecard_engine.config import Settings, get_settings
from timecard_engine.database import init_db
from timecard_engine.errors import AuthorizationError
from timecard_engine.services import (
    AttestationService,
    ClockService,
    PayPeriodService,
    ScheduleSource,
    TimeEntryService,
)
from timecard_engine.services.schedule_snapshot import build_schedule_source


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_clock() -> Callable[[], datetime]:
    """Current time source; overridden in tests."""
    return utc_now


def get_schedule_source(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ScheduleSource:
    return build_schedule_source(
        settings.schedule_source_url, settings.schedule_source_timeout_seconds
    )


@dataclass(frozen=True)
class Caller:
    """Identity asserted by the upstream auth layer."""

    account_id: int
    account_type: str
    franchise_id: int


def _parse_id(name: str, value: str | None) -> int:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{name} header is required",
        )
    try:
        return int(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} format",
        )


async def get_caller(
    x_account_id: Annotated[str | None, Header()] = None,
    x_account_type: Annotated[str | None, Header()] = None,
    x_franchise_id: Annotated[str | None, Header()] = None,
) -> Caller:
    """Extract the caller identity from headers."""
    account_id = _parse_id("X-Account-Id", x_account_id)
    franchise_id = _parse_id("X-Franchise-Id", x_franchise_id)
    account_type = (x_account_type or "").strip().upper()
    if account_type not in ("TUTOR", "ADMIN"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Account-Type header must be TUTOR or ADMIN",
        )
    return Caller(account_id, account_type, franchise_id)


async def require_tutor(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
    if caller.account_type != "TUTOR":
        raise AuthorizationError("Tutor account required")
    return caller


async def require_admin(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
    if caller.account_type != "ADMIN":
        raise AuthorizationError("Admin account required")
    return caller


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Clock = Annotated[Callable[[], datetime], Depends(get_clock)]
Source = Annotated[ScheduleSource, Depends(get_schedule_source)]
Tutor = Annotated[Caller, Depends(require_tutor)]
Admin = Annotated[Caller, Depends(require_admin)]
AnyCaller = Annotated[Caller, Depends(get_caller)]


def get_clock_service(db: DbSession, settings: AppSettings, now: Clock, source: Source) -> ClockService:
    return ClockService(db, settings, now, source)


def get_time_entry_service(
    db: DbSession, settings: AppSettings, now: Clock, source: Source
) -> TimeEntryService:
    return TimeEntryService(db, settings, now, source)


def get_attestation_service(db: DbSession, settings: AppSettings, now: Clock) -> AttestationService:
    return AttestationService(db, settings, now)


def get_pay_period_service(db: DbSession, settings: AppSettings, now: Clock) -> PayPeriodService:
    return PayPeriodService(db, settings, now)


ClockServiceDep = Annotated[ClockService, Depends(get_clock_service)]
TimeEntryServiceDep = Annotated[TimeEntryService, Depends(get_time_entry_service)]
AttestationServiceDep = Annotated[AttestationService, Depends(get_attestation_service)]
PayPeriodServiceDep = Annotated[PayPeriodService, Depends(get_pay_period_service)]
