"""Time entry endpoints for tutors and admins."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from timecard_engine.api.dependencies import Admin, TimeEntryServiceDep, Tutor
from timecard_engine.api.schemas import (
    AdminEditRequest,
    DecisionRequest,
    ErrorResponse,
    PendingDaysResponse,
    SaveDayRequest,
    SubmitDayRequest,
    TimeEntryDayEnvelope,
    TimeEntryDayResponse,
)

router = APIRouter(prefix="/time-entry", tags=["time-entry"])


# ============================================================================
# Tutor
# ============================================================================


@router.get("/me/days/{work_date}", response_model=TimeEntryDayEnvelope)
async def get_day(
    tutor: Tutor,
    service: TimeEntryServiceDep,
    work_date: date,
) -> TimeEntryDayEnvelope:
    """Fetch the tutor's day, if one exists."""
    day = await service.get_day(tutor.account_id, tutor.franchise_id, work_date)
    return TimeEntryDayEnvelope(
        work_date=work_date,
        day=TimeEntryDayResponse.model_validate(day) if day is not None else None,
    )


@router.put(
    "/me/days/{work_date}",
    response_model=TimeEntryDayResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def save_day(
    tutor: Tutor,
    service: TimeEntryServiceDep,
    payload: SaveDayRequest,
    work_date: date,
) -> TimeEntryDayResponse:
    """Create or replace the sessions of a draft day."""
    day = await service.save_day(
        tutor.account_id,
        tutor.franchise_id,
        work_date,
        [s.as_tuple() for s in payload.sessions],
    )
    return TimeEntryDayResponse.model_validate(day)


@router.post(
    "/me/days/{work_date}/submit",
    response_model=TimeEntryDayResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_day(
    tutor: Tutor,
    service: TimeEntryServiceDep,
    work_date: date,
    payload: SubmitDayRequest | None = None,
) -> TimeEntryDayResponse:
    """Submit a draft day against its schedule snapshot."""
    snapshot = payload.schedule_snapshot if payload is not None else None
    day = await service.submit_day(tutor.account_id, tutor.franchise_id, work_date, snapshot)
    return TimeEntryDayResponse.model_validate(day)


# ============================================================================
# Admin
# ============================================================================


@router.get("/admin/pending", response_model=PendingDaysResponse)
async def list_pending(
    admin: Admin,
    service: TimeEntryServiceDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> PendingDaysResponse:
    """Approval queue for the admin's franchise."""
    days = await service.list_pending(admin.franchise_id, limit)
    return PendingDaysResponse(
        items=[TimeEntryDayResponse.model_validate(d) for d in days],
        total=len(days),
    )


@router.post(
    "/admin/days/{day_id}/decision",
    response_model=TimeEntryDayResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def decide_day(
    admin: Admin,
    service: TimeEntryServiceDep,
    payload: DecisionRequest,
    day_id: int,
) -> TimeEntryDayResponse:
    """Approve or deny a pending day."""
    day = await service.admin_decide(
        day_id, payload.decision, admin.account_id, admin.franchise_id, payload.reason
    )
    return TimeEntryDayResponse.model_validate(day)


@router.put(
    "/admin/days/{day_id}",
    response_model=TimeEntryDayResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def edit_day(
    admin: Admin,
    service: TimeEntryServiceDep,
    payload: AdminEditRequest,
    day_id: int,
) -> TimeEntryDayResponse:
    """Replace a day's sessions; the day returns to pending."""
    day = await service.admin_edit(
        day_id,
        [s.as_tuple() for s in payload.sessions],
        payload.reason,
        admin.account_id,
        admin.franchise_id,
    )
    return TimeEntryDayResponse.model_validate(day)
