"""Clock-in/out endpoints for the signed-in tutor."""

from fastapi import APIRouter, status

from timecard_engine.api.dependencies import ClockServiceDep, Tutor
from timecard_engine.api.schemas import (
    ClockOutRequest,
    ClockOutResponse,
    ClockStateResponse,
    ErrorResponse,
    IntervalResponse,
    TimeEntryDayResponse,
)

router = APIRouter(prefix="/clock/me", tags=["clock"])


@router.get("/state", response_model=ClockStateResponse)
async def get_clock_state(tutor: Tutor, clock: ClockServiceDep) -> ClockStateResponse:
    """Current clock state, recomputed from stored sessions."""
    state = await clock.fetch_state(tutor.account_id, tutor.franchise_id)
    return ClockStateResponse.model_validate(state)


@router.post(
    "/in",
    response_model=ClockStateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def clock_in(tutor: Tutor, clock: ClockServiceDep) -> ClockStateResponse:
    """Open a clock session."""
    state = await clock.clock_in(tutor.account_id, tutor.franchise_id)
    return ClockStateResponse.model_validate(state)


@router.post(
    "/out",
    response_model=ClockOutResponse,
    responses={404: {"model": ErrorResponse}},
)
async def clock_out(
    tutor: Tutor,
    clock: ClockServiceDep,
    payload: ClockOutRequest | None = None,
) -> ClockOutResponse:
    """Close the open session, optionally submitting the day."""
    payload = payload or ClockOutRequest()
    result = await clock.clock_out(
        tutor.account_id,
        tutor.franchise_id,
        finalize=payload.finalize,
        schedule_snapshot=payload.schedule_snapshot,
    )
    closed = result.closed_session
    return ClockOutResponse(
        state=ClockStateResponse.model_validate(result.state),
        day=TimeEntryDayResponse.model_validate(result.day),
        closed_session=(
            IntervalResponse(start_at=closed.start, end_at=closed.end) if closed else None
        ),
        finalize_requested=result.finalize_requested,
        submitted=result.submitted,
        submission_error=result.submission_error,
        remaining_scheduled_time=result.remaining_scheduled_time,
    )
