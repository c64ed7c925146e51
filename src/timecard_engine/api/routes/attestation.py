"""Weekly attestation endpoints for the signed-in tutor."""

from fastapi import APIRouter, status

from timecard_engine.api.dependencies import AttestationServiceDep, Tutor
from timecard_engine.api.schemas import (
    AttestationReminderResponse,
    AttestationStatusResponse,
    ErrorResponse,
    SignAttestationRequest,
)

router = APIRouter(prefix="/attestation/me", tags=["attestation"])


@router.get("/status", response_model=AttestationStatusResponse)
async def attestation_status(
    tutor: Tutor, service: AttestationServiceDep
) -> AttestationStatusResponse:
    """Signing state of the last closed workweek."""
    result = await service.status(tutor.account_id, tutor.franchise_id)
    return AttestationStatusResponse.model_validate(result.to_dict())


@router.get("/reminder", response_model=AttestationReminderResponse)
async def attestation_reminder(
    tutor: Tutor, service: AttestationServiceDep
) -> AttestationReminderResponse:
    """Whether the tutor must sign before entering new time."""
    result = await service.reminder(tutor.account_id, tutor.franchise_id)
    return AttestationReminderResponse.model_validate(result.to_dict())


@router.post(
    "/sign",
    response_model=AttestationStatusResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def sign_attestation(
    tutor: Tutor,
    service: AttestationServiceDep,
    payload: SignAttestationRequest,
) -> AttestationStatusResponse:
    """Sign the last closed workweek."""
    result = await service.sign(tutor.account_id, tutor.franchise_id, payload.typed_name)
    return AttestationStatusResponse.model_validate(result.to_dict())
