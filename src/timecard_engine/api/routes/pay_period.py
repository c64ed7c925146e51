"""Pay period lookup endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from timecard_engine.api.dependencies import AnyCaller, PayPeriodServiceDep
from timecard_engine.api.schemas import PayPeriodResponse

router = APIRouter(prefix="/pay-period", tags=["pay-period"])


@router.get("", response_model=PayPeriodResponse)
async def get_pay_period(
    caller: AnyCaller,
    service: PayPeriodServiceDep,
    for_date: Annotated[date | None, Query(alias="forDate")] = None,
) -> PayPeriodResponse:
    """Pay period containing ``forDate`` (today in the franchise timezone by default)."""
    period = await service.resolve(caller.franchise_id, for_date)
    return PayPeriodResponse.model_validate(period.to_dict())


@router.get("/previous", response_model=PayPeriodResponse)
async def get_previous_pay_period(
    caller: AnyCaller,
    service: PayPeriodServiceDep,
    for_date: Annotated[date | None, Query(alias="forDate")] = None,
) -> PayPeriodResponse:
    """Pay period before the one containing ``forDate``."""
    period = await service.resolve_previous(caller.franchise_id, for_date)
    return PayPeriodResponse.model_validate(period.to_dict())
