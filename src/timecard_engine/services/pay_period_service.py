"""Franchise calendar loading and pay period lookups."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.calculators.pay_period import previous_period_date, resolve_pay_period
from timecard_engine.calculators.types import (
    ComparisonPolicy,
    FranchiseCalendar,
    PayPeriod,
    PayPeriodOverrideRecord,
    PayPeriodType,
    utc_now,
)
from timecard_engine.calculators.workweek import local_today
from timecard_engine.config import Settings, get_settings
from timecard_engine.models import FranchisePayrollSettings, PayPeriodOverride

logger = logging.getLogger(__name__)


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class PayPeriodService:
    """Reads franchise payroll configuration and resolves pay periods.

    Configuration rows are owned by an external store; missing or invalid
    values fall back to the application defaults.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.now = now

    async def _get_settings_row(self, franchise_id: int) -> FranchisePayrollSettings | None:
        return await self.session.get(FranchisePayrollSettings, franchise_id)

    async def get_timezone(self, franchise_id: int) -> str:
        row = await self._get_settings_row(franchise_id)
        if row is not None and row.timezone:
            if is_valid_timezone(row.timezone):
                return row.timezone
            logger.warning(
                "Franchise %s has unknown timezone %r; using %s",
                franchise_id,
                row.timezone,
                self.settings.default_timezone,
            )
        return self.settings.default_timezone

    async def get_comparison_policy(self, franchise_id: int) -> ComparisonPolicy:
        row = await self._get_settings_row(franchise_id)
        raw = (row.comparison_policy if row is not None else None) or self.settings.comparison_policy
        try:
            return ComparisonPolicy(raw.strip().lower())
        except ValueError:
            return ComparisonPolicy(self.settings.comparison_policy)

    async def load_calendar(self, franchise_id: int) -> FranchiseCalendar:
        """Build the franchise calendar used by the resolver."""
        row = await self._get_settings_row(franchise_id)
        tz_name = await self.get_timezone(franchise_id)

        raw_type = (row.pay_period_type if row is not None else None) or ""
        try:
            period_type = PayPeriodType(raw_type.strip().lower())
        except ValueError:
            period_type = PayPeriodType(self.settings.default_pay_period_type)

        result = await self.session.execute(
            select(PayPeriodOverride).where(PayPeriodOverride.franchise_id == franchise_id)
        )
        overrides = tuple(
            PayPeriodOverrideRecord(
                id=o.id,
                period_start=o.period_start,
                period_end=o.period_end,
                created_at=o.created_at,
            )
            for o in result.scalars()
        )
        return FranchiseCalendar(
            timezone=tz_name,
            period_type=period_type,
            biweekly_anchor=self.settings.biweekly_anchor_date,
            overrides=overrides,
        )

    async def resolve(self, franchise_id: int, for_date: date | None = None) -> PayPeriod:
        """Pay period containing ``for_date`` (franchise-local today by default)."""
        franchise_calendar = await self.load_calendar(franchise_id)
        if for_date is None:
            for_date = local_today(self.now(), franchise_calendar.timezone)
        return resolve_pay_period(franchise_id, for_date, franchise_calendar)

    async def resolve_previous(
        self, franchise_id: int, for_date: date | None = None
    ) -> PayPeriod:
        """Pay period immediately before the one containing ``for_date``."""
        franchise_calendar = await self.load_calendar(franchise_id)
        if for_date is None:
            for_date = local_today(self.now(), franchise_calendar.timezone)
        current = resolve_pay_period(franchise_id, for_date, franchise_calendar)
        return resolve_pay_period(franchise_id, previous_period_date(current), franchise_calendar)
