"""Pay period resolution.

Resolution is a pure function of the franchise calendar and the date being
asked about. An explicit override always beats the computed cadence.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from timecard_engine.calculators.types import (
    FranchiseCalendar,
    PayPeriod,
    PayPeriodOverrideRecord,
    PayPeriodType,
)
from timecard_engine.calculators.workweek import workweek_for

SOURCE_OVERRIDE = "override"
SOURCE_COMPUTED = "computed"


def compute_window(
    period_type: PayPeriodType, for_date: date, biweekly_anchor: date
) -> tuple[date, date]:
    """Inclusive ``(start_date, end_date)`` of the cadence window."""
    if period_type is PayPeriodType.WEEKLY:
        return workweek_for(for_date)

    if period_type is PayPeriodType.BIWEEKLY:
        offset = (for_date - biweekly_anchor).days // 14
        start = biweekly_anchor + timedelta(days=offset * 14)
        return start, start + timedelta(days=13)

    last_day = calendar.monthrange(for_date.year, for_date.month)[1]
    if period_type is PayPeriodType.SEMIMONTHLY:
        if for_date.day <= 15:
            return for_date.replace(day=1), for_date.replace(day=15)
        return for_date.replace(day=16), for_date.replace(day=last_day)

    if period_type is PayPeriodType.MONTHLY:
        return for_date.replace(day=1), for_date.replace(day=last_day)

    raise ValueError(f"Unsupported pay period type: {period_type}")


def _local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def select_override(
    overrides: tuple[PayPeriodOverrideRecord, ...] | list[PayPeriodOverrideRecord],
    for_date: date,
) -> PayPeriodOverrideRecord | None:
    """Newest covering override, ties broken by highest id."""
    covering = [o for o in overrides if o.covers(for_date)]
    if not covering:
        return None
    return max(covering, key=lambda o: (o.created_at, o.id))


def resolve_pay_period(
    franchise_id: int, for_date: date, franchise_calendar: FranchiseCalendar
) -> PayPeriod:
    """Resolve the pay period containing ``for_date``."""
    tz = ZoneInfo(franchise_calendar.timezone)
    override = select_override(franchise_calendar.overrides, for_date)
    if override is not None:
        start_date, end_date = override.period_start, override.period_end
        source, override_id = SOURCE_OVERRIDE, override.id
    else:
        start_date, end_date = compute_window(
            franchise_calendar.period_type, for_date, franchise_calendar.biweekly_anchor
        )
        source, override_id = SOURCE_COMPUTED, None

    return PayPeriod(
        franchise_id=franchise_id,
        timezone=franchise_calendar.timezone,
        period_type=franchise_calendar.period_type,
        start_date=start_date,
        end_date=end_date,
        start_at=_local_midnight_utc(start_date, tz),
        end_at=_local_midnight_utc(end_date + timedelta(days=1), tz),
        source=source,
        override_id=override_id,
        resolved_for_date=for_date,
    )


def previous_period_date(period: PayPeriod) -> date:
    """Date to resolve for the period immediately before ``period``."""
    return period.start_date - timedelta(days=1)
