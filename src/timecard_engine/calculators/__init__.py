"""Pure time, schedule, and pay period calculations."""

from timecard_engine.calculators.intervals import (
    make_interval,
    merge_session,
    normalize_intervals,
    subtract_intervals,
    truncate_to_minute,
    validate_sessions,
)
from timecard_engine.calculators.pay_period import resolve_pay_period
from timecard_engine.calculators.reconciler import (
    has_remaining_scheduled_time,
    reconcile,
    should_auto_approve,
)
from timecard_engine.calculators.types import (
    Comparison,
    ComparisonPolicy,
    FranchiseCalendar,
    Interval,
    PayPeriod,
    PayPeriodOverrideRecord,
    PayPeriodType,
)
from timecard_engine.calculators.workweek import last_closed_workweek, workweek_for

__all__ = [
    "Comparison",
    "ComparisonPolicy",
    "FranchiseCalendar",
    "Interval",
    "PayPeriod",
    "PayPeriodOverrideRecord",
    "PayPeriodType",
    "has_remaining_scheduled_time",
    "last_closed_workweek",
    "make_interval",
    "merge_session",
    "normalize_intervals",
    "reconcile",
    "resolve_pay_period",
    "should_auto_approve",
    "subtract_intervals",
    "truncate_to_minute",
    "validate_sessions",
    "workweek_for",
]
