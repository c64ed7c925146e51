"""Tests for pay period resolution and workweek math."""

from datetime import date, datetime, timezone

import pytest

from timecard_engine.calculators.pay_period import (
    compute_window,
    previous_period_date,
    resolve_pay_period,
)
from timecard_engine.calculators.types import (
    FranchiseCalendar,
    PayPeriodOverrideRecord,
    PayPeriodType,
)
from timecard_engine.calculators.workweek import (
    last_closed_workweek,
    sunday_week_start,
    workweek_for,
)

ANCHOR = date(2024, 1, 7)


def calendar_for(period_type: PayPeriodType, overrides=()) -> FranchiseCalendar:
    return FranchiseCalendar(
        timezone="America/Chicago",
        period_type=period_type,
        biweekly_anchor=ANCHOR,
        overrides=tuple(overrides),
    )


class TestComputeWindow:
    """Canonical cadence windows."""

    @pytest.mark.parametrize(
        "period_type, for_date, expected",
        [
            (PayPeriodType.WEEKLY, date(2024, 1, 17), (date(2024, 1, 14), date(2024, 1, 20))),
            (PayPeriodType.WEEKLY, date(2024, 1, 14), (date(2024, 1, 14), date(2024, 1, 20))),
            (PayPeriodType.BIWEEKLY, date(2024, 1, 20), (date(2024, 1, 7), date(2024, 1, 20))),
            (PayPeriodType.BIWEEKLY, date(2024, 1, 21), (date(2024, 1, 21), date(2024, 2, 3))),
            (PayPeriodType.BIWEEKLY, date(2024, 1, 6), (date(2023, 12, 24), date(2024, 1, 6))),
            (PayPeriodType.SEMIMONTHLY, date(2024, 1, 15), (date(2024, 1, 1), date(2024, 1, 15))),
            (PayPeriodType.SEMIMONTHLY, date(2024, 2, 20), (date(2024, 2, 16), date(2024, 2, 29))),
            (PayPeriodType.MONTHLY, date(2023, 2, 10), (date(2023, 2, 1), date(2023, 2, 28))),
        ],
    )
    def test_windows(self, period_type, for_date, expected):
        assert compute_window(period_type, for_date, ANCHOR) == expected


class TestResolvePayPeriod:
    """Override precedence and UTC boundaries."""

    def test_semimonthly_computed(self):
        period = resolve_pay_period(7, date(2024, 1, 20), calendar_for(PayPeriodType.SEMIMONTHLY))
        assert period.start_date == date(2024, 1, 16)
        assert period.end_date == date(2024, 1, 31)
        assert period.source == "computed"
        assert period.override_id is None
        assert period.resolved_for_date == date(2024, 1, 20)

    def test_covering_override_wins(self):
        override = PayPeriodOverrideRecord(
            id=42,
            period_start=date(2024, 1, 18),
            period_end=date(2024, 1, 25),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        period = resolve_pay_period(
            7, date(2024, 1, 20), calendar_for(PayPeriodType.SEMIMONTHLY, [override])
        )
        assert period.source == "override"
        assert period.override_id == 42
        assert (period.start_date, period.end_date) == (date(2024, 1, 18), date(2024, 1, 25))

    def test_newest_override_then_highest_id(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        older = PayPeriodOverrideRecord(1, date(2024, 1, 1), date(2024, 1, 31), created)
        tie_low = PayPeriodOverrideRecord(2, date(2024, 1, 10), date(2024, 1, 25), created.replace(day=5))
        tie_high = PayPeriodOverrideRecord(3, date(2024, 1, 12), date(2024, 1, 22), created.replace(day=5))
        period = resolve_pay_period(
            7, date(2024, 1, 20), calendar_for(PayPeriodType.MONTHLY, [older, tie_high, tie_low])
        )
        assert period.override_id == 3

    def test_non_covering_override_is_ignored(self):
        override = PayPeriodOverrideRecord(
            9, date(2024, 2, 1), date(2024, 2, 10), datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        period = resolve_pay_period(
            7, date(2024, 1, 20), calendar_for(PayPeriodType.MONTHLY, [override])
        )
        assert period.source == "computed"

    def test_utc_boundaries_follow_local_midnight(self):
        period = resolve_pay_period(7, date(2024, 1, 20), calendar_for(PayPeriodType.SEMIMONTHLY))
        assert period.start_at == datetime(2024, 1, 16, 6, 0, tzinfo=timezone.utc)
        assert period.end_at == datetime(2024, 2, 1, 6, 0, tzinfo=timezone.utc)

    def test_previous_period(self):
        franchise_calendar = calendar_for(PayPeriodType.SEMIMONTHLY)
        current = resolve_pay_period(7, date(2024, 1, 20), franchise_calendar)
        previous = resolve_pay_period(7, previous_period_date(current), franchise_calendar)
        assert (previous.start_date, previous.end_date) == (date(2024, 1, 1), date(2024, 1, 15))

    def test_to_dict(self):
        data = resolve_pay_period(
            7, date(2024, 1, 20), calendar_for(PayPeriodType.SEMIMONTHLY)
        ).to_dict()
        assert data["periodType"] == "semimonthly"
        assert data["startAt"] == "2024-01-16T06:00:00Z"
        assert data["overrideId"] is None


class TestWorkweek:
    """Sunday-Saturday workweeks."""

    def test_sunday_week_start(self):
        assert sunday_week_start(date(2024, 1, 17)) == date(2024, 1, 14)
        assert sunday_week_start(date(2024, 1, 14)) == date(2024, 1, 14)
        assert sunday_week_start(date(2024, 1, 13)) == date(2024, 1, 7)

    def test_workweek_for(self):
        assert workweek_for(date(2024, 1, 13)) == (date(2024, 1, 7), date(2024, 1, 13))

    def test_last_closed_workweek_uses_local_time(self):
        # 2024-01-14 03:00Z is still Saturday evening in Chicago
        now = datetime(2024, 1, 14, 3, 0, tzinfo=timezone.utc)
        assert last_closed_workweek(now, "America/Chicago") == (
            date(2023, 12, 31),
            date(2024, 1, 6),
        )
        assert last_closed_workweek(now, "UTC") == (date(2024, 1, 7), date(2024, 1, 13))
