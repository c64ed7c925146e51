"""Type definitions for the time calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso_utc(value: datetime) -> str:
    """Render an aware instant as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ComparisonPolicy(str, Enum):
    """Rule deciding whether a submitted day is auto-approved."""

    EXACT = "exact"
    TOTAL_MINUTES = "total_minutes"


class PayPeriodType(str, Enum):
    """Supported pay period cadences."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open UTC interval ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def to_dict(self) -> dict[str, str]:
        return {"startAt": iso_utc(self.start), "endAt": iso_utc(self.end)}


@dataclass
class Comparison:
    """Result of reconciling manual sessions against a schedule."""

    manual_union: list[Interval]
    scheduled_union: list[Interval]
    manual_only: list[Interval]
    scheduled_only: list[Interval]
    matches: bool
    computed_at: datetime
    version: int = 1

    @property
    def manual_minutes(self) -> int:
        return sum(i.minutes for i in self.manual_union)

    @property
    def scheduled_minutes(self) -> int:
        return sum(i.minutes for i in self.scheduled_union)

    def as_json(self) -> dict[str, Any]:
        """Shape persisted on the day and returned by the API."""
        return {
            "version": self.version,
            "computedAt": iso_utc(self.computed_at),
            "matches": self.matches,
            "manual": {
                "totalMinutes": self.manual_minutes,
                "union": [i.to_dict() for i in self.manual_union],
            },
            "scheduled": {
                "totalMinutes": self.scheduled_minutes,
                "union": [i.to_dict() for i in self.scheduled_union],
            },
            "diffs": {
                "manualOnly": [i.to_dict() for i in self.manual_only],
                "scheduledOnly": [i.to_dict() for i in self.scheduled_only],
            },
        }


@dataclass(frozen=True)
class PayPeriodOverrideRecord:
    """An override row as seen by the resolver."""

    id: int
    period_start: date
    period_end: date
    created_at: datetime

    def covers(self, for_date: date) -> bool:
        return self.period_start <= for_date <= self.period_end


@dataclass(frozen=True)
class FranchiseCalendar:
    """Pay calendar configuration for one franchise."""

    timezone: str
    period_type: PayPeriodType
    biweekly_anchor: date
    overrides: tuple[PayPeriodOverrideRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PayPeriod:
    """A resolved pay period window."""

    franchise_id: int
    timezone: str
    period_type: PayPeriodType
    start_date: date
    end_date: date
    start_at: datetime
    end_at: datetime
    source: str
    override_id: int | None
    resolved_for_date: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "franchiseId": self.franchise_id,
            "timezone": self.timezone,
            "periodType": self.period_type.value,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "startAt": iso_utc(self.start_at),
            "endAt": iso_utc(self.end_at),
            "source": self.source,
            "overrideId": self.override_id,
            "resolvedForDate": self.resolved_for_date.isoformat(),
        }
