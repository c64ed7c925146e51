"""Sunday-Saturday workweek arithmetic in a franchise timezone."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


def local_today(now: datetime, tz_name: str) -> date:
    """Calendar date of ``now`` in ``tz_name``."""
    return now.astimezone(ZoneInfo(tz_name)).date()


def sunday_week_start(day: date) -> date:
    """The Sunday on or before ``day``."""
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def workweek_for(day: date) -> tuple[date, date]:
    """``(sunday, saturday)`` of the workweek containing ``day``."""
    start = sunday_week_start(day)
    return start, start + timedelta(days=6)


def last_closed_workweek(now: datetime, tz_name: str) -> tuple[date, date]:
    """The most recent workweek that ended strictly before local ``now``."""
    current_start = sunday_week_start(local_today(now, tz_name))
    return workweek_for(current_start - timedelta(days=1))
