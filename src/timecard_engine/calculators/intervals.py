"""Interval arithmetic over minute-aligned UTC instants."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from timecard_engine.calculators.types import Interval
from timecard_engine.errors import ValidationError


def truncate_to_minute(value: datetime) -> datetime:
    """Drop seconds and microseconds."""
    return value.replace(second=0, microsecond=0)


def require_minute_instant(value: datetime, label: str = "timestamp") -> datetime:
    """Return ``value`` in UTC, rejecting naive or sub-minute instants."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{label} must include a timezone offset", field=label)
    if value.second or value.microsecond:
        raise ValidationError(f"{label} must be aligned to the minute", field=label)
    return value.astimezone(timezone.utc)


def make_interval(start: datetime, end: datetime, label: str = "interval") -> Interval:
    """Build a validated interval with ``end > start``."""
    start_utc = require_minute_instant(start, f"{label}.startAt")
    end_utc = require_minute_instant(end, f"{label}.endAt")
    if end_utc <= start_utc:
        raise ValidationError(f"{label} must end after it starts", field=label)
    return Interval(start_utc, end_utc)


def normalize_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Sort and merge overlapping or adjacent intervals."""
    merged: list[Interval] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            if interval.end > last.end:
                merged[-1] = Interval(last.start, interval.end)
            continue
        merged.append(interval)
    return merged


def subtract_intervals(base: Sequence[Interval], remove: Sequence[Interval]) -> list[Interval]:
    """Portions of ``base`` not covered by ``remove``.

    Both inputs must already be normalized.
    """
    result: list[Interval] = []
    for interval in base:
        cursor = interval.start
        for cut in remove:
            if cut.end <= cursor or cut.start >= interval.end:
                continue
            if cut.start > cursor:
                result.append(Interval(cursor, cut.start))
            cursor = max(cursor, cut.end)
            if cursor >= interval.end:
                break
        if cursor < interval.end:
            result.append(Interval(cursor, interval.end))
    return result


def total_minutes(intervals: Iterable[Interval]) -> int:
    return sum(i.minutes for i in intervals)


def local_day_bounds(work_date: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at ``work_date`` and the next midnight."""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(work_date, time.min, tzinfo=tz)
    end = datetime.combine(work_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def validate_sessions(
    sessions: Sequence[tuple[datetime, datetime]],
    work_date: date,
    tz_name: str,
    max_sessions: int,
) -> list[Interval]:
    """Validate manually entered sessions for one work date.

    Sessions must be aware, minute-aligned, end after they start, fall within
    the local calendar day, and not overlap. Returns them sorted ascending.
    """
    if len(sessions) > max_sessions:
        raise ValidationError(
            f"At most {max_sessions} sessions may be recorded per day",
            maxSessions=max_sessions,
        )
    day_start, day_end = local_day_bounds(work_date, tz_name)
    intervals = []
    for index, (start, end) in enumerate(sessions):
        interval = make_interval(start, end, f"sessions[{index}]")
        if interval.start < day_start or interval.end > day_end:
            raise ValidationError(
                f"sessions[{index}] must fall on {work_date.isoformat()} in {tz_name}",
                field=f"sessions[{index}]",
            )
        intervals.append(interval)

    intervals.sort()
    for previous, current in zip(intervals, intervals[1:]):
        if current.start < previous.end:
            raise ValidationError(
                "Sessions must not overlap",
                overlap={"first": previous.to_dict(), "second": current.to_dict()},
            )
    return intervals


def merge_session(existing: Sequence[Interval], closed: Interval) -> list[Interval]:
    """Insert a closed clock session into a day's sessions.

    Overlapping sessions are coalesced with it; a zero-length session is
    dropped.
    """
    if closed.end <= closed.start:
        return sorted(existing)
    start, end = closed.start, closed.end
    kept = []
    for interval in existing:
        if interval.start < end and interval.end > start:
            start = min(start, interval.start)
            end = max(end, interval.end)
        else:
            kept.append(interval)
    kept.append(Interval(start, end))
    return sorted(kept)
