"""Schedule reconciliation.

Compares a day's manual sessions with the intervals of a schedule snapshot.
The verdict is a pure function of the two interval sets, so a stored
comparison can always be recomputed from the stored snapshot and sessions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from timecard_engine.calculators.intervals import normalize_intervals, subtract_intervals
from timecard_engine.calculators.types import Comparison, ComparisonPolicy, Interval


def reconcile(
    sessions: Sequence[Interval],
    scheduled: Sequence[Interval],
    computed_at: datetime,
) -> Comparison:
    """Reconcile manual sessions against scheduled intervals.

    Overlapping or adjacent scheduled intervals are merged before counting so
    no minute is counted twice. ``matches`` requires the two unions to agree
    boundary for boundary; equal totals alone are not a match.
    """
    manual_union = normalize_intervals(sessions)
    scheduled_union = normalize_intervals(scheduled)
    return Comparison(
        manual_union=manual_union,
        scheduled_union=scheduled_union,
        manual_only=subtract_intervals(manual_union, scheduled_union),
        scheduled_only=subtract_intervals(scheduled_union, manual_union),
        matches=manual_union == scheduled_union,
        computed_at=computed_at,
    )


def should_auto_approve(comparison: Comparison, policy: ComparisonPolicy) -> bool:
    """Whether a submitted day with this comparison skips admin review."""
    if policy is ComparisonPolicy.TOTAL_MINUTES:
        return comparison.matches or (
            comparison.manual_minutes > 0
            and comparison.manual_minutes == comparison.scheduled_minutes
        )
    return comparison.matches


def has_remaining_scheduled_time(scheduled: Sequence[Interval], now: datetime) -> bool:
    """True when any scheduled interval is still running or yet to start."""
    return any(interval.end > now for interval in scheduled)
