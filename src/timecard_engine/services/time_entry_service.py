"""Time entry day lifecycle: save, submit, admin decide and edit."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.calculators.intervals import validate_sessions
from timecard_engine.calculators.reconciler import reconcile, should_auto_approve
from timecard_engine.calculators.types import Interval, iso_utc, utc_now
from timecard_engine.config import Settings, get_settings
from timecard_engine.database import unit_of_work
from timecard_engine.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from timecard_engine.models import TimeEntryAudit, TimeEntryDay, TimeEntrySession
from timecard_engine.services.attestation_service import AttestationService
from timecard_engine.services.locking_service import DayLockService
from timecard_engine.services.pay_period_service import PayPeriodService
from timecard_engine.services.schedule_snapshot import (
    ScheduleSnapshot,
    ScheduleSource,
    parse_snapshot,
    verify_snapshot,
)
from timecard_engine.services.state_machine import (
    ActorType,
    AuditAction,
    InvalidTransitionError,
    TimeEntryDayStateMachine,
    TimeEntryStatus,
)

logger = logging.getLogger(__name__)

AUTO_APPROVAL_REASON = "auto-approved (exact schedule match)"
MIN_REASON_LENGTH = 5
MAX_REASON_LENGTH = 2000

DECISIONS = {
    "approve": (TimeEntryStatus.APPROVED, AuditAction.APPROVED),
    "deny": (TimeEntryStatus.DENIED, AuditAction.DENIED),
}

SessionInput = tuple[datetime, datetime]


def _sessions_json(sessions: Sequence[TimeEntrySession]) -> list[dict[str, Any]]:
    return [
        {
            "startAt": iso_utc(s.start_at),
            "endAt": iso_utc(s.end_at) if s.end_at else None,
            "sortOrder": s.sort_order,
        }
        for s in sessions
    ]


def _intervals_json(intervals: Sequence[Interval]) -> list[dict[str, Any]]:
    return [dict(i.to_dict(), sortOrder=n) for n, i in enumerate(intervals)]


def _submission_reason(matches: bool, auto_approved: bool) -> str:
    if auto_approved:
        return "exact_match" if matches else "total_minutes_match"
    return "outside_schedule"


def normalize_reason(reason: str | None, required: bool) -> str | None:
    """Trim a decision reason and enforce its length bounds."""
    text = (reason or "").strip()
    if len(text) > MAX_REASON_LENGTH:
        raise ValidationError(
            f"reason must be {MAX_REASON_LENGTH} characters or fewer", field="reason"
        )
    if required and len(text) < MIN_REASON_LENGTH:
        raise ValidationError(
            f"reason is required (min {MIN_REASON_LENGTH} characters)", field="reason"
        )
    return text or None


class TimeEntryService:
    """Service for the day-level approval lifecycle.

    Every status change and its audit record are written in one transaction.
    Mutations on a day take the day lock and are guarded by the row version.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utc_now,
        schedule_source: ScheduleSource | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.now = now
        self.schedule_source = schedule_source
        self.locks = DayLockService(session)
        self.calendar = PayPeriodService(session, self.settings, now)
        self.attestations = AttestationService(session, self.settings, now)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_day(
        self, tutor_id: int, franchise_id: int, work_date: date
    ) -> TimeEntryDay | None:
        return await self.locks.load_day(franchise_id, tutor_id, work_date, for_update=False)

    async def get_day_by_id(self, day_id: int, franchise_id: int) -> TimeEntryDay:
        day = await self.locks.load_day_by_id(day_id, for_update=False)
        if day is None or day.franchise_id != franchise_id:
            raise NotFoundError("Time entry day not found", dayId=day_id)
        return day

    async def list_pending(self, franchise_id: int, limit: int = 100) -> list[TimeEntryDay]:
        """Pending days of a franchise, oldest work date first."""
        result = await self.session.execute(
            select(TimeEntryDay)
            .where(
                TimeEntryDay.franchise_id == franchise_id,
                TimeEntryDay.status == TimeEntryStatus.PENDING.value,
            )
            .order_by(TimeEntryDay.work_date, TimeEntryDay.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars())

    # ------------------------------------------------------------------
    # Shared helpers (also used by the clock service)
    # ------------------------------------------------------------------

    def record_audit(
        self,
        day: TimeEntryDay,
        action: AuditAction,
        actor_type: ActorType,
        actor_id: int | None,
        previous_status: str | None,
        new_status: str,
        metadata: dict[str, Any] | None = None,
    ) -> TimeEntryAudit:
        """Append an audit record to ``day``."""
        audit = TimeEntryAudit(
            action=action.value,
            actor_account_type=actor_type.value,
            actor_account_id=actor_id,
            at=self.now(),
            previous_status=previous_status,
            new_status=new_status,
            details=metadata or {},
        )
        day.audits.append(audit)
        return audit

    def new_day(
        self, tutor_id: int, franchise_id: int, work_date: date, tz_name: str
    ) -> TimeEntryDay:
        day = TimeEntryDay(
            franchise_id=franchise_id,
            tutor_id=tutor_id,
            work_date=work_date,
            timezone=tz_name,
            status=TimeEntryStatus.DRAFT.value,
            clock_state=1,
            sessions=[],
            audits=[],
        )
        self.session.add(day)
        return day

    def replace_closed_sessions(self, day: TimeEntryDay, intervals: Sequence[Interval]) -> None:
        """Swap the day's closed sessions for ``intervals``, keeping any open one."""
        open_sessions = [s for s in day.sessions if s.end_at is None]
        closed = [
            TimeEntrySession(
                franchise_id=day.franchise_id,
                tutor_id=day.tutor_id,
                start_at=interval.start,
                end_at=interval.end,
                sort_order=n,
            )
            for n, interval in enumerate(sorted(intervals))
        ]
        for n, session in enumerate(open_sessions, start=len(closed)):
            session.sort_order = n
        day.sessions = closed + open_sessions
        day.updated_at = self.now()

    @staticmethod
    def closed_intervals(day: TimeEntryDay) -> list[Interval]:
        return sorted(Interval(s.start_at, s.end_at) for s in day.closed_sessions)

    def _ensure_no_open_session(self, day: TimeEntryDay, to_status: str) -> None:
        if day.open_session is not None:
            raise InvalidTransitionError(
                day.status, to_status, "tutor is still clocked in on this day"
            )

    # ------------------------------------------------------------------
    # Tutor operations
    # ------------------------------------------------------------------

    async def save_day(
        self,
        tutor_id: int,
        franchise_id: int,
        work_date: date,
        sessions: Sequence[SessionInput],
    ) -> TimeEntryDay:
        """Create or replace the manual sessions of a draft day."""
        tz_name = await self.calendar.get_timezone(franchise_id)
        intervals = validate_sessions(
            sessions, work_date, tz_name, self.settings.max_sessions_per_day
        )
        await self.attestations.ensure_not_blocking(tutor_id, franchise_id, work_date, tz_name)

        async with unit_of_work(self.session):
            await self.locks.lock_day(franchise_id, tutor_id, work_date)
            day = await self.locks.load_day(franchise_id, tutor_id, work_date)
            created = day is None
            if created:
                day = self.new_day(tutor_id, franchise_id, work_date, tz_name)
            elif not TimeEntryDayStateMachine.can_tutor_edit(day.status):
                raise InvalidTransitionError(
                    day.status,
                    TimeEntryStatus.DRAFT,
                    "submitted days can only be changed by an admin edit",
                )

            previous_sessions = _sessions_json(day.closed_sessions)
            self.replace_closed_sessions(day, intervals)
            self.record_audit(
                day,
                AuditAction.CREATED if created else AuditAction.SAVED,
                ActorType.TUTOR,
                tutor_id,
                None if created else day.status,
                day.status,
                {
                    "workDate": work_date.isoformat(),
                    "timezone": day.timezone,
                    "previousSessions": previous_sessions,
                    "sessions": _intervals_json(intervals),
                },
            )

        logger.info(
            "Tutor %s saved %d session(s) for %s (franchise %s)",
            tutor_id,
            len(intervals),
            work_date.isoformat(),
            franchise_id,
        )
        return await self._reload(day.id)

    async def fetch_snapshot(
        self, tutor_id: int, franchise_id: int, work_date: date
    ) -> ScheduleSnapshot:
        """Ask the configured schedule source for the day's snapshot."""
        if self.schedule_source is None:
            raise ValidationError("A schedule snapshot is required to submit this day")
        return await self.schedule_source.fetch(franchise_id, tutor_id, work_date)

    def check_snapshot(
        self,
        snapshot: ScheduleSnapshot | dict[str, Any],
        tutor_id: int,
        franchise_id: int,
        work_date: date,
    ) -> ScheduleSnapshot:
        """Validate a snapshot's shape, scope, and signature for this day."""
        snapshot = parse_snapshot(snapshot)
        if snapshot.franchise_id is not None and snapshot.franchise_id != franchise_id:
            raise AuthorizationError("Schedule snapshot belongs to another franchise")
        if snapshot.tutor_id is not None and snapshot.tutor_id != tutor_id:
            raise AuthorizationError("Schedule snapshot belongs to another tutor")
        if snapshot.work_date is not None and snapshot.work_date != work_date:
            raise ValidationError(
                "Schedule snapshot is for a different work date",
                snapshotWorkDate=snapshot.work_date.isoformat(),
            )
        secret = self.settings.schedule_snapshot_signing_secret
        if secret:
            verify_snapshot(snapshot, secret)
        return snapshot

    async def submit_day(
        self,
        tutor_id: int,
        franchise_id: int,
        work_date: date,
        snapshot: ScheduleSnapshot | dict[str, Any] | None = None,
        source: str = "manual",
    ) -> TimeEntryDay:
        """Submit a draft day against its schedule snapshot.

        The day is auto-approved when the franchise comparison policy accepts
        the comparison; otherwise it waits in ``pending`` for an admin.
        """
        tz_name = await self.calendar.get_timezone(franchise_id)
        await self.attestations.ensure_not_blocking(tutor_id, franchise_id, work_date, tz_name)
        if snapshot is None:
            snapshot = await self.fetch_snapshot(tutor_id, franchise_id, work_date)
        snapshot = self.check_snapshot(snapshot, tutor_id, franchise_id, work_date)
        scheduled = snapshot.to_intervals()
        policy = await self.calendar.get_comparison_policy(franchise_id)

        async with unit_of_work(self.session):
            await self.locks.lock_day(franchise_id, tutor_id, work_date)
            day = await self.locks.load_day(franchise_id, tutor_id, work_date)
            if day is None:
                raise NotFoundError(
                    "No time entry exists for this date", workDate=work_date.isoformat()
                )
            if day.status != TimeEntryStatus.DRAFT:
                raise InvalidTransitionError(day.status, TimeEntryStatus.PENDING)
            self._ensure_no_open_session(day, TimeEntryStatus.PENDING)

            now = self.now()
            comparison = reconcile(self.closed_intervals(day), scheduled, now)
            auto = should_auto_approve(comparison, policy)
            previous_status = day.status
            new_status = TimeEntryStatus.APPROVED if auto else TimeEntryStatus.PENDING
            TimeEntryDayStateMachine.validate_transition(previous_status, new_status)

            snapshot_json = snapshot.to_json()
            day.schedule_snapshot = snapshot_json
            day.comparison = comparison.as_json()
            day.submitted_at = now
            day.status = new_status.value
            day.updated_at = now
            if auto:
                day.decided_by = None
                day.decided_at = now
                day.decision_reason = AUTO_APPROVAL_REASON

            metadata = {
                "workDate": work_date.isoformat(),
                "timezone": day.timezone,
                "source": source,
                "policy": policy.value,
                "matches": comparison.matches,
                "manualMinutes": comparison.manual_minutes,
                "scheduledMinutes": comparison.scheduled_minutes,
                "snapshotHash": self.locks.compute_hash(snapshot_json),
                "reason": _submission_reason(comparison.matches, auto),
            }
            if auto:
                self.record_audit(
                    day, AuditAction.AUTO_APPROVED, ActorType.SYSTEM, None,
                    previous_status, day.status, metadata,
                )
            elif source == "clock_out":
                self.record_audit(
                    day, AuditAction.SUBMITTED, ActorType.SYSTEM, None,
                    previous_status, day.status, metadata,
                )
            else:
                self.record_audit(
                    day, AuditAction.SUBMITTED, ActorType.TUTOR, tutor_id,
                    previous_status, day.status, metadata,
                )

        logger.info(
            "Day %s for tutor %s submitted: %s -> %s (matches=%s, policy=%s)",
            work_date.isoformat(),
            tutor_id,
            previous_status,
            new_status.value,
            comparison.matches,
            policy.value,
        )
        return await self._reload(day.id)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def admin_decide(
        self,
        day_id: int,
        decision: str,
        admin_id: int,
        franchise_id: int,
        reason: str | None = None,
    ) -> TimeEntryDay:
        """Approve or deny a pending day."""
        if decision not in DECISIONS:
            raise ValidationError("decision must be 'approve' or 'deny'", field="decision")
        new_status, action = DECISIONS[decision]
        reason_text = normalize_reason(reason, required=decision == "deny")

        async with unit_of_work(self.session):
            day = await self._load_admin_day(day_id, franchise_id)
            previous_status = day.status
            if previous_status != TimeEntryStatus.PENDING:
                raise InvalidTransitionError(previous_status, new_status, "day is not pending")
            self._ensure_no_open_session(day, new_status)
            TimeEntryDayStateMachine.validate_transition(previous_status, new_status)

            now = self.now()
            day.status = new_status.value
            day.decided_by = admin_id
            day.decided_at = now
            day.decision_reason = reason_text
            day.updated_at = now
            self.record_audit(
                day, action, ActorType.ADMIN, admin_id, previous_status, day.status,
                {"reason": reason_text},
            )

        logger.info(
            "Admin %s %s day %s (franchise %s)", admin_id, new_status.value, day_id, franchise_id
        )
        return await self._reload(day.id)

    async def admin_edit(
        self,
        day_id: int,
        sessions: Sequence[SessionInput],
        reason: str | None,
        admin_id: int,
        franchise_id: int,
    ) -> TimeEntryDay:
        """Replace a day's sessions as an admin; the day always returns to pending."""
        reason_text = normalize_reason(reason, required=True)

        async with unit_of_work(self.session):
            day = await self._load_admin_day(day_id, franchise_id)
            previous_status = day.status
            TimeEntryDayStateMachine.validate_admin_edit(previous_status)
            self._ensure_no_open_session(day, TimeEntryStatus.PENDING)
            intervals = validate_sessions(
                sessions, day.work_date, day.timezone, self.settings.max_sessions_per_day
            )

            now = self.now()
            previous_sessions = _sessions_json(day.closed_sessions)
            self.replace_closed_sessions(day, intervals)
            if day.schedule_snapshot is not None:
                snapshot = parse_snapshot(day.schedule_snapshot)
                day.comparison = reconcile(intervals, snapshot.to_intervals(), now).as_json()
            day.status = TimeEntryStatus.PENDING.value
            day.submitted_at = day.submitted_at or now
            day.decided_by = None
            day.decided_at = None
            day.decision_reason = None
            self.record_audit(
                day,
                AuditAction.ADMIN_EDITED,
                ActorType.ADMIN,
                admin_id,
                previous_status,
                day.status,
                {
                    "workDate": day.work_date.isoformat(),
                    "timezone": day.timezone,
                    "reason": reason_text,
                    "reopened": TimeEntryDayStateMachine.is_reopen(
                        previous_status, TimeEntryStatus.PENDING
                    ),
                    "previousSessions": previous_sessions,
                    "sessions": _intervals_json(intervals),
                },
            )

        logger.info(
            "Admin %s edited day %s: %s -> pending (franchise %s)",
            admin_id,
            day_id,
            previous_status,
            franchise_id,
        )
        return await self._reload(day.id)

    async def _load_admin_day(self, day_id: int, franchise_id: int) -> TimeEntryDay:
        # Same lock order as the tutor paths: advisory lock first, then the row
        day = await self.locks.load_day_by_id(day_id, for_update=False)
        if day is None or day.franchise_id != franchise_id:
            raise NotFoundError("Time entry day not found", dayId=day_id)
        await self.locks.lock_day(day.franchise_id, day.tutor_id, day.work_date)
        return await self.locks.load_day_by_id(day_id)

    async def _reload(self, day_id: int) -> TimeEntryDay:
        day = await self.locks.load_day_by_id(day_id, for_update=False)
        if day is None:
            raise NotFoundError("Time entry day not found", dayId=day_id)
        return day
