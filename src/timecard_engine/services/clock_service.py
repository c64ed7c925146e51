"""Clock-in/out tracking with a single open session per tutor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.calculators.intervals import merge_session, truncate_to_minute
from timecard_engine.calculators.reconciler import has_remaining_scheduled_time
from timecard_engine.calculators.types import Interval, iso_utc, utc_now
from timecard_engine.calculators.workweek import local_today
from timecard_engine.config import Settings, get_settings
from timecard_engine.database import unit_of_work
from timecard_engine.errors import (
    AlreadyClockedInError,
    NoOpenSessionError,
    ScheduleSourceError,
    TimecardError,
)
from timecard_engine.models import TimeEntryDay, TimeEntrySession
from timecard_engine.services.schedule_snapshot import ScheduleSnapshot, ScheduleSource
from timecard_engine.services.state_machine import (
    ActorType,
    AuditAction,
    InvalidTransitionError,
    TimeEntryDayStateMachine,
    TimeEntryStatus,
)
from timecard_engine.services.time_entry_service import TimeEntryService

logger = logging.getLogger(__name__)

CLOCKED_IN = 0
CLOCKED_OUT = 1


@dataclass
class ClockState:
    """Clock state recomputed from persisted sessions."""

    timezone: str
    work_date: date
    clock_state: int
    persisted_clock_state: int
    open_session_id: int | None
    started_at: datetime | None
    day_id: int | None
    day_status: str | None
    attestation_blocking: bool
    missing_week_end: date | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "workDate": self.work_date.isoformat(),
            "clockState": self.clock_state,
            "persistedClockState": self.persisted_clock_state,
            "openSessionId": self.open_session_id,
            "startedAt": iso_utc(self.started_at) if self.started_at else None,
            "dayId": self.day_id,
            "dayStatus": self.day_status,
            "attestationBlocking": self.attestation_blocking,
            "missingWeekEnd": self.missing_week_end.isoformat() if self.missing_week_end else None,
        }


@dataclass
class ClockOutResult:
    """Outcome of a clock-out, including any finalize attempt."""

    state: ClockState
    day: TimeEntryDay
    closed_session: Interval | None
    finalize_requested: bool
    submitted: bool = False
    submission_error: dict[str, Any] | None = None
    remaining_scheduled_time: bool = False
    scheduled: list[Interval] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "dayId": self.day.id,
            "dayStatus": self.day.status,
            "closedSession": self.closed_session.to_dict() if self.closed_session else None,
            "finalizeRequested": self.finalize_requested,
            "submitted": self.submitted,
            "submissionError": self.submission_error,
            "remainingScheduledTime": self.remaining_scheduled_time,
        }


class ClockService:
    """Opens and closes clock sessions and hands finished days to the lifecycle.

    Clock-out is committed on its own. A finalize step that fails afterwards
    (schedule source down, gate blocking, rejected snapshot) leaves the day in
    draft and is reported on the result.
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
        self.time_entries = TimeEntryService(session, self.settings, now, schedule_source)
        self.locks = self.time_entries.locks
        self.calendar = self.time_entries.calendar
        self.attestations = self.time_entries.attestations

    async def fetch_state(self, tutor_id: int, franchise_id: int) -> ClockState:
        """Recompute the tutor's clock state; no side effects."""
        tz_name = await self.calendar.get_timezone(franchise_id)
        today = local_today(self.now(), tz_name)

        open_session = await self.locks.find_open_session(tutor_id)
        if open_session is not None:
            day = await self.locks.load_day_by_id(open_session.entry_day_id, for_update=False)
        else:
            day = await self.locks.load_day(franchise_id, tutor_id, today, for_update=False)

        missing = await self.attestations.blocking_week_end(
            tutor_id, franchise_id, today, tz_name
        )
        return ClockState(
            timezone=tz_name,
            work_date=day.work_date if day is not None else today,
            clock_state=CLOCKED_IN if open_session is not None else CLOCKED_OUT,
            persisted_clock_state=day.clock_state if day is not None else CLOCKED_OUT,
            open_session_id=open_session.id if open_session is not None else None,
            started_at=open_session.start_at if open_session is not None else None,
            day_id=day.id if day is not None else None,
            day_status=day.status if day is not None else None,
            attestation_blocking=missing is not None,
            missing_week_end=missing,
        )

    async def clock_in(self, tutor_id: int, franchise_id: int) -> ClockState:
        """Open a clock session on today's day."""
        tz_name = await self.calendar.get_timezone(franchise_id)
        now = self.now()
        today = local_today(now, tz_name)
        await self.attestations.ensure_not_blocking(tutor_id, franchise_id, today, tz_name)

        try:
            async with unit_of_work(self.session):
                await self.locks.lock_tutor(franchise_id, tutor_id)
                await self.locks.lock_day(franchise_id, tutor_id, today)
                existing = await self.locks.find_open_session(tutor_id)
                if existing is not None:
                    raise AlreadyClockedInError(
                        "Already clocked in", openSessionId=existing.id
                    )

                day = await self.locks.load_day(franchise_id, tutor_id, today)
                created = day is None
                if created:
                    day = self.time_entries.new_day(tutor_id, franchise_id, today, tz_name)
                    self.time_entries.record_audit(
                        day, AuditAction.CREATED, ActorType.TUTOR, tutor_id,
                        None, day.status, {"workDate": today.isoformat(), "source": "clock_in"},
                    )
                elif not TimeEntryDayStateMachine.can_tutor_edit(day.status):
                    raise InvalidTransitionError(
                        day.status,
                        TimeEntryStatus.DRAFT,
                        "submitted days can only be changed by an admin edit",
                    )

                started_at = truncate_to_minute(now)
                day.sessions.append(
                    TimeEntrySession(
                        franchise_id=franchise_id,
                        tutor_id=tutor_id,
                        start_at=started_at,
                        end_at=None,
                        sort_order=len(day.sessions),
                    )
                )
                day.clock_state = CLOCKED_IN
                day.updated_at = now
                self.time_entries.record_audit(
                    day, AuditAction.CLOCK_IN, ActorType.TUTOR, tutor_id,
                    day.status, day.status,
                    {"workDate": today.isoformat(), "startedAt": iso_utc(started_at)},
                )
        except IntegrityError as exc:
            # Lost the race on the one-open-session-per-tutor index
            raise AlreadyClockedInError("Already clocked in") from exc

        logger.info("Tutor %s clocked in on %s (franchise %s)", tutor_id, today, franchise_id)
        return await self.fetch_state(tutor_id, franchise_id)

    async def clock_out(
        self,
        tutor_id: int,
        franchise_id: int,
        finalize: bool = False,
        schedule_snapshot: ScheduleSnapshot | dict[str, Any] | None = None,
    ) -> ClockOutResult:
        """Close the open session and optionally submit the day."""
        open_session = await self.locks.find_open_session(tutor_id)
        if open_session is None:
            raise NoOpenSessionError("No open clock session")
        now = self.now()

        async with unit_of_work(self.session):
            await self.locks.lock_tutor(franchise_id, tutor_id)
            located = await self.locks.load_day_by_id(open_session.entry_day_id, for_update=False)
            if located is None or located.franchise_id != franchise_id:
                raise NoOpenSessionError("No open clock session")
            await self.locks.lock_day(franchise_id, tutor_id, located.work_date)
            day = await self.locks.load_day_by_id(located.id)
            session = day.open_session
            if session is None:
                raise NoOpenSessionError("No open clock session")

            ended_at = truncate_to_minute(now)
            closed: Interval | None = None
            day.sessions.remove(session)
            if ended_at > session.start_at:
                closed = Interval(session.start_at, ended_at)
                merged = merge_session(self.time_entries.closed_intervals(day), closed)
                self.time_entries.replace_closed_sessions(day, merged)
            else:
                day.updated_at = now
            day.clock_state = CLOCKED_OUT
            self.time_entries.record_audit(
                day, AuditAction.CLOCK_OUT, ActorType.TUTOR, tutor_id,
                day.status, day.status,
                {
                    "workDate": day.work_date.isoformat(),
                    "startedAt": iso_utc(session.start_at),
                    "endedAt": iso_utc(ended_at),
                    "discarded": closed is None,
                    "finalize": finalize,
                },
            )

        day_id = day.id
        work_date = day.work_date
        logger.info(
            "Tutor %s clocked out on %s (franchise %s, finalize=%s)",
            tutor_id,
            work_date,
            franchise_id,
            finalize,
        )

        submitted = False
        submission_error = None
        scheduled: list[Interval] = []
        try:
            snapshot = schedule_snapshot
            if snapshot is None and finalize:
                snapshot = await self._fetch_snapshot(tutor_id, franchise_id, work_date)
            if snapshot is not None:
                snapshot = self.time_entries.check_snapshot(
                    snapshot, tutor_id, franchise_id, work_date
                )
                scheduled = snapshot.to_intervals()
            if finalize:
                result_day = await self.time_entries.submit_day(
                    tutor_id, franchise_id, work_date, snapshot, source="clock_out"
                )
                submitted = True
        except TimecardError as exc:
            logger.warning(
                "Clock-out for tutor %s on %s kept the day in draft (finalize=%s): %s",
                tutor_id,
                work_date,
                finalize,
                exc.message,
            )
            submission_error = exc.to_dict()

        if not submitted:
            # A failed submission rolled back and expired the loaded day
            result_day = await self.time_entries.get_day_by_id(day_id, franchise_id)

        return ClockOutResult(
            state=await self.fetch_state(tutor_id, franchise_id),
            day=result_day,
            closed_session=closed,
            finalize_requested=finalize,
            submitted=submitted,
            submission_error=submission_error,
            remaining_scheduled_time=has_remaining_scheduled_time(scheduled, now),
            scheduled=scheduled,
        )

    async def _fetch_snapshot(
        self, tutor_id: int, franchise_id: int, work_date: date
    ) -> ScheduleSnapshot:
        timeout = self.settings.schedule_source_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.time_entries.fetch_snapshot(tutor_id, franchise_id, work_date),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ScheduleSourceError(
                f"Schedule source did not answer within {timeout:g}s"
            ) from exc
