"""Tests for clock-in/out and clock-out finalize."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from timecard_engine.errors import (
    AlreadyClockedInError,
    AttestationBlockingError,
    NoOpenSessionError,
    ScheduleSourceError,
)
from timecard_engine.models import TimeEntrySession
from timecard_engine.services.clock_service import CLOCKED_IN, CLOCKED_OUT, ClockService
from timecard_engine.services.state_machine import InvalidTransitionError

from tests.conftest import (
    FRANCHISE_ID,
    NOW,
    SCHEDULE,
    TODAY,
    TUTOR_ID,
    StubScheduleSource,
    make_settings,
    make_snapshot,
    utc,
)


@pytest.fixture
def service(db_session, settings, clock, signed_last_week):
    return ClockService(db_session, settings, clock)


async def count_open_sessions(db_session) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(TimeEntrySession).where(TimeEntrySession.end_at.is_(None))
    )
    return result.scalar_one()


class SlowScheduleSource:
    async def fetch(self, franchise_id, tutor_id, work_date):
        await asyncio.sleep(5)


class TestClockIn:
    """Opening clock sessions."""

    async def test_clock_in_opens_session(self, service, clock):
        clock.set(NOW + timedelta(seconds=42))
        state = await service.clock_in(TUTOR_ID, FRANCHISE_ID)

        assert state.clock_state == CLOCKED_IN
        assert state.persisted_clock_state == CLOCKED_IN
        assert state.started_at == NOW
        assert state.work_date == TODAY
        assert state.day_status == "draft"
        assert state.attestation_blocking is False

        day = await service.time_entries.get_day(TUTOR_ID, FRANCHISE_ID, TODAY)
        assert [a.action for a in day.audits] == ["created", "clock_in"]

    async def test_double_clock_in_rejected(self, service, db_session, clock):
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(minutes=5)
        with pytest.raises(AlreadyClockedInError):
            await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        assert await count_open_sessions(db_session) == 1

    async def test_clock_in_blocked_without_attestation(self, db_session, settings, clock):
        service = ClockService(db_session, settings, clock)
        with pytest.raises(AttestationBlockingError) as exc_info:
            await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        assert exc_info.value.details == {"missingWeekEnd": "2024-01-13"}

        state = await service.fetch_state(TUTOR_ID, FRANCHISE_ID)
        assert state.attestation_blocking is True
        assert state.missing_week_end.isoformat() == "2024-01-13"
        assert state.day_id is None

    async def test_clock_in_on_submitted_day_rejected(self, service):
        await service.time_entries.save_day(TUTOR_ID, FRANCHISE_ID, TODAY, SCHEDULE)
        await service.time_entries.submit_day(TUTOR_ID, FRANCHISE_ID, TODAY, make_snapshot())
        with pytest.raises(InvalidTransitionError):
            await service.clock_in(TUTOR_ID, FRANCHISE_ID)


class TestClockOut:
    """Closing clock sessions."""

    async def test_clock_out_without_session(self, service):
        with pytest.raises(NoOpenSessionError):
            await service.clock_out(TUTOR_ID, FRANCHISE_ID)

    async def test_clock_out_closes_session(self, service, clock, db_session):
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(minutes=45, seconds=30)
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID)

        assert result.state.clock_state == CLOCKED_OUT
        assert result.closed_session.minutes == 45
        assert result.submitted is False
        assert result.finalize_requested is False
        assert result.day.status == "draft"
        assert [(s.start_at, s.end_at) for s in result.day.sessions] == [
            (NOW, NOW + timedelta(minutes=45))
        ]
        assert await count_open_sessions(db_session) == 0

    async def test_zero_length_session_is_discarded(self, service, clock):
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(seconds=20)
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID)

        assert result.closed_session is None
        assert result.day.sessions == []
        assert result.day.last_audit.action == "clock_out"
        assert result.day.last_audit.details["discarded"] is True

    async def test_overlapping_manual_session_is_coalesced(self, service, clock):
        await service.time_entries.save_day(TUTOR_ID, FRANCHISE_ID, TODAY, [(utc(15), utc(17))])
        clock.set(utc(16, 30))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(18))
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID)

        assert [(s.start_at, s.end_at) for s in result.day.sessions] == [(utc(15), utc(18))]

    async def test_break_reports_remaining_scheduled_time(self, service, clock):
        clock.set(utc(15))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(16))
        result = await service.clock_out(
            TUTOR_ID,
            FRANCHISE_ID,
            finalize=False,
            schedule_snapshot=make_snapshot(intervals=[(utc(15), utc(18))]),
        )

        assert result.remaining_scheduled_time is True
        assert result.submitted is False
        assert result.submission_error is None
        assert result.day.status == "draft"

    async def test_break_after_schedule_ends(self, service, clock):
        clock.set(utc(17))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(18))
        result = await service.clock_out(
            TUTOR_ID,
            FRANCHISE_ID,
            schedule_snapshot=make_snapshot(intervals=[(utc(15), utc(18))]),
        )
        assert result.remaining_scheduled_time is False

    async def test_break_with_foreign_snapshot_still_clocks_out(self, service, clock):
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(minutes=15)
        result = await service.clock_out(
            TUTOR_ID, FRANCHISE_ID, schedule_snapshot=make_snapshot(tutor_id=TUTOR_ID + 1)
        )

        assert result.state.clock_state == CLOCKED_OUT
        assert result.submission_error["code"] == "FORBIDDEN"
        assert result.remaining_scheduled_time is False
        assert result.day.status == "draft"

    async def test_submit_rejected_while_clocked_in(self, service):
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        with pytest.raises(InvalidTransitionError):
            await service.time_entries.submit_day(
                TUTOR_ID, FRANCHISE_ID, TODAY, make_snapshot()
            )


class TestClockOutFinalize:
    """Clock-out with finalize hands the day to submission."""

    async def test_finalize_with_matching_schedule_auto_approves(self, service, clock):
        clock.set(utc(15))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(18))
        await service.clock_out(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(19))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(23))
        result = await service.clock_out(
            TUTOR_ID, FRANCHISE_ID, finalize=True, schedule_snapshot=make_snapshot()
        )

        assert result.submitted is True
        assert result.submission_error is None
        assert result.day.status == "approved"
        assert result.day.last_audit.action == "auto_approved"
        assert result.remaining_scheduled_time is False

    async def test_finalize_mismatch_submits_as_system(self, service, clock):
        clock.set(utc(15))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(17))
        result = await service.clock_out(
            TUTOR_ID, FRANCHISE_ID, finalize=True, schedule_snapshot=make_snapshot()
        )

        assert result.day.status == "pending"
        audit = result.day.last_audit
        assert audit.action == "submitted"
        assert audit.actor_account_type == "SYSTEM"
        assert audit.details["source"] == "clock_out"
        assert result.remaining_scheduled_time is True

    async def test_finalize_fetches_from_source(self, db_session, settings, clock, signed_last_week):
        source = StubScheduleSource(make_snapshot())
        service = ClockService(db_session, settings, clock, source)
        clock.set(utc(15))
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.set(utc(17))
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID, finalize=True)

        assert source.calls == [(FRANCHISE_ID, TUTOR_ID, TODAY)]
        assert result.submitted is True

    async def test_failing_source_leaves_day_in_draft(
        self, db_session, settings, clock, signed_last_week
    ):
        source = StubScheduleSource(error=ScheduleSourceError("scheduler offline"))
        service = ClockService(db_session, settings, clock, source)
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(minutes=30)
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID, finalize=True)

        assert result.submitted is False
        assert result.submission_error["code"] == "SCHEDULE_UNAVAILABLE"
        assert result.day.status == "draft"
        assert result.state.clock_state == CLOCKED_OUT
        assert len(result.day.sessions) == 1

    async def test_slow_source_times_out(self, db_session, clock, signed_last_week):
        service = ClockService(
            db_session,
            make_settings(schedule_source_timeout_seconds=0.05),
            clock,
            SlowScheduleSource(),
        )
        await service.clock_in(TUTOR_ID, FRANCHISE_ID)
        clock.advance(minutes=30)
        result = await service.clock_out(TUTOR_ID, FRANCHISE_ID, finalize=True)

        assert result.submitted is False
        assert result.submission_error["code"] == "SCHEDULE_UNAVAILABLE"
        assert result.day.status == "draft"
