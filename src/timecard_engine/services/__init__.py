"""Timecard engine services."""

from timecard_engine.services.attestation_service import AttestationService
from timecard_engine.services.clock_service import ClockOutResult, ClockService, ClockState
from timecard_engine.services.locking_service import DayLockService
from timecard_engine.services.pay_period_service import PayPeriodService
from timecard_engine.services.schedule_snapshot import (
    HttpScheduleSource,
    ScheduleSnapshot,
    ScheduleSource,
    sign_snapshot,
    verify_snapshot,
)
from timecard_engine.services.state_machine import (
    InvalidTransitionError,
    TimeEntryDayStateMachine,
    TimeEntryStatus,
)
from timecard_engine.services.time_entry_service import TimeEntryService

__all__ = [
    "AttestationService",
    "ClockOutResult",
    "ClockService",
    "ClockState",
    "DayLockService",
    "HttpScheduleSource",
    "InvalidTransitionError",
    "PayPeriodService",
    "ScheduleSnapshot",
    "ScheduleSource",
    "TimeEntryDayStateMachine",
    "TimeEntryService",
    "TimeEntryStatus",
    "sign_snapshot",
    "verify_snapshot",
]
