"""Time entry day state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from timecard_engine.errors import ValidationError


class TimeEntryStatus(str, Enum):
    """Time entry day status values."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class AuditAction(str, Enum):
    """Actions recorded in the audit history."""

    CREATED = "created"
    SAVED = "saved"
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    SUBMITTED = "submitted"
    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    DENIED = "denied"
    ADMIN_EDITED = "admin_edited"


class ActorType(str, Enum):
    """Who performed an audited action."""

    TUTOR = "TUTOR"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


class InvalidTransitionError(ValidationError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        from_status = _value(from_status)
        to_status = _value(to_status)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        self.allowed_statuses = [
            _value(s) for s in TimeEntryDayStateMachine.get_next_statuses(from_status)
        ]
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            fromStatus=from_status,
            toStatus=to_status,
            allowedStatuses=self.allowed_statuses,
        )


class TimeEntryDayStateMachine:
    """State machine for time entry day status transitions.

    Allowed transitions:
    - draft → pending (submit, no auto approval)
    - draft → approved (submit, auto approval)
    - pending → approved | denied (admin decision)
    - any → pending (admin edit)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimeEntryStatus.DRAFT: [TimeEntryStatus.PENDING, TimeEntryStatus.APPROVED],
        TimeEntryStatus.PENDING: [TimeEntryStatus.APPROVED, TimeEntryStatus.DENIED],
        TimeEntryStatus.APPROVED: [],
        TimeEntryStatus.DENIED: [],
    }

    # Statuses where the tutor may still change sessions
    TUTOR_EDITABLE = {TimeEntryStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_tutor_edit(cls, status: str) -> bool:
        """Check if the tutor may save sessions or clock in on this day."""
        return status in cls.TUTOR_EDITABLE

    @classmethod
    def validate_admin_edit(cls, from_status: str) -> None:
        """Admin edits are accepted from every known status."""
        if from_status not in cls.VALID_TRANSITIONS:
            raise InvalidTransitionError(from_status, TimeEntryStatus.PENDING, "unknown status")

    @classmethod
    def is_reopen(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition reopens a decided day."""
        return from_status in (
            TimeEntryStatus.APPROVED,
            TimeEntryStatus.DENIED,
        ) and to_status == TimeEntryStatus.PENDING

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
