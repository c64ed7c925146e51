"""Domain error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API maps it to,
so callers can tell a rejected request (validation) from a state they must
resolve first (attestation) or a retryable race (conflict).
"""

from __future__ import annotations

from typing import Any


class TimecardError(Exception):
    """Base class for all timecard engine errors."""

    code = "TIMECARD_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(TimecardError):
    """Malformed or overlapping intervals, reason too short, bad input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AttestationBlockingError(TimecardError):
    """The prior workweek must be attested before entering new time."""

    code = "ATTESTATION_REQUIRED"
    status_code = 409

    def __init__(self, missing_week_end: str, message: str | None = None):
        super().__init__(
            message
            or "Weekly attestation is required before entering time for the new workweek.",
            missingWeekEnd=missing_week_end,
        )
        self.missing_week_end = missing_week_end


class NotFoundError(TimecardError):
    """Unknown day, or a day outside the caller's franchise."""

    code = "NOT_FOUND"
    status_code = 404


class NoOpenSessionError(NotFoundError):
    """Clock-out requested without an open clock session."""

    code = "NO_OPEN_SESSION"


class AlreadyClockedInError(TimecardError):
    """Clock-in requested while a clock session is already open."""

    code = "ALREADY_CLOCKED_IN"
    status_code = 409


class ConflictError(TimecardError):
    """Concurrent modification detected; retry with fresh state."""

    code = "CONFLICT"
    status_code = 409


class AuthorizationError(TimecardError):
    """Caller is outside the required franchise or role scope."""

    code = "FORBIDDEN"
    status_code = 403


class ScheduleSourceError(TimecardError):
    """The external scheduling system failed or timed out."""

    code = "SCHEDULE_UNAVAILABLE"
    status_code = 502
