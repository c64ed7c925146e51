"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema with camelCase wire names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Time entry schemas
# ============================================================================


class SessionIn(CamelModel):
    """A manually entered session."""

    start_at: datetime
    end_at: datetime

    def as_tuple(self) -> tuple[datetime, datetime]:
        return self.start_at, self.end_at


class SaveDayRequest(CamelModel):
    """Schema for saving a tutor's day."""

    sessions: list[SessionIn]


class SubmitDayRequest(CamelModel):
    """Schema for submitting a day; the schedule source is used when omitted."""

    schedule_snapshot: dict[str, Any] | None = None


class DecisionRequest(CamelModel):
    """Schema for an admin approve/deny decision."""

    decision: Literal["approve", "deny"]
    reason: str | None = None


class AdminEditRequest(CamelModel):
    """Schema for an admin edit of a day's sessions."""

    sessions: list[SessionIn]
    reason: str


class SessionResponse(CamelModel):
    """Schema for a stored session."""

    start_at: datetime
    end_at: datetime | None = None
    sort_order: int


class AuditResponse(CamelModel):
    """Schema for an audit record."""

    id: int
    action: str
    actor_account_type: str
    actor_account_id: int | None = None
    at: datetime
    previous_status: str | None = None
    new_status: str
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("details", "metadata")
    )


class TimeEntryDayResponse(CamelModel):
    """Schema for a time entry day with sessions and history."""

    id: int
    franchise_id: int
    tutor_id: int
    work_date: date
    timezone: str
    status: str
    clock_state: int
    sessions: list[SessionResponse] = []
    schedule_snapshot: dict[str, Any] | None = None
    comparison: dict[str, Any] | None = None
    submitted_at: datetime | None = None
    decided_by: int | None = None
    decided_at: datetime | None = None
    decision_reason: str | None = None
    was_ever_approved: bool = False
    last_audit: AuditResponse | None = None
    history: list[AuditResponse] = Field(
        default_factory=list, validation_alias=AliasChoices("audits", "history")
    )


class TimeEntryDayEnvelope(CamelModel):
    """A day lookup that may find nothing."""

    work_date: date
    day: TimeEntryDayResponse | None = None


class PendingDaysResponse(CamelModel):
    """Schema for the admin approval queue."""

    items: list[TimeEntryDayResponse]
    total: int


# ============================================================================
# Clock schemas
# ============================================================================


class ClockOutRequest(CamelModel):
    """Schema for clocking out."""

    finalize: bool = False
    schedule_snapshot: dict[str, Any] | None = None


class ClockStateResponse(CamelModel):
    """Schema for the derived clock state."""

    timezone: str
    work_date: date
    clock_state: int
    persisted_clock_state: int
    open_session_id: int | None = None
    started_at: datetime | None = None
    day_id: int | None = None
    day_status: str | None = None
    attestation_blocking: bool
    missing_week_end: date | None = None


class IntervalResponse(CamelModel):
    start_at: datetime
    end_at: datetime


class ClockOutResponse(CamelModel):
    """Schema for a clock-out result."""

    state: ClockStateResponse
    day: TimeEntryDayResponse
    closed_session: IntervalResponse | None = None
    finalize_requested: bool
    submitted: bool
    submission_error: dict[str, Any] | None = None
    remaining_scheduled_time: bool


# ============================================================================
# Attestation schemas
# ============================================================================


class SignAttestationRequest(CamelModel):
    """Schema for signing the weekly attestation."""

    typed_name: str


class AttestationStatusResponse(CamelModel):
    """Schema for the weekly attestation status."""

    timezone: str
    week_start: date
    week_end: date
    signed: bool
    signed_at: datetime | None = None
    typed_name: str | None = None
    attestation_text: str
    attestation_text_version: str | None = None
    workweek_definition: str


class AttestationReminderResponse(CamelModel):
    """Schema for the attestation reminder projection."""

    timezone: str
    week_start: date
    week_end: date
    blocking: bool
    missing_week_end: date | None = None


# ============================================================================
# Pay period schemas
# ============================================================================


class PayPeriodResponse(CamelModel):
    """Schema for a resolved pay period."""

    franchise_id: int
    timezone: str
    period_type: str
    start_date: date
    end_date: date
    start_at: datetime
    end_at: datetime
    source: Literal["override", "computed"]
    override_id: int | None = None
    resolved_for_date: date


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    model_config = ConfigDict(extra="allow")

    detail: str
    code: str | None = None
