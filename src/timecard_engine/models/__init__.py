"""ORM models."""

from timecard_engine.models.attestation import WeeklyAttestation
from timecard_engine.models.base import Base, TimestampMixin, UTCDateTime
from timecard_engine.models.franchise import FranchisePayrollSettings, PayPeriodOverride
from timecard_engine.models.time_entry import TimeEntryAudit, TimeEntryDay, TimeEntrySession

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "TimeEntryDay",
    "TimeEntrySession",
    "TimeEntryAudit",
    "WeeklyAttestation",
    "FranchisePayrollSettings",
    "PayPeriodOverride",
]
