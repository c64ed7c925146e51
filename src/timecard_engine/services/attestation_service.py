"""Weekly attestation gate and signing."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.calculators.types import iso_utc, utc_now
from timecard_engine.calculators.workweek import (
    last_closed_workweek,
    local_today,
    sunday_week_start,
)
from timecard_engine.config import Settings, get_settings
from timecard_engine.database import acquire_advisory_lock, unit_of_work
from timecard_engine.errors import AttestationBlockingError, ValidationError
from timecard_engine.models import WeeklyAttestation
from timecard_engine.services.pay_period_service import PayPeriodService

logger = logging.getLogger(__name__)

MAX_TYPED_NAME_LENGTH = 200

WORKWEEK_DEFINITION = (
    "Workweek: the fixed seven-day period from Sunday at 12:00 a.m. through "
    "Saturday at 11:59 p.m. in the franchise timezone."
)

WEEKLY_ATTESTATION_STATEMENT = (
    "By signing, I affirm that my timecard for this workweek is accurate to the "
    "minute, that I recorded my actual start and end times and meal periods, "
    "and that I have truthfully reported any missed or interrupted breaks."
)

_WHITESPACE = re.compile(r"\s+")


def normalize_typed_name(raw: str | None) -> str:
    """Trim and collapse whitespace; reject empty or overlong names."""
    name = _WHITESPACE.sub(" ", raw or "").strip()
    if not name:
        raise ValidationError("Typed name is required", field="typedName")
    if len(name) > MAX_TYPED_NAME_LENGTH:
        raise ValidationError(
            f"Typed name must be at most {MAX_TYPED_NAME_LENGTH} characters",
            field="typedName",
        )
    return name


@dataclass
class AttestationStatus:
    """Signing state of the most recently closed workweek."""

    timezone: str
    week_start: date
    week_end: date
    record: WeeklyAttestation | None

    @property
    def signed(self) -> bool:
        return self.record is not None

    def to_dict(self) -> dict[str, Any]:
        record = self.record
        return {
            "timezone": self.timezone,
            "weekStart": self.week_start.isoformat(),
            "weekEnd": self.week_end.isoformat(),
            "signed": self.signed,
            "signedAt": iso_utc(record.signed_at) if record else None,
            "typedName": record.typed_name if record else None,
            "attestationText": record.attestation_text if record else WEEKLY_ATTESTATION_STATEMENT,
            "attestationTextVersion": record.attestation_text_version if record else None,
            "workweekDefinition": WORKWEEK_DEFINITION,
        }


@dataclass
class AttestationReminder:
    timezone: str
    week_start: date
    week_end: date
    blocking: bool

    @property
    def missing_week_end(self) -> date | None:
        return self.week_end if self.blocking else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "weekStart": self.week_start.isoformat(),
            "weekEnd": self.week_end.isoformat(),
            "blocking": self.blocking,
            "missingWeekEnd": self.missing_week_end.isoformat() if self.blocking else None,
        }


class AttestationService:
    """Tracks weekly sign-off and gates time entry on it.

    Only the most recently closed workweek is ever required; older unsigned
    weeks are not stacked on top of it.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.now = now
        self.calendar = PayPeriodService(session, self.settings, now)

    async def _find(
        self, franchise_id: int, tutor_id: int, week_end: date
    ) -> WeeklyAttestation | None:
        result = await self.session.execute(
            select(WeeklyAttestation)
            .where(
                WeeklyAttestation.franchise_id == franchise_id,
                WeeklyAttestation.tutor_id == tutor_id,
                WeeklyAttestation.week_end == week_end,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def status(self, tutor_id: int, franchise_id: int) -> AttestationStatus:
        tz_name = await self.calendar.get_timezone(franchise_id)
        week_start, week_end = last_closed_workweek(self.now(), tz_name)
        record = await self._find(franchise_id, tutor_id, week_end)
        return AttestationStatus(tz_name, week_start, week_end, record)

    async def reminder(self, tutor_id: int, franchise_id: int) -> AttestationReminder:
        status = await self.status(tutor_id, franchise_id)
        return AttestationReminder(
            status.timezone, status.week_start, status.week_end, blocking=not status.signed
        )

    async def blocking_week_end(
        self,
        tutor_id: int,
        franchise_id: int,
        work_date: date | None = None,
        tz_name: str | None = None,
    ) -> date | None:
        """End date of the unsigned required week, or None when not blocked.

        Work dates before the current workweek are never gated.
        """
        tz_name = tz_name or await self.calendar.get_timezone(franchise_id)
        now = self.now()
        if work_date is not None:
            current_week_start = sunday_week_start(local_today(now, tz_name))
            if work_date < current_week_start:
                return None
        _, week_end = last_closed_workweek(now, tz_name)
        if await self._find(franchise_id, tutor_id, week_end) is not None:
            return None
        return week_end

    async def is_blocking(
        self, tutor_id: int, franchise_id: int, work_date: date | None = None
    ) -> bool:
        return await self.blocking_week_end(tutor_id, franchise_id, work_date) is not None

    async def ensure_not_blocking(
        self,
        tutor_id: int,
        franchise_id: int,
        work_date: date | None = None,
        tz_name: str | None = None,
    ) -> None:
        """Raise AttestationBlockingError when the required week is unsigned."""
        missing = await self.blocking_week_end(tutor_id, franchise_id, work_date, tz_name)
        if missing is not None:
            raise AttestationBlockingError(missing.isoformat())

    def _apply_signature(
        self,
        record: WeeklyAttestation,
        tz_name: str,
        name: str,
        signed_at: datetime,
        metadata: dict[str, Any] | None,
    ) -> None:
        record.timezone = tz_name
        record.typed_name = name
        record.signed_at = signed_at
        record.attestation_text = WEEKLY_ATTESTATION_STATEMENT
        record.attestation_text_version = self.settings.attestation_text_version
        record.details = dict(metadata or {})

    async def sign(
        self,
        tutor_id: int,
        franchise_id: int,
        typed_name: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> AttestationStatus:
        """Sign the most recently closed workweek; re-signing replaces the record."""
        name = normalize_typed_name(typed_name)
        tz_name = await self.calendar.get_timezone(franchise_id)
        now = self.now()
        week_start, week_end = last_closed_workweek(now, tz_name)

        try:
            async with unit_of_work(self.session):
                await acquire_advisory_lock(
                    self.session, f"weekly_attestation:{franchise_id}:{tutor_id}"
                )
                record = await self._find(franchise_id, tutor_id, week_end)
                if record is None:
                    record = WeeklyAttestation(
                        franchise_id=franchise_id,
                        tutor_id=tutor_id,
                        week_start=week_start,
                        week_end=week_end,
                    )
                    self.session.add(record)
                self._apply_signature(record, tz_name, name, now, metadata)
        except IntegrityError:
            # A concurrent first signature won the insert; apply ours on top
            async with unit_of_work(self.session):
                record = await self._find(franchise_id, tutor_id, week_end)
                self._apply_signature(record, tz_name, name, now, metadata)

        logger.info(
            "Tutor %s signed attestation for week ending %s (franchise %s)",
            tutor_id,
            week_end.isoformat(),
            franchise_id,
        )
        return AttestationStatus(tz_name, week_start, week_end, record)
