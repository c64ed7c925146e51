"""Tests for the weekly attestation gate."""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from timecard_engine.errors import AttestationBlockingError, ValidationError
from timecard_engine.models import WeeklyAttestation
from timecard_engine.services.attestation_service import (
    WEEKLY_ATTESTATION_STATEMENT,
    AttestationService,
    normalize_typed_name,
)
from timecard_engine.services.time_entry_service import TimeEntryService

from tests.conftest import (
    FRANCHISE_ID,
    LAST_WEEK_END,
    LAST_WEEK_START,
    NOW,
    SCHEDULE,
    TODAY,
    TUTOR_ID,
    utc,
)


@pytest.fixture
def service(db_session, settings, clock):
    return AttestationService(db_session, settings, clock)


class TestNormalizeTypedName:
    def test_collapses_whitespace(self):
        assert normalize_typed_name("  Jordan \t  Q.\nTutor ") == "Jordan Q. Tutor"

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_rejects_blank(self, raw):
        with pytest.raises(ValidationError, match="required"):
            normalize_typed_name(raw)

    def test_rejects_overlong(self):
        with pytest.raises(ValidationError, match="200"):
            normalize_typed_name("x" * 201)


class TestAttestationGate:
    """Blocking behaviour of the last closed workweek."""

    async def test_unsigned_week_is_blocking(self, service):
        reminder = await service.reminder(TUTOR_ID, FRANCHISE_ID)
        assert reminder.blocking is True
        assert reminder.missing_week_end == LAST_WEEK_END
        assert reminder.to_dict()["missingWeekEnd"] == "2024-01-13"

        status = await service.status(TUTOR_ID, FRANCHISE_ID)
        assert status.signed is False
        assert (status.week_start, status.week_end) == (LAST_WEEK_START, LAST_WEEK_END)
        assert status.to_dict()["attestationText"] == WEEKLY_ATTESTATION_STATEMENT

    async def test_signature_for_older_week_still_blocks(self, service, db_session):
        db_session.add(
            WeeklyAttestation(
                franchise_id=FRANCHISE_ID,
                tutor_id=TUTOR_ID,
                week_start=date(2023, 12, 31),
                week_end=date(2024, 1, 6),
                timezone="America/Chicago",
                typed_name="Jordan Tutor",
                signed_at=NOW - timedelta(days=10),
                attestation_text=WEEKLY_ATTESTATION_STATEMENT,
                attestation_text_version="2024-01",
                details={},
            )
        )
        await db_session.commit()

        reminder = await service.reminder(TUTOR_ID, FRANCHISE_ID)
        assert reminder.blocking is True
        assert reminder.missing_week_end == LAST_WEEK_END

        await service.sign(TUTOR_ID, FRANCHISE_ID, "Jordan Tutor")
        reminder = await service.reminder(TUTOR_ID, FRANCHISE_ID)
        assert reminder.blocking is False

    async def test_past_week_dates_are_not_gated(self, service):
        assert await service.is_blocking(TUTOR_ID, FRANCHISE_ID, TODAY) is True
        assert await service.is_blocking(TUTOR_ID, FRANCHISE_ID, LAST_WEEK_END) is False

    async def test_save_for_past_week_allowed(self, db_session, settings, clock):
        entries = TimeEntryService(db_session, settings, clock)
        day = await entries.save_day(
            TUTOR_ID,
            FRANCHISE_ID,
            LAST_WEEK_END,
            [(utc(15, day=LAST_WEEK_END), utc(16, day=LAST_WEEK_END))],
        )
        assert day.status == "draft"

        with pytest.raises(AttestationBlockingError):
            await entries.save_day(TUTOR_ID, FRANCHISE_ID, TODAY, SCHEDULE)

    async def test_sign_unblocks(self, service):
        status = await service.sign(TUTOR_ID, FRANCHISE_ID, "  Jordan   Tutor ", {"ip": "10.0.0.1"})

        assert status.signed is True
        assert status.record.typed_name == "Jordan Tutor"
        assert status.record.signed_at == NOW
        assert status.record.attestation_text_version == "2024-01"
        assert status.record.details == {"ip": "10.0.0.1"}
        assert await service.is_blocking(TUTOR_ID, FRANCHISE_ID, TODAY) is False
        reminder = await service.reminder(TUTOR_ID, FRANCHISE_ID)
        assert reminder.blocking is False
        assert reminder.missing_week_end is None

    async def test_resign_updates_existing_record(self, service, db_session, clock):
        await service.sign(TUTOR_ID, FRANCHISE_ID, "Jordan Tutor")
        clock.advance(hours=1)
        status = await service.sign(TUTOR_ID, FRANCHISE_ID, "Jordan Q. Tutor")

        assert status.record.typed_name == "Jordan Q. Tutor"
        assert status.record.signed_at == NOW + timedelta(hours=1)
        count = await db_session.execute(select(func.count()).select_from(WeeklyAttestation))
        assert count.scalar_one() == 1

    async def test_new_week_requires_new_signature(self, service, clock):
        await service.sign(TUTOR_ID, FRANCHISE_ID, "Jordan Tutor")
        # Sunday 2024-01-21 09:00 in Chicago
        clock.set(utc(15, day=date(2024, 1, 21)))
        assert await service.blocking_week_end(TUTOR_ID, FRANCHISE_ID) == date(2024, 1, 20)
