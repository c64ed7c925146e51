"""Pytest fixtures for timecard engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from timecard_engine.config import Settings
from timecard_engine.database import make_session_factory
from timecard_engine.models import Base, FranchisePayrollSettings, WeeklyAttestation
from timecard_engine.services.schedule_snapshot import ScheduleSnapshot

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FRANCHISE_ID = 7
OTHER_FRANCHISE_ID = 8
TUTOR_ID = 101
ADMIN_ID = 900
TIMEZONE = "America/Chicago"

# Wednesday 2024-01-17 17:30 in Chicago
NOW = datetime(2024, 1, 17, 23, 30, tzinfo=timezone.utc)
TODAY = date(2024, 1, 17)
LAST_WEEK_START = date(2024, 1, 7)
LAST_WEEK_END = date(2024, 1, 13)


def utc(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


# 09:00-12:00 and 13:00-17:00 Chicago time on TODAY
SCHEDULE = [(utc(15), utc(18)), (utc(19), utc(23))]


class FixedClock:
    """Injectable time source that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        default_timezone="America/Los_Angeles",
        default_pay_period_type="biweekly",
        biweekly_anchor_date=date(2024, 1, 7),
        comparison_policy="exact",
        schedule_source_url=None,
        schedule_source_timeout_seconds=1.0,
        schedule_snapshot_signing_secret=None,
        max_sessions_per_day=20,
        attestation_text_version="2024-01",
        create_schema=False,
    )
    values.update(overrides)
    return Settings(**values)


def make_snapshot(
    intervals=SCHEDULE,
    work_date: date = TODAY,
    tutor_id: int = TUTOR_ID,
    franchise_id: int = FRANCHISE_ID,
) -> ScheduleSnapshot:
    return ScheduleSnapshot(
        franchise_id=franchise_id,
        tutor_id=tutor_id,
        work_date=work_date,
        timezone=TIMEZONE,
        slot_minutes=60,
        intervals=[{"startAt": s, "endAt": e} for s, e in intervals],
        issued_at=NOW,
    )


class StubScheduleSource:
    """Schedule source returning a canned snapshot or raising."""

    def __init__(self, snapshot: ScheduleSnapshot | None = None, error: Exception | None = None):
        self.snapshot = snapshot
        self.error = error
        self.calls: list[tuple[int, int, date]] = []

    async def fetch(self, franchise_id: int, tutor_id: int, work_date: date) -> ScheduleSnapshot:
        self.calls.append((franchise_id, tutor_id, work_date))
        if self.error is not None:
            raise self.error
        return self.snapshot


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session bound to a fresh schema."""
    factory = make_session_factory(engine)
    async with factory() as session:
        session.add(
            FranchisePayrollSettings(
                franchise_id=FRANCHISE_ID,
                timezone=TIMEZONE,
                pay_period_type="biweekly",
            )
        )
        await session.commit()
        yield session


@pytest_asyncio.fixture
async def signed_last_week(db_session: AsyncSession) -> WeeklyAttestation:
    """Tutor has signed the last closed workweek."""
    record = WeeklyAttestation(
        franchise_id=FRANCHISE_ID,
        tutor_id=TUTOR_ID,
        week_start=LAST_WEEK_START,
        week_end=LAST_WEEK_END,
        timezone=TIMEZONE,
        typed_name="Jordan Tutor",
        signed_at=NOW - timedelta(days=3),
        attestation_text="statement",
        attestation_text_version="2024-01",
        details={},
    )
    db_session.add(record)
    await db_session.commit()
    return record
