"""Row locking and serialization for time entry days."""

from __future__ import annotations

import hashlib
import json
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timecard_engine.database import acquire_advisory_lock
from timecard_engine.models import TimeEntryDay, TimeEntrySession


class DayLockService:
    """Serializes mutations of one tutor's day.

    Every mutating operation on ``(franchise_id, tutor_id, work_date)``:
    1. Takes a transaction-scoped advisory lock on the day key
    2. Loads the day row ``FOR UPDATE`` with fresh sessions and audits
    3. Relies on the ``version`` column to reject stale writes

    Clock-in additionally locks the tutor key so two clock-ins on different
    days cannot both open a session.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def day_key(franchise_id: int, tutor_id: int, work_date: date) -> str:
        return f"time_entry_day:{franchise_id}:{tutor_id}:{work_date.isoformat()}"

    @staticmethod
    def tutor_key(franchise_id: int, tutor_id: int) -> str:
        return f"time_entry_clock:{franchise_id}:{tutor_id}"

    async def lock_day(self, franchise_id: int, tutor_id: int, work_date: date) -> None:
        await acquire_advisory_lock(
            self.session, self.day_key(franchise_id, tutor_id, work_date)
        )

    async def lock_tutor(self, franchise_id: int, tutor_id: int) -> None:
        await acquire_advisory_lock(self.session, self.tutor_key(franchise_id, tutor_id))

    async def load_day(
        self, franchise_id: int, tutor_id: int, work_date: date, for_update: bool = True
    ) -> TimeEntryDay | None:
        """Load a day by its natural key, refreshing already loaded state."""
        stmt = (
            select(TimeEntryDay)
            .where(
                TimeEntryDay.franchise_id == franchise_id,
                TimeEntryDay.tutor_id == tutor_id,
                TimeEntryDay.work_date == work_date,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def load_day_by_id(self, day_id: int, for_update: bool = True) -> TimeEntryDay | None:
        stmt = (
            select(TimeEntryDay)
            .where(TimeEntryDay.id == day_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_session(self, tutor_id: int) -> TimeEntrySession | None:
        """The tutor's open clock session on any day."""
        result = await self.session.execute(
            select(TimeEntrySession)
            .where(
                TimeEntrySession.tutor_id == tutor_id,
                TimeEntrySession.end_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    def compute_hash(data: dict[str, Any]) -> str:
        """Compute a deterministic hash of data."""
        # Sort keys for deterministic JSON
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
