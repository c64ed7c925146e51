"""Weekly attestation model."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from timecard_engine.models.base import Base, JSONType, TimestampMixin, UTCDateTime


class WeeklyAttestation(Base, TimestampMixin):
    """A tutor's sign-off for one Sunday-Saturday workweek."""

    __tablename__ = "weekly_attestation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    timezone: Mapped[str] = mapped_column(String, nullable=False)
    typed_name: Mapped[str] = mapped_column(String, nullable=False)
    signed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    attestation_text: Mapped[str] = mapped_column(Text, nullable=False)
    attestation_text_version: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )

    __table_args__ = (
        UniqueConstraint(
            "franchise_id",
            "tutor_id",
            "week_end",
            name="weekly_attestation_franchise_tutor_week_end_unique",
        ),
    )
