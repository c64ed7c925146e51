"""Franchise payroll calendar configuration.

These rows are maintained by an external configuration store; the engine
only reads them.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import CheckConstraint, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from timecard_engine.models.base import Base, TimestampMixin


class FranchisePayrollSettings(Base, TimestampMixin):
    """Per-franchise timezone, pay period type, and comparison policy."""

    __tablename__ = "franchise_payroll_settings"

    franchise_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    timezone: Mapped[str | None] = mapped_column(String)
    pay_period_type: Mapped[str | None] = mapped_column(String)
    comparison_policy: Mapped[str | None] = mapped_column(String)


class PayPeriodOverride(Base, TimestampMixin):
    """An explicitly configured pay period that replaces the computed window."""

    __tablename__ = "pay_period_override"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="pay_period_override_dates_check"),
        Index("pay_period_override_franchise_idx", "franchise_id", "period_start", "period_end"),
    )
