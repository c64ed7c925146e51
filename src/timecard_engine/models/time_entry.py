"""Time entry day, session, and audit models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timecard_engine.models.base import Base, JSONType, TimestampMixin, UTCDateTime


class TimeEntryDay(Base, TimestampMixin):
    """A tutor's timecard for one work date."""

    __tablename__ = "time_entry_day"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    timezone: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    clock_state: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    schedule_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    comparison: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    decided_by: Mapped[int | None] = mapped_column(Integer)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    decision_reason: Mapped[str | None] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "franchise_id",
            "tutor_id",
            "work_date",
            name="time_entry_day_franchise_tutor_work_date_unique",
        ),
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'denied')",
            name="time_entry_day_status_check",
        ),
        CheckConstraint("clock_state IN (0, 1)", name="time_entry_day_clock_state_check"),
        Index("time_entry_day_status_idx", "franchise_id", "status"),
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    sessions: Mapped[list[TimeEntrySession]] = relationship(
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="TimeEntrySession.sort_order",
        lazy="selectin",
    )
    audits: Mapped[list[TimeEntryAudit]] = relationship(
        back_populates="day",
        cascade="save-update, merge",
        order_by="TimeEntryAudit.id",
        lazy="selectin",
    )

    @property
    def closed_sessions(self) -> list[TimeEntrySession]:
        """Sessions with both boundaries recorded, in sort order."""
        return [s for s in self.sessions if s.end_at is not None]

    @property
    def open_session(self) -> TimeEntrySession | None:
        """The running clock session on this day, if any."""
        for session in self.sessions:
            if session.end_at is None:
                return session
        return None

    @property
    def last_audit(self) -> TimeEntryAudit | None:
        """Most recent audit record."""
        return self.audits[-1] if self.audits else None

    @property
    def was_ever_approved(self) -> bool:
        """Whether any approval was ever recorded for this day."""
        return any(a.new_status == "approved" for a in self.audits)


class TimeEntrySession(Base, TimestampMixin):
    """A worked interval. An open clock session has no end yet."""

    __tablename__ = "time_entry_session"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_day_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("time_entry_day.id", ondelete="CASCADE"),
        nullable=False,
    )
    franchise_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tutor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "end_at IS NULL OR end_at > start_at",
            name="time_entry_session_end_after_start_check",
        ),
        Index("time_entry_session_day_idx", "entry_day_id", "sort_order"),
        Index(
            "time_entry_session_one_open_per_tutor",
            "tutor_id",
            unique=True,
            postgresql_where=text("end_at IS NULL"),
            sqlite_where=text("end_at IS NULL"),
        ),
    )

    # Relationships
    day: Mapped[TimeEntryDay] = relationship(back_populates="sessions")


class TimeEntryAudit(Base):
    """Append-only audit record for a time entry day."""

    __tablename__ = "time_entry_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_day_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("time_entry_day.id", ondelete="RESTRICT"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_account_type: Mapped[str] = mapped_column(String, nullable=False)
    actor_account_id: Mapped[int | None] = mapped_column(Integer)
    at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    previous_status: Mapped[str | None] = mapped_column(String)
    new_status: Mapped[str] = mapped_column(String, nullable=False)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )

    __table_args__ = (
        CheckConstraint(
            "actor_account_type IN ('TUTOR', 'ADMIN', 'SYSTEM')",
            name="time_entry_audit_actor_type_check",
        ),
        Index("time_entry_audit_day_idx", "entry_day_id", "id"),
    )

    # Relationships
    day: Mapped[TimeEntryDay] = relationship(back_populates="audits")
