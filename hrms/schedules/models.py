"""Scheduling ORM models: Shift, Schedule and the schedule_employees link table."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import ShiftStatus
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.core_hr.models import Department, Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


schedule_employees = sa.Table(
    "schedule_employees",
    Base.metadata,
    sa.Column(
        "schedule_id",
        UUID(as_uuid=True),
        sa.ForeignKey("schedules.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "employee_id",
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Shift(Base):
    """A named working window (e.g. 09:00-17:00) owned by a department."""

    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    max_employees: Mapped[Optional[int]] = mapped_column(sa.Integer)
    grace_minutes: Mapped[int] = mapped_column(sa.Integer, default=15, nullable=False)
    status: Mapped[ShiftStatus] = mapped_column(
        enum_type(ShiftStatus, "shift_status"),
        default=ShiftStatus.active,
        nullable=False,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.UniqueConstraint("department_id", "name", name="uq_shift_department_name"),
        sa.CheckConstraint(
            "max_employees IS NULL OR max_employees > 0", name="ck_shift_max_employees",
        ),
    )

    # Relationships
    department: Mapped["Department"] = relationship()
    schedules: Mapped[list[Schedule]] = relationship(
        back_populates="shift", cascade="all, delete-orphan",
    )

    @property
    def crosses_midnight(self) -> bool:
        return self.end_time <= self.start_time

    def __repr__(self) -> str:
        return f"<Shift {self.name!r} {self.start_time}-{self.end_time}>"


class Schedule(Base):
    """A shift assigned to a set of employees over an inclusive date range."""

    __tablename__ = "schedules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    shift_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("shifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # Groups schedules expanded from one recurring assignment
    recurrence_group: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_schedule_dates"),
        sa.Index("ix_schedules_dates", "start_date", "end_date"),
    )

    # Relationships
    shift: Mapped[Shift] = relationship(back_populates="schedules")
    employees: Mapped[list["Employee"]] = relationship(secondary=schedule_employees)

    def __repr__(self) -> str:
        return f"<Schedule {self.shift_id} {self.start_date}..{self.end_date}>"
