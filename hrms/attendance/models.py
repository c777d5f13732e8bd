"""Attendance ORM model: AttendanceRecord (one clock-in/clock-out session)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import INET, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import ArrivalStatus, AttendanceSessionStatus
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.core_hr.models import Employee
    from hrms.schedules.models import Shift


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceRecord(Base):
    """A work session. ``duration`` is whole minutes, NULL while open."""

    __tablename__ = "attendance_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    clock_in: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False,
    )
    clock_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    duration: Mapped[Optional[int]] = mapped_column(sa.Integer)
    status: Mapped[AttendanceSessionStatus] = mapped_column(
        enum_type(AttendanceSessionStatus, "attendance_session_status"),
        default=AttendanceSessionStatus.in_progress,
        nullable=False,
    )
    arrival_status: Mapped[Optional[ArrivalStatus]] = mapped_column(
        enum_type(ArrivalStatus, "arrival_status"),
    )
    late_by_minutes: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    shift_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("shifts.id", ondelete="SET NULL"),
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    ip_address: Mapped[Optional[str]] = mapped_column(INET)
    edited_by: Mapped[Optional[uuid.UUID]] = mapped_column(
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
        sa.Index("ix_attendance_employee_date", "employee_id", "session_date"),
        sa.Index("ix_attendance_session_date", "session_date"),
        # At most one open session per employee
        sa.Index(
            "uq_attendance_open_session",
            "employee_id",
            unique=True,
            postgresql_where=sa.text("status = 'In Progress'"),
            sqlite_where=sa.text("status = 'In Progress'"),
        ),
        sa.CheckConstraint(
            "clock_out IS NULL OR clock_out >= clock_in",
            name="ck_attendance_clock_order",
        ),
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(foreign_keys=[employee_id])
    editor: Mapped[Optional["Employee"]] = relationship(foreign_keys=[edited_by])
    shift: Mapped[Optional["Shift"]] = relationship()

    def __repr__(self) -> str:
        return f"<AttendanceRecord {self.employee_id} {self.session_date} {self.status.value}>"
