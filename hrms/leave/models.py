"""Leave ORM models: LeaveType, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import LeaveStatus
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.core_hr.models import Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    days_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carry_forward: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.CheckConstraint("days_allowed >= 0", name="ck_leave_type_days_allowed"),
    )

    # Relationships
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    def __repr__(self) -> str:
        return f"<LeaveType {self.name!r} {self.days_allowed}d>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

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
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_types.id"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    number_of_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        enum_type(LeaveStatus, "leave_status"),
        default=LeaveStatus.pending,
        nullable=False,
    )
    action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    action_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.CheckConstraint("number_of_days > 0", name="ck_leave_request_days"),
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
        sa.Index("ix_leave_requests_dates", "start_date", "end_date"),
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(foreign_keys=[employee_id])
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")
    approver: Mapped[Optional["Employee"]] = relationship(foreign_keys=[action_by])

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.employee_id} {self.start_date}..{self.end_date} {self.status.value}>"
