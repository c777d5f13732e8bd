"""Task ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import TaskPriority, TaskStatus
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.core_hr.models import Department, Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    assigned_to: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    deadline: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[TaskStatus] = mapped_column(
        enum_type(TaskStatus, "task_status"),
        default=TaskStatus.pending,
        nullable=False,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        enum_type(TaskPriority, "task_priority"),
        default=TaskPriority.medium,
        nullable=False,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.Index("ix_tasks_assigned_status", "assigned_to", "status"),
        sa.Index("ix_tasks_department_id", "department_id"),
    )

    # Relationships
    assignee: Mapped["Employee"] = relationship(foreign_keys=[assigned_to])
    creator: Mapped[Optional["Employee"]] = relationship(foreign_keys=[created_by])
    department: Mapped[Optional["Department"]] = relationship()

    @property
    def is_overdue(self) -> bool:
        if self.deadline is None or self.status in (TaskStatus.completed, TaskStatus.cancelled):
            return False
        return self.deadline < datetime.now(timezone.utc).date()

    def __repr__(self) -> str:
        return f"<Task {self.title!r} {self.status.value}>"
