"""Core HR ORM models: Department, Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the schema created by 001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import DepartmentStatus, UserRole
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.auth.models import UserSession


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department with an optional manager."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_dept_manager", ondelete="SET NULL"),
    )
    budget: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    location: Mapped[Optional[str]] = mapped_column(sa.String(150))
    status: Mapped[DepartmentStatus] = mapped_column(
        enum_type(DepartmentStatus, "department_status"),
        default=DepartmentStatus.active,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    manager: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[manager_id],
    )
    employees: Mapped[list[Employee]] = relationship(
        back_populates="department",
        foreign_keys="Employee.department_id",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """User account and employee record, the central entity of the API."""

    __tablename__ = "employees"

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Credentials ─────────────────────────────────────────────────
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole, "user_role"),
        default=UserRole.employee,
        nullable=False,
    )

    # ── Name / Contact ──────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    position: Mapped[Optional[str]] = mapped_column(sa.String(150))

    # ── Org hierarchy ───────────────────────────────────────────────
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_employee_manager", ondelete="SET NULL"),
    )
    date_of_joining: Mapped[Optional[date]] = mapped_column(sa.Date)
    profile_photo_url: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Status / Timestamps ─────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Optional[Department]] = relationship(
        back_populates="employees", foreign_keys=[department_id],
    )
    manager: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], foreign_keys=[manager_id],
    )
    sessions: Mapped[list["UserSession"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan",
    )

    __table_args__ = (
        sa.Index("ix_employees_department_id", "department_id"),
        sa.Index("ix_employees_role", "role"),
    )

    # ── Helpers ─────────────────────────────────────────────────────

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.email} ({self.role.value if self.role else '-'})>"
