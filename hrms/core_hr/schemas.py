"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Summary / *Brief   → compact read representations

Request bodies accept both snake_case and the camelCase keys older
clients send (``managerId``, ``employeeId`` ...).
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from hrms.common.constants import AnnouncementPriority, DepartmentStatus, UserRole
from hrms.config import settings


# ═════════════════════════════════════════════════════════════════════
# Shared / embedded
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee reference (manager links, pickers)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str


class DepartmentBrief(BaseModel):
    """Minimal department info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = Field(default=None, alias="managerId")
    budget: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    location: Optional[str] = Field(default=None, max_length=150)
    status: DepartmentStatus = DepartmentStatus.active


class DepartmentUpdate(BaseModel):
    """Partial update; only keys present in the body are applied."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = Field(default=None, alias="managerId")
    budget: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    location: Optional[str] = Field(default=None, max_length=150)
    status: Optional[DepartmentStatus] = None

    @field_validator("name", "status", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    budget: Optional[float] = None
    location: Optional[str] = None
    status: DepartmentStatus
    created_at: datetime
    updated_at: datetime
    # Enriched by the service layer
    employee_count: int = 0
    manager: Optional[EmployeeBrief] = None


class TransferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    employee_id: uuid.UUID = Field(alias="employeeId")
    from_department_id: uuid.UUID = Field(alias="fromDepartmentId")
    to_department_id: uuid.UUID = Field(alias="toDepartmentId")
    reason: Optional[str] = Field(default=None, max_length=1000)


class AnnouncementCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    department_id: uuid.UUID = Field(alias="departmentId")
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.normal


class DepartmentAnalytics(BaseModel):
    department_id: uuid.UUID
    name: str
    status: DepartmentStatus
    headcount: int
    budget: Optional[float] = None
    budget_per_head: Optional[float] = None
    attendance_rate: float
    leave_days_taken: int
    open_tasks: int
    period_start: date
    period_end: date


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee / user account."""

    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    position: Optional[str] = Field(None, max_length=150)
    role: UserRole = UserRole.employee
    department_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    date_of_joining: Optional[date] = None


class EmployeeUpdate(BaseModel):
    """Partial-update payload for an employee (all fields optional)."""

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=settings.MIN_PASSWORD_LENGTH, max_length=72)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    position: Optional[str] = Field(None, max_length=150)
    role: Optional[UserRole] = None
    department_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    date_of_joining: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator("email", "password", "first_name", "last_name", "role", "is_active", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class EmployeeAssignment(BaseModel):
    """Body of ``PUT /api/users/{id}``: move a user or change their manager."""

    model_config = ConfigDict(populate_by_name=True)

    department_id: Optional[uuid.UUID] = Field(default=None, alias="departmentId")
    manager_id: Optional[uuid.UUID] = Field(default=None, alias="managerId")

    @model_validator(mode="after")
    def _at_least_one(self) -> "EmployeeAssignment":
        if not self.model_fields_set:
            raise ValueError("department_id or manager_id is required")
        return self


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeName(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    full_name: str


class EmployeeSummary(BaseModel):
    """Directory row visible to every authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    position: Optional[str] = None
    role: UserRole
    department_id: Optional[uuid.UUID] = None
    department: Optional[DepartmentBrief] = None


class EmployeeDetail(EmployeeSummary):
    """Full record, returned to admins and managers."""

    phone: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    manager: Optional[EmployeeBrief] = None
    date_of_joining: Optional[date] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
