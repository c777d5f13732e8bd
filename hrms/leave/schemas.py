"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Response                     → response bodies (read)
  - *Brief                        → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrms.common.constants import LeaveAction, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class RequesterBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    department_id: Optional[uuid.UUID] = None


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    days_allowed: int = Field(..., ge=0, le=366)
    carry_forward: bool = False
    requires_approval: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    days_allowed: Optional[int] = Field(None, ge=0, le=366)
    carry_forward: Optional[bool] = None
    requires_approval: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("name", "days_allowed", "carry_forward", "requires_approval", "is_active", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class LeaveTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    days_allowed: int
    carry_forward: bool
    requires_approval: bool
    is_active: bool
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Apply for leave. Both dates are inclusive."""

    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveDecision(BaseModel):
    """``PUT /leave-requests/{id}`` body."""

    action: LeaveAction
    comments: Optional[str] = Field(None, max_length=2000)


class LeaveStatusUpdate(BaseModel):
    """``PUT /leave-requests/{id}/status`` body."""

    status: LeaveStatus
    comments: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _decision_only(self) -> "LeaveStatusUpdate":
        if self.status not in (LeaveStatus.approved, LeaveStatus.rejected):
            raise ValueError("status must be Approved or Rejected")
        return self


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    user_id: uuid.UUID = Field(validation_alias="employee_id")
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    number_of_days: int
    reason: Optional[str] = None
    status: LeaveStatus
    action_by: Optional[uuid.UUID] = None
    action_at: Optional[datetime] = None
    comments: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    user: Optional[RequesterBrief] = Field(default=None, validation_alias="employee")
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Balances / aggregates
# ═════════════════════════════════════════════════════════════════════


class LeaveBalance(BaseModel):
    """Computed balance of one leave type for one year."""

    model_config = ConfigDict(populate_by_name=True)

    leave_type_id: uuid.UUID = Field(serialization_alias="leaveTypeId")
    leave_type: str = Field(serialization_alias="leaveType")
    year: int
    days_allowed: int = Field(serialization_alias="daysAllowed")
    carried_forward: int = Field(0, serialization_alias="carriedForward")
    days_used: int = Field(serialization_alias="daysUsed")
    days_pending: int = Field(serialization_alias="daysPending")
    remaining: int


class LeaveSummary(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0


class CalendarEntry(BaseModel):
    request_id: uuid.UUID
    user_id: uuid.UUID
    name: str
    leave_type: str
    status: LeaveStatus
