"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request / *Update  → request bodies (write)
  - *Response           → response bodies (read)
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrms.common.constants import ArrivalStatus, AttendanceSessionStatus
from hrms.common.timeutils import as_utc


# ═════════════════════════════════════════════════════════════════════
# Clock in / out
# ═════════════════════════════════════════════════════════════════════


class ClockRequest(BaseModel):
    """Optional body for clock-in / clock-out."""

    notes: Optional[str] = Field(None, max_length=1000)


class AttendanceUpdate(BaseModel):
    """Manager/admin correction of a session."""

    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("clock_in", "clock_out")
    @classmethod
    def _normalise(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _non_empty(self) -> "AttendanceUpdate":
        if not self.model_fields_set:
            raise ValueError("Provide clock_in, clock_out or notes")
        return self


# ═════════════════════════════════════════════════════════════════════
# Attendance record
# ═════════════════════════════════════════════════════════════════════


class UserBrief(BaseModel):
    """Employee fields embedded in attendance rows."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    department_id: Optional[uuid.UUID] = None


class AttendanceRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    user_id: uuid.UUID = Field(validation_alias="employee_id")
    session_date: date
    clock_in: datetime
    clock_out: Optional[datetime] = None
    duration: Optional[int] = None
    status: AttendanceSessionStatus
    arrival_status: Optional[ArrivalStatus] = None
    late_by_minutes: int = 0
    notes: Optional[str] = None
    edited_by: Optional[uuid.UUID] = None
    user: Optional[UserBrief] = Field(default=None, validation_alias="employee")

    @field_validator("clock_in", "clock_out")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TodayResponse(BaseModel):
    date: date
    sessions: list[AttendanceRecordResponse]
    active_session: Optional[AttendanceRecordResponse] = None
    total_minutes: int
    total_hours: float


class AttendanceStatistics(BaseModel):
    """Aggregates keyed the way dashboards read them."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(serialization_alias="startDate")
    end_date: date = Field(serialization_alias="endDate")
    total_days: int = Field(serialization_alias="totalDays")
    total_sessions: int = Field(serialization_alias="totalSessions")
    total_hours: float = Field(serialization_alias="totalHours")
    average_hours_per_day: float = Field(serialization_alias="averageHoursPerDay")
    late_arrivals: int = Field(serialization_alias="lateArrivals")
    overtime_hours: float = Field(default=0.0, serialization_alias="overtimeHours")
