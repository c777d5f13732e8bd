"""Scheduling Pydantic v2 schemas — shifts, assignments, recurrence."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrms.common.constants import RecurrenceType, ShiftStatus
from hrms.config import settings


# ═════════════════════════════════════════════════════════════════════
# Shifts
# ═════════════════════════════════════════════════════════════════════


class ShiftCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_time: time
    end_time: time
    description: Optional[str] = None
    max_employees: Optional[int] = Field(None, ge=1)
    grace_minutes: int = Field(15, ge=0, le=240)
    # Admins pick the department; managers always get their own
    department_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _check_times(self) -> "ShiftCreate":
        if self.start_time == self.end_time:
            raise ValueError("end_time must differ from start_time")
        return self


class ShiftUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    description: Optional[str] = None
    max_employees: Optional[int] = Field(None, ge=1)
    grace_minutes: Optional[int] = Field(None, ge=0, le=240)
    status: Optional[ShiftStatus] = None

    @field_validator("name", "start_time", "end_time", "grace_minutes", "status", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ShiftBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    start_time: time
    end_time: time


class ShiftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    start_time: time
    end_time: time
    description: Optional[str] = None
    department_id: uuid.UUID
    max_employees: Optional[int] = None
    grace_minutes: int
    status: ShiftStatus
    crosses_midnight: bool
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Schedules
# ═════════════════════════════════════════════════════════════════════


class RecurringOptions(BaseModel):
    """Repeat the base assignment until ``end_date``.

    ``days`` are weekday numbers with 0 = Sunday, used by weekly recurrence.
    """

    type: RecurrenceType
    interval: int = Field(1, ge=1, le=52)
    end_date: date
    days: list[int] = Field(default_factory=list)

    @field_validator("days")
    @classmethod
    def _weekdays(cls, value: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in value):
            raise ValueError("days must be weekday numbers 0 (Sunday) to 6 (Saturday)")
        return sorted(set(value))


class ScheduleAssign(BaseModel):
    shift_id: uuid.UUID
    employee_ids: list[uuid.UUID] = Field(..., min_length=1)
    start_date: date
    end_date: date
    recurring_options: Optional[RecurringOptions] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "ScheduleAssign":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.recurring_options and self.recurring_options.end_date < self.start_date:
            raise ValueError("recurring_options.end_date must be on or after start_date")
        if (
            self.recurring_options
            and (self.recurring_options.end_date - self.start_date).days > settings.MAX_REPORT_RANGE_DAYS
        ):
            raise ValueError(
                f"recurring_options.end_date must be within {settings.MAX_REPORT_RANGE_DAYS} days of start_date"
            )
        self.employee_ids = list(dict.fromkeys(self.employee_ids))
        return self


class ScheduleEmployee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    department_id: Optional[uuid.UUID] = None


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    shift_id: uuid.UUID
    start_date: date
    end_date: date
    recurrence_group: Optional[uuid.UUID] = None
    shift: ShiftBrief
    employees: list[ScheduleEmployee] = []
