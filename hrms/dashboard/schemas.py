"""Dashboard Pydantic v2 schemas — one response model per role dashboard."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.attendance.schemas import TodayResponse
from hrms.leave.schemas import LeaveBalance
from hrms.tasks.schemas import TaskStats


class RecentActivityItem(BaseModel):
    """A single recent activity entry."""

    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    actor_name: Optional[str] = None
    description: str = Field(..., description="Human-readable activity description")
    created_at: datetime


class AdminDashboard(BaseModel):
    """Organisation-wide KPI cards."""

    model_config = ConfigDict(populate_by_name=True)

    date: date
    total_staff: int = Field(serialization_alias="totalStaff")
    departments: int
    on_leave: int = Field(serialization_alias="onLeave")
    pending_requests: int = Field(serialization_alias="pendingRequests")
    present_today: int = Field(serialization_alias="presentToday")
    open_tasks: int = Field(0, serialization_alias="openTasks")


class ManagerDashboard(BaseModel):
    """KPI cards for the manager's department."""

    model_config = ConfigDict(populate_by_name=True)

    date: date
    department_id: Optional[uuid.UUID] = Field(None, serialization_alias="departmentId")
    team_size: int = Field(serialization_alias="teamSize")
    present_today: int = Field(serialization_alias="presentToday")
    on_leave: int = Field(serialization_alias="onLeave")
    pending_approvals: int = Field(serialization_alias="pendingApprovals")
    open_tasks: int = Field(serialization_alias="openTasks")
    recent_activity: list[RecentActivityItem] = Field(
        default_factory=list, serialization_alias="recentActivity",
    )


class EmployeeDashboard(BaseModel):
    """The caller's own day at a glance."""

    model_config = ConfigDict(populate_by_name=True)

    today: TodayResponse
    leave_balances: list[LeaveBalance] = Field(serialization_alias="leaveBalances")
    tasks: TaskStats
    unread_notifications: int = Field(serialization_alias="unreadNotifications")
