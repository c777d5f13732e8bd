"""Enums and constants for the HRMS API — values are the wire format."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# ── Departments ─────────────────────────────────────────────────────

class DepartmentStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceSessionStatus(str, enum.Enum):
    in_progress = "In Progress"
    completed = "Completed"


class ArrivalStatus(str, enum.Enum):
    on_time = "on_time"
    late = "late"
    very_late = "very_late"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"
    cancelled = "Cancelled"


class LeaveAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"


class LeaveTimeframe(str, enum.Enum):
    month = "month"
    quarter = "quarter"
    year = "year"


# ── Scheduling ──────────────────────────────────────────────────────

class ShiftStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class RecurrenceType(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


# ── Tasks ───────────────────────────────────────────────────────────

class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    announcement = "announcement"
    task = "task"


class AnnouncementPriority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"


# ── Role-based permissions ──────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: [
        "profile:read_own",
        "attendance:clock",
        "attendance:read_own",
        "leave:request",
        "leave:read_own",
        "schedule:read_own",
        "task:read_own",
        "task:update_status",
        "notification:read_own",
    ],
    UserRole.manager: [
        "profile:read_own",
        "profile:read_team",
        "attendance:clock",
        "attendance:read_own",
        "attendance:read_team",
        "attendance:edit_team",
        "leave:request",
        "leave:read_own",
        "leave:read_team",
        "leave:approve",
        "leave:reject",
        "schedule:read_own",
        "schedule:manage_team",
        "task:read_own",
        "task:update_status",
        "task:manage_team",
        "department:announce",
        "notification:read_own",
        "dashboard:team",
    ],
    UserRole.admin: [
        "profile:read_all",
        "profile:create",
        "profile:update",
        "profile:delete",
        "attendance:clock",
        "attendance:read_all",
        "attendance:edit_all",
        "leave:request",
        "leave:read_all",
        "leave:approve",
        "leave:reject",
        "leave:configure",
        "schedule:manage_all",
        "task:manage_all",
        "department:manage",
        "department:announce",
        "notification:read_own",
        "dashboard:admin",
        "audit:read",
    ],
}

# Role hierarchy — each role implicitly includes lower roles
ROLE_LEVELS: dict[UserRole, int] = {
    UserRole.employee: 1,
    UserRole.manager: 2,
    UserRole.admin: 3,
}

# ── Misc constants ──────────────────────────────────────────────────

REPORT_DATE_FORMAT = "%b %d, %Y"   # Jan 05, 2026
REPORT_TIME_FORMAT = "%H:%M"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10
