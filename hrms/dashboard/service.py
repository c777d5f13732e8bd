"""Dashboard service — read-only aggregation queries across HR modules.

All methods are static async, following the project convention.
Queries are kept efficient: COUNT/GROUP BY at DB level, no N+1.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import and_, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from hrms.attendance.models import AttendanceRecord
from hrms.attendance.service import AttendanceService
from hrms.common.audit import AuditTrail
from hrms.common.constants import LeaveStatus, TaskStatus
from hrms.core_hr.models import Department, Employee
from hrms.dashboard.schemas import (
    AdminDashboard,
    EmployeeDashboard,
    ManagerDashboard,
    RecentActivityItem,
)
from hrms.leave.models import LeaveRequest
from hrms.leave.service import LeaveService
from hrms.notifications.service import NotificationService
from hrms.tasks.models import Task
from hrms.tasks.service import TaskService

_OPEN_TASKS = (TaskStatus.pending, TaskStatus.in_progress)


class DashboardService:
    """Async dashboard aggregation queries."""

    # ═════════════════════════════════════════════════════════════════
    # Shared counters
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _present_count(
        db: AsyncSession,
        today: date,
        department_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Distinct employees with a session on *today*."""
        query = select(func.count(distinct(AttendanceRecord.employee_id))).where(
            AttendanceRecord.session_date == today,
        )
        if department_id is not None:
            query = query.join(Employee, Employee.id == AttendanceRecord.employee_id).where(
                Employee.department_id == department_id,
            )
        return (await db.execute(query)).scalar_one()

    @staticmethod
    async def _pending_leave_count(
        db: AsyncSession,
        department_id: Optional[uuid.UUID] = None,
        exclude_employee_id: Optional[uuid.UUID] = None,
    ) -> int:
        query = select(func.count(LeaveRequest.id)).where(
            LeaveRequest.status == LeaveStatus.pending,
        )
        if department_id is not None:
            query = query.join(Employee, Employee.id == LeaveRequest.employee_id).where(
                Employee.department_id == department_id,
            )
        if exclude_employee_id is not None:
            query = query.where(LeaveRequest.employee_id != exclude_employee_id)
        return (await db.execute(query)).scalar_one()

    @staticmethod
    async def _open_task_count(
        db: AsyncSession,
        department_id: Optional[uuid.UUID] = None,
    ) -> int:
        query = select(func.count(Task.id)).where(Task.status.in_(_OPEN_TASKS))
        if department_id is not None:
            query = query.where(Task.department_id == department_id)
        return (await db.execute(query)).scalar_one()

    # ═════════════════════════════════════════════════════════════════
    # GET /admin
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def admin_dashboard(db: AsyncSession, today: date) -> AdminDashboard:
        """Organisation-wide counters for *today*."""
        total_staff = (
            await db.execute(select(func.count(Employee.id)).where(Employee.is_active.is_(True)))
        ).scalar_one()
        departments = (await db.execute(select(func.count(Department.id)))).scalar_one()

        return AdminDashboard(
            date=today,
            total_staff=total_staff,
            departments=departments,
            on_leave=await LeaveService.on_leave_count(db, today),
            pending_requests=await DashboardService._pending_leave_count(db),
            present_today=await DashboardService._present_count(db, today),
            open_tasks=await DashboardService._open_task_count(db),
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /manager
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def manager_dashboard(
        db: AsyncSession,
        manager: Employee,
        today: date,
        *,
        activity_limit: int = 10,
    ) -> ManagerDashboard:
        """Counters for the manager's department plus recent team activity."""
        department_id = manager.department_id
        if department_id is None:
            return ManagerDashboard(
                date=today,
                team_size=0,
                present_today=0,
                on_leave=0,
                pending_approvals=0,
                open_tasks=0,
            )

        team_ids = list(
            (
                await db.execute(
                    select(Employee.id).where(
                        Employee.department_id == department_id,
                        Employee.is_active.is_(True),
                    )
                )
            ).scalars().all()
        )

        return ManagerDashboard(
            date=today,
            department_id=department_id,
            team_size=len(team_ids),
            present_today=await DashboardService._present_count(db, today, department_id),
            on_leave=await LeaveService.on_leave_count(db, today, department_id=department_id),
            pending_approvals=await DashboardService._pending_leave_count(
                db, department_id, exclude_employee_id=manager.id,
            ),
            open_tasks=await DashboardService._open_task_count(db, department_id),
            recent_activity=await DashboardService.recent_activity(
                db, team_ids, limit=activity_limit,
            ),
        )

    @staticmethod
    async def recent_activity(
        db: AsyncSession,
        employee_ids: list[uuid.UUID],
        limit: int = 10,
    ) -> list[RecentActivityItem]:
        """Audit entries by, or about, the given employees, newest first."""
        if not employee_ids:
            return []

        Actor = aliased(Employee, flat=True)
        stmt = (
            select(
                AuditTrail.id,
                AuditTrail.action,
                AuditTrail.entity_type,
                AuditTrail.entity_id,
                AuditTrail.actor_id,
                AuditTrail.created_at,
                Actor.first_name.label("actor_first_name"),
                Actor.last_name.label("actor_last_name"),
            )
            .outerjoin(Actor, AuditTrail.actor_id == Actor.id)
            .where(
                or_(
                    AuditTrail.actor_id.in_(employee_ids),
                    and_(
                        AuditTrail.entity_type == "employee",
                        AuditTrail.entity_id.in_(employee_ids),
                    ),
                )
            )
            .order_by(AuditTrail.created_at.desc())
            .limit(limit)
        )

        items: list[RecentActivityItem] = []
        for row in (await db.execute(stmt)).all():
            actor_name = (
                f"{row.actor_first_name} {row.actor_last_name}".strip()
                if row.actor_first_name
                else None
            )
            items.append(RecentActivityItem(
                id=row.id,
                action=row.action,
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                actor_id=row.actor_id,
                actor_name=actor_name,
                description=_build_activity_description(
                    action=row.action,
                    entity_type=row.entity_type,
                    actor_name=actor_name,
                ),
                created_at=row.created_at,
            ))
        return items

    # ═════════════════════════════════════════════════════════════════
    # GET /employee
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def employee_dashboard(
        db: AsyncSession,
        employee: Employee,
        today: date,
    ) -> EmployeeDashboard:
        return EmployeeDashboard(
            today=await AttendanceService.get_today(db, employee.id),
            leave_balances=await LeaveService.get_balances(db, employee.id, today.year),
            tasks=await TaskService.stats(db, today=today, assigned_to=employee.id),
            unread_notifications=await NotificationService.get_unread_count(db, employee.id),
        )


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


_ACTION_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "create": {
        "employee": "added a new employee",
        "leave_request": "submitted a leave request",
        "leave_type": "added a leave type",
        "department": "created a new department",
        "shift": "created a shift",
        "task": "created a task",
    },
    "update": {
        "employee": "updated employee details",
        "attendance_record": "corrected an attendance record",
        "department": "updated department details",
        "leave_type": "updated a leave type",
        "shift": "updated a shift",
        "task": "updated a task",
    },
    "approve": {
        "leave_request": "approved a leave request",
    },
    "reject": {
        "leave_request": "rejected a leave request",
    },
    "cancel": {
        "leave_request": "cancelled a leave request",
    },
    "delete": {
        "department": "deleted a department",
        "leave_type": "deleted a leave type",
        "shift": "deleted a shift",
        "schedule": "removed a schedule",
        "task": "deleted a task",
    },
    "deactivate": {
        "employee": "deactivated an employee",
        "leave_type": "deactivated a leave type",
        "shift": "deactivated a shift",
    },
    "clock_in": {"attendance_record": "clocked in"},
    "clock_out": {"attendance_record": "clocked out"},
    "login": {"user_session": "signed in"},
    "logout": {"user_session": "signed out"},
    "assign": {
        "employee": "changed a team assignment",
        "shift": "assigned a schedule",
    },
    "transfer": {"employee": "transferred an employee"},
    "announce": {"department": "posted an announcement"},
    "update_profile": {"employee": "updated their profile"},
}


def _build_activity_description(
    action: str,
    entity_type: str,
    actor_name: Optional[str] = None,
) -> str:
    """Build a human-readable description for an audit trail entry."""
    actor = actor_name or "System"
    verb = _ACTION_DESCRIPTIONS.get(action, {}).get(entity_type)

    if verb:
        return f"{actor} {verb}"

    entity_label = entity_type.replace("_", " ")
    return f"{actor} performed '{action}' on {entity_label}"
