"""Core HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from hrms.common.pagination
  - ``apply_filters / apply_search`` from hrms.common.filters
  - ``create_audit_entry`` from hrms.common.audit
  - ``NotFoundException / ConflictError`` from hrms.common.exceptions
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.attendance.models import AttendanceRecord
from hrms.auth.service import hash_password, revoke_all_user_sessions
from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import (
    AnnouncementPriority,
    DepartmentStatus,
    LeaveStatus,
    TaskStatus,
    UserRole,
)
from hrms.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrms.common.filters import apply_filters, apply_search
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Department, Employee
from hrms.core_hr.schemas import (
    AnnouncementCreate,
    DepartmentAnalytics,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeAssignment,
    EmployeeBrief,
    EmployeeCreate,
    EmployeeName,
    EmployeeUpdate,
    TransferRequest,
)
from hrms.leave.models import LeaveRequest
from hrms.notifications.service import notify_announcement
from hrms.schedules.models import Schedule, Shift, schedule_employees
from hrms.tasks.models import Task

logger = logging.getLogger(__name__)

_EMPLOYEE_AUDIT_FIELDS = [
    "email", "first_name", "last_name", "phone", "position", "role",
    "department_id", "manager_id", "date_of_joining", "is_active",
]
_DEPARTMENT_AUDIT_FIELDS = [
    "name", "description", "manager_id", "budget", "location", "status",
]

ANALYTICS_WINDOW_DAYS = 30


def _employee_options() -> list:
    return [selectinload(Employee.department), selectinload(Employee.manager)]


async def _get_active_employee(db: AsyncSession, employee_id: uuid.UUID, field: str) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None or not employee.is_active:
        raise ValidationException({field: [f"Employee '{employee_id}' does not exist or is inactive."]})
    return employee


async def _get_department_or_422(db: AsyncSession, department_id: uuid.UUID, field: str) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise ValidationException({field: [f"Department '{department_id}' does not exist."]})
    return department


def working_days(start: date, end: date) -> int:
    """Count Monday-Friday dates in the inclusive range."""
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees / user accounts."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""
        query = select(Employee).order_by(Employee.first_name, Employee.last_name)
        query = apply_filters(
            query,
            Employee,
            {"department_id": department_id, "role": role, "is_active": is_active},
        )
        query = apply_search(
            query, Employee, search, ["first_name", "last_name", "email", "position"],
        )
        return await paginate(
            db, query, pagination, model=Employee, options=_employee_options(),
        )

    @staticmethod
    async def list_names(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[EmployeeName]:
        """Active employees as ``{id, full_name}`` for pickers."""
        query = (
            select(Employee)
            .where(Employee.is_active.is_(True))
            .order_by(Employee.first_name, Employee.last_name)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        result = await db.execute(query)
        return [EmployeeName.model_validate(e) for e in result.scalars().all()]

    @staticmethod
    async def list_department_members(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        include_inactive: bool = False,
    ) -> Sequence[Employee]:
        query = (
            select(Employee)
            .where(Employee.department_id == department_id)
            .options(*_employee_options())
            .order_by(Employee.first_name, Employee.last_name)
        )
        if not include_inactive:
            query = query.where(Employee.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Employee:
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(*_employee_options())
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
        client: Optional[dict[str, Any]] = None,
    ) -> Employee:
        """Create a new employee with a bcrypt-hashed password."""
        email = data.email.lower()
        existing = await db.execute(select(Employee.id).where(Employee.email == email))
        if existing.first() is not None:
            raise ConflictError("email", email)

        if data.department_id is not None:
            await _get_department_or_422(db, data.department_id, "department_id")
        if data.manager_id is not None:
            await _get_active_employee(db, data.manager_id, "manager_id")

        employee = Employee(
            **data.model_dump(exclude={"email", "password"}),
            email=email,
            password_hash=hash_password(data.password),
        )
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=snapshot(employee, _EMPLOYEE_AUDIT_FIELDS),
            **(client or {}),
        )
        logger.info("Created employee %s (%s)", employee.email, employee.role.value)

        return await EmployeeService.get_employee(db, employee.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
        client: Optional[dict[str, Any]] = None,
    ) -> Employee:
        """Partial-update an existing employee."""
        employee = await EmployeeService.get_employee(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        if changes.get("is_active") is False and employee_id == actor_id:
            raise ValidationException({"is_active": ["You cannot deactivate your own account."]})
        if "email" in changes:
            changes["email"] = changes["email"].lower()
            clash = await db.execute(
                select(Employee.id).where(
                    Employee.email == changes["email"], Employee.id != employee_id,
                )
            )
            if clash.first() is not None:
                raise ConflictError("email", changes["email"])
        if changes.get("department_id") is not None:
            await _get_department_or_422(db, changes["department_id"], "department_id")
        if changes.get("manager_id") is not None:
            if changes["manager_id"] == employee_id:
                raise ValidationException({"manager_id": ["An employee cannot manage themselves."]})
            await _get_active_employee(db, changes["manager_id"], "manager_id")

        old_values = snapshot(employee, [f for f in changes if f != "password"])

        password = changes.pop("password", None)
        if password:
            employee.password_hash = hash_password(password)
        for field, value in changes.items():
            setattr(employee, field, value)
        await db.flush()

        if changes.get("is_active") is False or password:
            await revoke_all_user_sessions(db, employee.id)

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={**changes, **({"password_changed": True} if password else {})},
            **(client or {}),
        )

        db.expire(employee, ["department", "manager"])
        return await EmployeeService.get_employee(db, employee.id)

    # ── Deactivate (soft delete) ────────────────────────────────────

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict[str, Any]] = None,
    ) -> Employee:
        if employee_id == actor_id:
            raise ValidationException({"id": ["You cannot deactivate your own account."]})

        employee = await EmployeeService.get_employee(db, employee_id)
        if not employee.is_active:
            return employee

        employee.is_active = False
        await db.flush()
        await revoke_all_user_sessions(db, employee.id)

        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
            **(client or {}),
        )
        logger.info("Deactivated employee %s", employee.email)
        return employee

    # ── Department / manager assignment ─────────────────────────────

    @staticmethod
    async def assign(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeAssignment,
        *,
        actor: Employee,
        client: Optional[dict[str, Any]] = None,
    ) -> Employee:
        """Move an employee to a department and/or set their manager.

        Managers may only act within their own department.
        """
        employee = await EmployeeService.get_employee(db, employee_id)
        changes = data.model_dump(exclude_unset=True)

        if actor.role == UserRole.manager:
            own = actor.department_id
            target = changes.get("department_id", employee.department_id)
            if own is None or employee.department_id not in (None, own) or target != own:
                raise ForbiddenException("Managers can only assign employees within their own department.")

        if changes.get("department_id") is not None:
            await _get_department_or_422(db, changes["department_id"], "department_id")
        if changes.get("manager_id") is not None:
            if changes["manager_id"] == employee_id:
                raise ValidationException({"manager_id": ["An employee cannot manage themselves."]})
            await _get_active_employee(db, changes["manager_id"], "manager_id")

        old_values = snapshot(employee, list(changes))
        for field, value in changes.items():
            setattr(employee, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="assign",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=changes,
            **(client or {}),
        )

        db.expire(employee, ["department", "manager"])
        return await EmployeeService.get_employee(db, employee.id)


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Department CRUD, membership, transfers, analytics and announcements."""

    @staticmethod
    async def _employee_counts(db: AsyncSession) -> dict[uuid.UUID, int]:
        result = await db.execute(
            select(Employee.department_id, func.count(Employee.id))
            .where(Employee.is_active.is_(True), Employee.department_id.is_not(None))
            .group_by(Employee.department_id)
        )
        return {row[0]: row[1] for row in result.all()}

    @staticmethod
    def _to_response(dept: Department, employee_count: int) -> DepartmentResponse:
        resp = DepartmentResponse.model_validate(dept)
        resp.employee_count = employee_count
        if dept.manager is not None:
            resp.manager = EmployeeBrief.model_validate(dept.manager)
        return resp

    @staticmethod
    async def _load(db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(
            select(Department)
            .where(Department.id == department_id)
            .options(selectinload(Department.manager))
            .execution_options(populate_existing=True)
        )
        dept = result.scalars().first()
        if dept is None:
            raise NotFoundException("Department", str(department_id))
        return dept

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        search: Optional[str] = None,
        status: Optional[DepartmentStatus] = None,
        location: Optional[str] = None,
    ) -> list[DepartmentResponse]:
        """All departments with active employee count and manager brief."""
        query = (
            select(Department)
            .options(selectinload(Department.manager))
            .order_by(Department.name)
        )
        query = apply_filters(query, Department, {"status": status, "location__ilike": location})
        query = apply_search(query, Department, search, ["name", "description"])

        departments = (await db.execute(query)).scalars().all()
        counts = await DepartmentService._employee_counts(db)
        return [DepartmentService._to_response(d, counts.get(d.id, 0)) for d in departments]

    @staticmethod
    async def get_department(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> DepartmentResponse:
        dept = await DepartmentService._load(db, department_id)
        count = (
            await db.execute(
                select(func.count())
                .select_from(Employee)
                .where(Employee.department_id == department_id, Employee.is_active.is_(True))
            )
        ).scalar_one()
        return DepartmentService._to_response(dept, count)

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Department.id).where(func.lower(Department.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def _attach_manager(db: AsyncSession, dept: Department, manager_id: uuid.UUID) -> None:
        manager = await _get_active_employee(db, manager_id, "manager_id")
        # A manager without a department joins the one they manage
        if manager.department_id is None:
            manager.department_id = dept.id

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict[str, Any]] = None,
    ) -> DepartmentResponse:
        await DepartmentService._ensure_unique_name(db, data.name)

        dept = Department(**data.model_dump())
        db.add(dept)
        await db.flush()
        if data.manager_id is not None:
            await DepartmentService._attach_manager(db, dept, data.manager_id)
            await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            new_values=snapshot(dept, _DEPARTMENT_AUDIT_FIELDS),
            **(client or {}),
        )
        logger.info("Created department %s", dept.name)
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict[str, Any]] = None,
    ) -> DepartmentResponse:
        dept = await DepartmentService._load(db, department_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return await DepartmentService.get_department(db, department_id)

        if changes.get("name"):
            await DepartmentService._ensure_unique_name(db, changes["name"], exclude_id=dept.id)
        if changes.get("manager_id") is not None:
            await DepartmentService._attach_manager(db, dept, changes["manager_id"])

        old_values = snapshot(dept, list(changes))
        for field, value in changes.items():
            setattr(dept, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
            **(client or {}),
        )
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict[str, Any]] = None,
    ) -> None:
        """Delete a department that has no active members."""
        dept = await DepartmentService._load(db, department_id)

        active = (
            await db.execute(
                select(func.count())
                .select_from(Employee)
                .where(Employee.department_id == department_id, Employee.is_active.is_(True))
            )
        ).scalar_one()
        if active:
            raise ConflictError(
                "department_id",
                department_id,
                detail=f"Department '{dept.name}' still has {active} active employee(s).",
            )

        old_values = snapshot(dept, _DEPARTMENT_AUDIT_FIELDS)

        # Detach what survives the department, drop what belongs to it
        await db.execute(
            update(Employee).where(Employee.department_id == department_id).values(department_id=None)
        )
        await db.execute(
            update(Task).where(Task.department_id == department_id).values(department_id=None)
        )
        shift_ids = select(Shift.id).where(Shift.department_id == department_id)
        schedule_ids = select(Schedule.id).where(Schedule.shift_id.in_(shift_ids))
        await db.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.shift_id.in_(shift_ids))
            .values(shift_id=None)
        )
        await db.execute(
            delete(schedule_employees).where(schedule_employees.c.schedule_id.in_(schedule_ids))
        )
        await db.execute(delete(Schedule).where(Schedule.shift_id.in_(shift_ids)))
        await db.execute(delete(Shift).where(Shift.department_id == department_id))
        await db.execute(delete(Department).where(Department.id == department_id))

        await create_audit_entry(
            db,
            action="delete",
            entity_type="department",
            entity_id=department_id,
            actor_id=actor_id,
            old_values=old_values,
            **(client or {}),
        )
        logger.info("Deleted department %s", old_values["name"])

    # ── Transfer ────────────────────────────────────────────────────

    @staticmethod
    async def transfer_employee(
        db: AsyncSession,
        data: TransferRequest,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict[str, Any]] = None,
    ) -> Employee:
        """Move an employee between departments.

        The source must be the employee's current department; the
        destination must be active. The employee's manager becomes the
        destination department's manager.
        """
        if data.from_department_id == data.to_department_id:
            raise ValidationException(
                {"toDepartmentId": ["Source and destination departments are the same."]}
            )

        employee = await EmployeeService.get_employee(db, data.employee_id)
        if not employee.is_active:
            raise ValidationException({"employeeId": ["Employee is inactive."]})
        if employee.department_id != data.from_department_id:
            raise ValidationException(
                {"fromDepartmentId": ["Employee is not a member of the source department."]}
            )

        source = await _get_department_or_422(db, data.from_department_id, "fromDepartmentId")
        target = await _get_department_or_422(db, data.to_department_id, "toDepartmentId")
        if target.status != DepartmentStatus.active:
            raise ValidationException({"toDepartmentId": ["Destination department is inactive."]})

        if source.manager_id == employee.id:
            source.manager_id = None
        employee.department_id = target.id
        employee.manager_id = target.manager_id if target.manager_id != employee.id else None
        await db.flush()

        await create_audit_entry(
            db,
            action="transfer",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"department_id": source.id},
            new_values={"department_id": target.id, "reason": data.reason},
            **(client or {}),
        )
        logger.info(
            "Transferred %s from %s to %s", employee.email, source.name, target.name,
        )

        db.expire(employee, ["department", "manager"])
        return await EmployeeService.get_employee(db, employee.id)

    # ── Announcements ───────────────────────────────────────────────

    @staticmethod
    async def post_announcement(
        db: AsyncSession,
        data: AnnouncementCreate,
        *,
        actor: Employee,
        client: Optional[dict[str, Any]] = None,
    ) -> int:
        """Notify every active member of the department. Returns recipients."""
        dept = await DepartmentService._load(db, data.department_id)
        if actor.role == UserRole.manager and actor.department_id != dept.id:
            raise ForbiddenException("Managers can only post announcements to their own department.")

        members = await EmployeeService.list_department_members(db, dept.id)
        recipients = [m.id for m in members if m.id != actor.id]
        title = data.title
        if data.priority != AnnouncementPriority.normal:
            title = f"[{data.priority.value.upper()}] {title}"
        count = await notify_announcement(
            db, recipients, department_id=dept.id, title=title, message=data.message,
        )

        await create_audit_entry(
            db,
            action="announce",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor.id,
            new_values={"title": data.title, "priority": data.priority, "recipients": count},
            **(client or {}),
        )
        return count

    # ── Analytics ───────────────────────────────────────────────────

    @staticmethod
    async def department_analytics(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        today: date,
    ) -> DepartmentAnalytics:
        dept = await DepartmentService._load(db, department_id)
        return (await DepartmentService._analytics_for(db, [dept], today=today))[0]

    @staticmethod
    async def all_analytics(db: AsyncSession, *, today: date) -> list[DepartmentAnalytics]:
        depts = (
            await db.execute(select(Department).order_by(Department.name))
        ).scalars().all()
        return await DepartmentService._analytics_for(db, list(depts), today=today)

    @staticmethod
    async def _analytics_for(
        db: AsyncSession,
        departments: list[Department],
        *,
        today: date,
    ) -> list[DepartmentAnalytics]:
        """Headcount, attendance rate (last 30 days), leave days and open tasks."""
        period_start = today - timedelta(days=ANALYTICS_WINDOW_DAYS - 1)
        workdays = working_days(period_start, today)
        ids = [d.id for d in departments]

        headcount = await DepartmentService._employee_counts(db)

        attended_days = (
            select(Employee.department_id, AttendanceRecord.employee_id, AttendanceRecord.session_date)
            .join(Employee, Employee.id == AttendanceRecord.employee_id)
            .where(
                Employee.department_id.in_(ids),
                Employee.is_active.is_(True),
                AttendanceRecord.session_date.between(period_start, today),
            )
            .distinct()
            .subquery()
        )
        attended = dict(
            (
                await db.execute(
                    select(attended_days.c.department_id, func.count())
                    .group_by(attended_days.c.department_id)
                )
            ).all()
        )

        leave_rows = (
            await db.execute(
                select(Employee.department_id, LeaveRequest.start_date, LeaveRequest.end_date)
                .join(Employee, Employee.id == LeaveRequest.employee_id)
                .where(
                    Employee.department_id.in_(ids),
                    LeaveRequest.status == LeaveStatus.approved,
                    and_(LeaveRequest.start_date <= today, LeaveRequest.end_date >= period_start),
                )
            )
        ).all()
        leave_days: dict[uuid.UUID, int] = {}
        for dept_id, start, end in leave_rows:
            overlap = (min(end, today) - max(start, period_start)).days + 1
            leave_days[dept_id] = leave_days.get(dept_id, 0) + max(overlap, 0)

        open_tasks = dict(
            (
                await db.execute(
                    select(Task.department_id, func.count(Task.id))
                    .where(
                        Task.department_id.in_(ids),
                        Task.status.in_([TaskStatus.pending, TaskStatus.in_progress]),
                    )
                    .group_by(Task.department_id)
                )
            ).all()
        )

        out: list[DepartmentAnalytics] = []
        for dept in departments:
            heads = headcount.get(dept.id, 0)
            possible = heads * workdays
            rate = min(100.0, round(attended.get(dept.id, 0) * 100 / possible, 1)) if possible else 0.0
            budget = float(dept.budget) if dept.budget is not None else None
            out.append(
                DepartmentAnalytics(
                    department_id=dept.id,
                    name=dept.name,
                    status=dept.status,
                    headcount=heads,
                    budget=budget,
                    budget_per_head=round(budget / heads, 2) if budget is not None and heads else None,
                    attendance_rate=rate,
                    leave_days_taken=leave_days.get(dept.id, 0),
                    open_tasks=open_tasks.get(dept.id, 0),
                    period_start=period_start,
                    period_end=today,
                )
            )
        return out
