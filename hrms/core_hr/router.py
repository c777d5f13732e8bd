"""Core HR router — Employee, Department and user-assignment endpoints.

Routes:
    /employees              — List, create employees
    /employees/names        — Id + name pairs for pickers
    /employees/department   — Members of the caller's department
    /employees/{id}         — Get, update, deactivate an employee
    /departments            — List, create departments
    /departments/analytics  — Analytics for every department
    /departments/transfer   — Move an employee between departments
    /departments/announcements — Notify a department
    /departments/{id}       — Department detail, update, delete
    /departments/{id}/users — Department members
    /departments/{id}/analytics — Single department analytics
    /users/{id}             — Assign department / manager
"""


import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, has_role, require_permission, require_role
from hrms.common.audit import client_info
from hrms.common.constants import DepartmentStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.core_hr.schemas import (
    AnnouncementCreate,
    DepartmentCreate,
    DepartmentUpdate,
    EmployeeAssignment,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    EmployeeUpdate,
    TransferRequest,
)
from hrms.core_hr.service import DepartmentService, EmployeeService
from hrms.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])
users_router = APIRouter(prefix="", tags=["employees"])


def _project(viewer: Employee, employee: Employee) -> EmployeeSummary:
    """Managers, admins and the employee themself get the full record."""
    if has_role(viewer.role, UserRole.manager) or viewer.id == employee.id:
        return EmployeeDetail.model_validate(employee)
    return EmployeeSummary.model_validate(employee)


def _ensure_department_access(viewer: Employee, department_id: uuid.UUID) -> None:
    if viewer.role != UserRole.admin and viewer.department_id != department_id:
        raise ForbiddenException("You can only access your own department.")


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /employees — List employees ─────────────────────────────────

@employees_router.get("")
async def list_employees(
    search: Optional[str] = Query(None, description="Search name / email / position"),
    department_id: Optional[uuid.UUID] = Query(None),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    # Only admins browse deactivated accounts
    if employee.role != UserRole.admin:
        is_active = True

    page = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department_id=department_id,
        role=role,
        is_active=is_active,
    )
    items = [_project(employee, e) for e in page.data]
    return success_response(page.envelope("employees", items))


# ── GET /employees/names — Picker list ──────────────────────────────

@employees_router.get("/names")
async def employee_names(
    department_id: Optional[uuid.UUID] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(
        await EmployeeService.list_names(db, department_id=department_id),
    )


# ── GET /employees/department — Caller's department ─────────────────

@employees_router.get("/department")
async def my_department_employees(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if employee.department_id is None:
        return success_response([], "You are not assigned to a department")
    members = await EmployeeService.list_department_members(db, employee.department_id)
    return success_response([_project(employee, m) for m in members])


# ── GET /employees/{id} ─────────────────────────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = await EmployeeService.get_employee(db, employee_id)
    if not target.is_active and employee.role != UserRole.admin:
        raise ForbiddenException("This account is deactivated.")
    return success_response(_project(employee, target))


# ── POST /employees — Create (admin) ────────────────────────────────

@employees_router.post("", status_code=201)
async def create_employee(
    request: Request,
    body: EmployeeCreate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    created = await EmployeeService.create_employee(
        db, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(EmployeeDetail.model_validate(created), "Employee created")


# ── PUT /employees/{id} — Update (admin) ────────────────────────────

@employees_router.put("/{employee_id}")
async def update_employee(
    request: Request,
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    updated = await EmployeeService.update_employee(
        db, employee_id, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(EmployeeDetail.model_validate(updated), "Employee updated")


# ── DELETE /employees/{id} — Deactivate (admin) ─────────────────────

@employees_router.delete("/{employee_id}")
async def deactivate_employee(
    request: Request,
    employee_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeService.deactivate_employee(
        db, employee_id, actor_id=actor.id, client=client_info(request),
    )
    return success_response({"id": str(employee_id), "is_active": False}, "Employee deactivated")


# ── PUT /users/{id} — Department / manager assignment ───────────────

@users_router.put("/{employee_id}")
async def assign_employee(
    request: Request,
    employee_id: uuid.UUID,
    body: EmployeeAssignment,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    updated = await EmployeeService.assign(
        db, employee_id, body, actor=actor, client=client_info(request),
    )
    return success_response(EmployeeDetail.model_validate(updated), "User updated")


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    search: Optional[str] = Query(None),
    status: Optional[DepartmentStatus] = Query(None),
    location: Optional[str] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(
        await DepartmentService.list_departments(
            db, search=search, status=status, location=location,
        ),
    )


# ── Static paths before /{department_id} ────────────────────────────

@departments_router.get("/analytics")
async def all_department_analytics(
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    today = datetime.now(timezone.utc).date()
    return success_response(await DepartmentService.all_analytics(db, today=today))


@departments_router.post("/transfer")
async def transfer_employee(
    request: Request,
    body: TransferRequest,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    moved = await DepartmentService.transfer_employee(
        db, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(EmployeeDetail.model_validate(moved), "Employee transferred")


@departments_router.post("/announcements", status_code=201)
async def post_announcement(
    request: Request,
    body: AnnouncementCreate,
    actor: Employee = Depends(require_permission("department:announce")),
    db: AsyncSession = Depends(get_db),
):
    count = await DepartmentService.post_announcement(
        db, body, actor=actor, client=client_info(request),
    )
    return success_response({"recipients": count}, "Announcement posted")


# ── CRUD ────────────────────────────────────────────────────────────

@departments_router.post("", status_code=201)
async def create_department(
    request: Request,
    body: DepartmentCreate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    dept = await DepartmentService.create_department(
        db, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(dept, "Department created")


@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(await DepartmentService.get_department(db, department_id))


@departments_router.put("/{department_id}")
async def update_department(
    request: Request,
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    dept = await DepartmentService.update_department(
        db, department_id, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(dept, "Department updated")


@departments_router.delete("/{department_id}")
async def delete_department(
    request: Request,
    department_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await DepartmentService.delete_department(
        db, department_id, actor_id=actor.id, client=client_info(request),
    )
    return success_response(None, "Department deleted")


@departments_router.get("/{department_id}/users")
async def department_users(
    department_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_department_access(employee, department_id)
    await DepartmentService.get_department(db, department_id)
    members = await EmployeeService.list_department_members(db, department_id)
    return success_response([_project(employee, m) for m in members])


@departments_router.get("/{department_id}/analytics")
async def department_analytics(
    department_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    _ensure_department_access(actor, department_id)
    today = datetime.now(timezone.utc).date()
    return success_response(
        await DepartmentService.department_analytics(db, department_id, today=today),
    )
