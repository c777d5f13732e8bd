"""Task router — role-scoped task list, creation, updates and stats."""


import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role, resolve_scope
from hrms.common.audit import client_info
from hrms.common.constants import TaskPriority, TaskStatus, UserRole
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.tasks.schemas import TaskCreate, TaskUpdate
from hrms.tasks.service import TaskService

router = APIRouter(prefix="", tags=["tasks"])


# ── GET /all ────────────────────────────────────────────────────────

@router.get("/all")
async def list_tasks(
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins see all tasks, managers their department's, employees their own."""
    dept_scope, emp_scope = resolve_scope(
        employee, department_id=department_id, employee_id=assigned_to,
    )
    page = await TaskService.list_tasks(
        db,
        pagination,
        department_id=dept_scope,
        assigned_to=emp_scope,
        status=status,
        priority=priority,
    )
    return success_response(page.envelope("tasks"))


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats")
async def task_stats(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dept_scope, emp_scope = resolve_scope(employee)
    stats = await TaskService.stats(
        db,
        today=datetime.now(timezone.utc).date(),
        department_id=dept_scope,
        assigned_to=emp_scope,
    )
    return success_response(stats)


# ── POST /create (alias POST /) ─────────────────────────────────────

@router.post("", status_code=201)
@router.post("/create", status_code=201)
async def create_task(
    request: Request,
    body: TaskCreate,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskService.create_task(db, body, actor=actor, client=client_info(request))
    return success_response(task, "Task created")


# ── PUT /{id} ───────────────────────────────────────────────────────

@router.put("/{task_id}")
async def update_task(
    request: Request,
    task_id: uuid.UUID,
    body: TaskUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskService.update_task(
        db, task_id, body, actor=employee, client=client_info(request),
    )
    return success_response(task, "Task updated")


# ── DELETE /{id} ────────────────────────────────────────────────────

@router.delete("/{task_id}")
async def delete_task(
    request: Request,
    task_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TaskService.delete_task(db, task_id, actor=employee, client=client_info(request))
    return success_response(None, "Task deleted")
