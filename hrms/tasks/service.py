"""Task service layer — creation, role-scoped listing, updates, stats."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import TaskPriority, TaskStatus, UserRole
from hrms.common.exceptions import ForbiddenException, NotFoundException, ValidationException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.notifications.service import notify_task_assigned
from hrms.tasks.models import Task
from hrms.tasks.schemas import TaskCreate, TaskResponse, TaskStats, TaskUpdate

logger = logging.getLogger(__name__)

_AUDIT_FIELDS = ["title", "description", "assigned_to", "deadline", "status", "priority"]
_CLOSED = (TaskStatus.completed, TaskStatus.cancelled)


def _task_options() -> list:
    return [selectinload(Task.assignee), selectinload(Task.creator)]


def _can_manage(actor: Employee, task: Task) -> bool:
    if actor.role == UserRole.admin:
        return True
    if actor.role == UserRole.manager:
        return task.created_by == actor.id or (
            actor.department_id is not None and task.department_id == actor.department_id
        )
    return False


class TaskService:
    """Async task operations."""

    @staticmethod
    async def _get_assignee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        actor: Employee,
    ) -> Employee:
        assignee = await db.get(Employee, employee_id)
        if assignee is None or not assignee.is_active:
            raise ValidationException(
                {"assigned_to": [f"Employee '{employee_id}' does not exist or is inactive."]}
            )
        if actor.role != UserRole.admin and assignee.department_id != actor.department_id:
            raise ValidationException(
                {"assigned_to": ["Tasks can only be assigned within your own department."]}
            )
        return assignee

    @staticmethod
    async def _load(db: AsyncSession, task_id: uuid.UUID) -> Task:
        result = await db.execute(
            select(Task).where(Task.id == task_id).options(*_task_options())
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundException("Task", task_id)
        return task

    @staticmethod
    def _scoped_query(
        *,
        department_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
    ) -> Select:
        query = select(Task)
        if department_id is not None:
            query = query.where(Task.department_id == department_id)
        if assigned_to is not None:
            query = query.where(Task.assigned_to == assigned_to)
        return query

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_task(
        db: AsyncSession,
        data: TaskCreate,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> TaskResponse:
        assignee = await TaskService._get_assignee(db, data.assigned_to, actor)

        task = Task(
            **data.model_dump(),
            department_id=assignee.department_id,
            status=TaskStatus.pending,
            created_by=actor.id,
        )
        task.assignee = assignee
        task.creator = actor
        db.add(task)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="task",
            entity_id=task.id,
            actor_id=actor.id,
            new_values=snapshot(task, _AUDIT_FIELDS),
            **(client or {}),
        )
        if assignee.id != actor.id:
            await notify_task_assigned(db, task)

        logger.info("Task %r assigned to %s by %s", task.title, assignee.email, actor.email)
        return TaskResponse.model_validate(task)

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_tasks(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
    ) -> PaginatedResponse:
        """Paginated tasks, nearest deadline first."""
        query = TaskService._scoped_query(department_id=department_id, assigned_to=assigned_to)
        if status is not None:
            query = query.where(Task.status == status)
        if priority is not None:
            query = query.where(Task.priority == priority)
        query = query.order_by(Task.deadline.is_(None), Task.deadline, Task.created_at.desc())

        page = await paginate(db, query, pagination, model=Task, options=_task_options())
        page.data = [TaskResponse.model_validate(t) for t in page.data]
        return page

    @staticmethod
    async def stats(
        db: AsyncSession,
        *,
        today: date,
        department_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
    ) -> TaskStats:
        base = TaskService._scoped_query(
            department_id=department_id, assigned_to=assigned_to,
        ).subquery()
        result = await db.execute(select(base.c.status, func.count()).group_by(base.c.status))
        counts = {status: n for status, n in result.all()}

        overdue = (
            await db.execute(
                select(func.count()).select_from(base).where(
                    base.c.deadline < today,
                    base.c.status.not_in(_CLOSED),
                )
            )
        ).scalar_one()

        return TaskStats(
            total=sum(counts.values()),
            pending=counts.get(TaskStatus.pending, 0),
            in_progress=counts.get(TaskStatus.in_progress, 0),
            completed=counts.get(TaskStatus.completed, 0),
            cancelled=counts.get(TaskStatus.cancelled, 0),
            overdue=overdue,
        )

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        data: TaskUpdate,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> TaskResponse:
        """Managers edit anything; the assignee may only move the status."""
        task = await TaskService._load(db, task_id)
        changes = data.model_dump(exclude_unset=True)

        if not _can_manage(actor, task):
            if task.assigned_to != actor.id:
                raise ForbiddenException("You cannot modify this task.")
            if set(changes) - {"status"}:
                raise ForbiddenException("You can only update the status of your tasks.")

        old_values = snapshot(task, _AUDIT_FIELDS)
        reassigned = False
        if changes.get("assigned_to") and changes["assigned_to"] != task.assigned_to:
            assignee = await TaskService._get_assignee(db, changes["assigned_to"], actor)
            task.assignee = assignee
            task.department_id = assignee.department_id
            reassigned = True

        for field, value in changes.items():
            if value is None and field in ("title", "assigned_to", "priority", "status"):
                continue
            setattr(task, field, value)

        if "status" in changes and changes["status"] is not None:
            if task.status == TaskStatus.completed and task.completed_at is None:
                task.completed_at = datetime.now(timezone.utc)
            elif task.status != TaskStatus.completed:
                task.completed_at = None
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="task",
            entity_id=task.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=snapshot(task, _AUDIT_FIELDS),
            **(client or {}),
        )
        if reassigned and task.assigned_to != actor.id:
            await notify_task_assigned(db, task)

        logger.info("Task %s updated by %s", task.id, actor.email)
        return TaskResponse.model_validate(task)

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> None:
        """Only the creator or an admin may delete a task."""
        task = await TaskService._load(db, task_id)
        if actor.role != UserRole.admin and task.created_by != actor.id:
            raise ForbiddenException("Only the task creator or an admin can delete this task.")

        old_values = snapshot(task, _AUDIT_FIELDS)
        await db.execute(delete(Task).where(Task.id == task_id))

        await create_audit_entry(
            db,
            action="delete",
            entity_type="task",
            entity_id=task_id,
            actor_id=actor.id,
            old_values=old_values,
            **(client or {}),
        )
        logger.info("Task %s deleted by %s", task_id, actor.email)
