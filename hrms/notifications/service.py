"""Notification service — CRUD operations and cross-module dispatchers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import NotificationType
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.notifications.models import Notification
from hrms.notifications.schemas import NotificationResponse


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
    ) -> tuple[PaginatedResponse, int]:
        """Return (page of notifications newest first, unread count)."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        page = await paginate(db, query, pagination)
        page.data = [NotificationResponse.model_validate(n) for n in page.data]

        # Unread count is always unfiltered, for the badge
        unread = await NotificationService.get_unread_count(db, employee_id)
        return page, unread

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Cross-module dispatchers ────────────────────────────────────────
# Imported by leave / departments / tasks services; they accept the ORM
# object directly to avoid schema coupling.


async def notify_leave_submitted(
    db: AsyncSession,
    leave_request,  # hrms.leave.models.LeaveRequest
    approver_id: uuid.UUID,
    requester_name: str,
) -> Notification:
    """Tell the department manager a leave request needs review."""
    return await NotificationService.create_notification(
        db,
        recipient_id=approver_id,
        type=NotificationType.action_required,
        title="New Leave Request",
        message=(
            f"{requester_name} requested leave from {leave_request.start_date} to "
            f"{leave_request.end_date} ({leave_request.number_of_days} day(s))."
        ),
        action_url=f"/leave-requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_decided(
    db: AsyncSession,
    leave_request,  # hrms.leave.models.LeaveRequest
) -> Notification:
    """Tell the requester their leave request was approved or rejected."""
    verdict = leave_request.status.value.lower()
    message = (
        f"Your leave request from {leave_request.start_date} to "
        f"{leave_request.end_date} was {verdict}."
    )
    if leave_request.comments:
        message += f" Comments: {leave_request.comments}"
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval,
        title=f"Leave Request {leave_request.status.value}",
        message=message,
        action_url=f"/leave-requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_task_assigned(
    db: AsyncSession,
    task,  # hrms.tasks.models.Task
) -> Notification:
    """Tell the assignee about a new task."""
    due = f" Due {task.deadline}." if task.deadline else ""
    return await NotificationService.create_notification(
        db,
        recipient_id=task.assigned_to,
        type=NotificationType.task,
        title="New Task Assigned",
        message=f"You have been assigned '{task.title}' ({task.priority.value} priority).{due}",
        action_url=f"/tasks/{task.id}",
        entity_type="task",
        entity_id=task.id,
    )


async def notify_announcement(
    db: AsyncSession,
    recipient_ids: Iterable[uuid.UUID],
    *,
    department_id: uuid.UUID,
    title: str,
    message: str,
) -> int:
    """Fan an announcement out to every recipient. Returns the count created."""
    count = 0
    for recipient_id in recipient_ids:
        await NotificationService.create_notification(
            db,
            recipient_id=recipient_id,
            type=NotificationType.announcement,
            title=title,
            message=message,
            entity_type="department",
            entity_id=department_id,
        )
        count += 1
    return count
