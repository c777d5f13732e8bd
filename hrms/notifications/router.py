"""Notification endpoints — list, mark read, mark all read."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user
from hrms.common.constants import NotificationType
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.notifications.schemas import NotificationResponse
from hrms.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — current user's notifications ────────────────────────────

@router.get("")
async def list_notifications(
    unread_only: bool = Query(default=False, description="Only unread notifications"),
    type: Optional[NotificationType] = Query(default=None, description="Filter by type"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page, unread = await NotificationService.get_notifications(
        db,
        employee.id,
        pagination,
        unread_only=unread_only,
        notification_type=type,
    )
    return success_response({**page.envelope("notifications"), "unread": unread})


# ── GET /unread-count — badge count ─────────────────────────────────
# Registered before /{notification_id}/read so it is not parsed as a UUID.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, employee.id)
    return success_response({"count": count})


# ── PUT /read-all — bulk mark as read ───────────────────────────────

@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, employee.id)
    return success_response({"count": count}, "All notifications marked as read")


# ── PUT /{notification_id}/read — mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return success_response(
        NotificationResponse.model_validate(notification),
        "Notification marked as read",
    )
