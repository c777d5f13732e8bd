"""Dashboard router — read-only endpoints for the role dashboards.

The admin dashboard is admin-only, the manager dashboard needs manager or
above, and every authenticated user has an employee dashboard.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role
from hrms.common.constants import UserRole
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.dashboard.service import DashboardService
from hrms.database import get_db

router = APIRouter()


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ── GET /admin ──────────────────────────────────────────────────────

@router.get("/admin")
async def admin_dashboard(
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Total staff, departments, on leave, pending requests, present today."""
    return success_response(await DashboardService.admin_dashboard(db, _today()))


# ── GET /manager ────────────────────────────────────────────────────

@router.get("/manager")
async def manager_dashboard(
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Team counters and recent team activity."""
    return success_response(await DashboardService.manager_dashboard(db, actor, _today()))


# ── GET /employee ───────────────────────────────────────────────────

@router.get("/employee")
async def employee_dashboard(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Today's attendance, leave balances, task stats, unread notifications."""
    return success_response(await DashboardService.employee_dashboard(db, employee, _today()))
