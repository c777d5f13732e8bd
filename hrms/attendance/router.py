"""Attendance router — clock in/out, session history, statistics, reports.

All endpoints require authentication. Manager/admin endpoints enforce role checks.
"""


import uuid
from datetime import date, datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.schemas import AttendanceUpdate, ClockRequest
from hrms.attendance.service import REPORT_HEADERS, AttendanceService
from hrms.auth.dependencies import get_current_user, require_role, resolve_scope
from hrms.common.audit import client_info
from hrms.common.constants import AttendanceSessionStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.export import csv_download, render_csv
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.common.timeutils import resolve_date_range
from hrms.core_hr.models import Employee
from hrms.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ── POST /clock-in ──────────────────────────────────────────────────

@router.post("/clock-in", status_code=201)
async def clock_in(
    request: Request,
    body: Optional[ClockRequest] = None,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open an attendance session for the current user."""
    record = await AttendanceService.clock_in(
        db,
        employee,
        notes=body.notes if body else None,
        **client_info(request),
    )
    return success_response(record, "Clocked in successfully")


# ── POST /clock-out ─────────────────────────────────────────────────

@router.post("/clock-out")
async def clock_out(
    request: Request,
    body: Optional[ClockRequest] = None,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Close the current user's open session."""
    record = await AttendanceService.clock_out(
        db,
        employee,
        notes=body.notes if body else None,
        **client_info(request),
    )
    return success_response(record, "Clocked out successfully")


# ── GET /active-session ─────────────────────────────────────────────

@router.get("/active-session")
async def active_session(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(await AttendanceService.get_active_session(db, employee.id))


# ── GET /today ──────────────────────────────────────────────────────

@router.get("/today")
async def today_attendance(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Today's sessions and total minutes for the current user."""
    return success_response(await AttendanceService.get_today(db, employee.id))


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my")
async def my_attendance(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await AttendanceService.list_records(
        db,
        pagination,
        employee_id=employee.id,
        start=start_date,
        end=end_date,
    )
    return success_response(page.envelope("records"))


# ── GET /all (admin) ────────────────────────────────────────────────

@router.get("/all")
async def all_attendance(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    department_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AttendanceSessionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    page = await AttendanceService.list_records(
        db,
        pagination,
        department_id=department_id,
        employee_id=user_id,
        start=start_date,
        end=end_date,
        status=status,
    )
    return success_response(page.envelope("records"))


# ── GET /department (manager) ───────────────────────────────────────

@router.get("/department")
async def department_attendance(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AttendanceSessionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Sessions of the manager's department."""
    if actor.department_id is None:
        raise ForbiddenException("You are not assigned to a department.")
    page = await AttendanceService.list_records(
        db,
        pagination,
        department_id=actor.department_id,
        employee_id=user_id,
        start=start_date,
        end=end_date,
        status=status,
    )
    return success_response(page.envelope("records"))


# ── GET /statistics ─────────────────────────────────────────────────

@router.get("/statistics")
async def attendance_statistics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    department_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    start, end = resolve_date_range(start_date, end_date, today=_today())
    dept_scope, emp_scope = resolve_scope(
        employee, department_id=department_id, employee_id=user_id,
    )
    stats = await AttendanceService.statistics(
        db, start=start, end=end, department_id=dept_scope, employee_id=emp_scope,
    )
    return success_response(stats)


# ── GET /report ─────────────────────────────────────────────────────

@router.get("/report")
async def attendance_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    department_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    format: Literal["json", "csv"] = Query("json"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Export rows as JSON, or as a CSV attachment with ``format=csv``."""
    start, end = resolve_date_range(start_date, end_date, today=_today())
    dept_scope, emp_scope = resolve_scope(
        employee, department_id=department_id, employee_id=user_id,
    )
    rows = await AttendanceService.report_rows(
        db, start=start, end=end, department_id=dept_scope, employee_id=emp_scope,
    )
    if format == "csv":
        return csv_download(
            render_csv(REPORT_HEADERS, rows),
            f"attendance_{start.isoformat()}_{end.isoformat()}.csv",
        )
    return success_response(
        {"startDate": start, "endDate": end, "headers": REPORT_HEADERS, "rows": rows},
    )


# ── PUT /{id} (manager/admin) ───────────────────────────────────────

@router.put("/{record_id}")
async def update_attendance(
    request: Request,
    record_id: uuid.UUID,
    body: AttendanceUpdate,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.update_record(
        db, record_id, body, actor=actor, **client_info(request),
    )
    return success_response(record, "Attendance record updated")
