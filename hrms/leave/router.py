"""Leave router — leave types, applications, approvals, balances, reporting.

Routes:
    /leave-types                      — List, create (admin; alias /add)
    /leave-types/{id}                 — Update, delete (admin)
    /leave-requests                   — Apply, role-scoped list
    /leave-requests/my-requests       — Caller's requests
    /leave-requests/team              — Manager's department requests
    /leave-requests/stats             — Caller's balances per type
    /leave-requests/summary           — Counts by status
    /leave-requests/department-stats  — Approved days per department / type
    /leave-requests/calendar          — Leave days by date for a month
    /leave-requests/report            — JSON rows or CSV download
    /leave-requests/{id}              — Detail, approve / reject
    /leave-requests/{id}/status       — Approve / reject by status
    /leave-requests/{id}/cancel       — Owner cancels
"""


import uuid
from datetime import date, datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.auth.dependencies import get_current_user, require_role, resolve_scope
from hrms.common.audit import client_info
from hrms.common.constants import LeaveAction, LeaveStatus, LeaveTimeframe, UserRole
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.common.export import csv_download, render_csv
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.common.timeutils import resolve_date_range
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.leave.models import LeaveRequest
from hrms.leave.schemas import (
    LeaveDecision,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveStatusUpdate,
    LeaveTypeCreate,
    LeaveTypeUpdate,
)
from hrms.leave.service import REPORT_HEADERS, LeaveService, LeaveTypeService

types_router = APIRouter(prefix="", tags=["leave"])
requests_router = APIRouter(prefix="", tags=["leave"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


@types_router.get("")
async def list_leave_types(
    include_inactive: bool = Query(False),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active leave types; admins may include deactivated ones."""
    include_inactive = include_inactive and employee.role == UserRole.admin
    return success_response(
        await LeaveTypeService.list_types(db, include_inactive=include_inactive),
    )


@types_router.post("", status_code=201)
@types_router.post("/add", status_code=201)
async def create_leave_type(
    request: Request,
    body: LeaveTypeCreate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    created = await LeaveTypeService.create_type(
        db, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(created, "Leave type created")


@types_router.put("/{leave_type_id}")
async def update_leave_type(
    request: Request,
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    updated = await LeaveTypeService.update_type(
        db, leave_type_id, body, actor_id=actor.id, client=client_info(request),
    )
    return success_response(updated, "Leave type updated")


@types_router.delete("/{leave_type_id}")
async def delete_leave_type(
    request: Request,
    leave_type_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    deactivated = await LeaveTypeService.delete_type(
        db, leave_type_id, actor_id=actor.id, client=client_info(request),
    )
    message = "Leave type is in use and was deactivated" if deactivated else "Leave type deleted"
    return success_response({"id": str(leave_type_id), "deactivated": deactivated}, message)


# ═════════════════════════════════════════════════════════════════════
# Leave requests
# ═════════════════════════════════════════════════════════════════════


# ── POST /leave-requests — Apply ────────────────────────────────────

@requests_router.post("", status_code=201)
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, overlap and balance."""
    created = await LeaveService.apply_leave(db, employee, body, client=client_info(request))
    return success_response(created, "Leave request submitted")


# ── GET /leave-requests — Role-scoped list ──────────────────────────

@requests_router.get("")
async def list_leave_requests(
    status: Optional[LeaveStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dept_scope, emp_scope = resolve_scope(
        employee, department_id=department_id, employee_id=user_id,
    )
    page = await LeaveService.list_requests(
        db,
        pagination,
        department_id=dept_scope,
        employee_id=emp_scope,
        status=status,
        leave_type_id=leave_type_id,
    )
    return success_response(page.envelope("leaveRequests"))


@requests_router.get("/my-requests")
async def my_leave_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await LeaveService.list_requests(
        db, pagination, employee_id=employee.id, status=status,
    )
    return success_response(page.envelope("leaveRequests"))


@requests_router.get("/team")
async def team_leave_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Requests from the manager's department."""
    if actor.department_id is None:
        raise ForbiddenException("You are not assigned to a department.")
    page = await LeaveService.list_requests(
        db, pagination, department_id=actor.department_id, status=status,
    )
    return success_response(page.envelope("leaveRequests"))


# ── Aggregates ──────────────────────────────────────────────────────

@requests_router.get("/stats")
async def leave_stats(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Caller's balance per leave type."""
    balances = await LeaveService.get_balances(db, employee.id, year or _today().year)
    return success_response(balances)


@requests_router.get("/summary")
async def leave_summary(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dept_scope, emp_scope = resolve_scope(employee)
    return success_response(
        await LeaveService.summary(db, department_id=dept_scope, employee_id=emp_scope),
    )


@requests_router.get("/department-stats")
async def department_leave_stats(
    timeframe: LeaveTimeframe = Query(LeaveTimeframe.month),
    department_id: Optional[uuid.UUID] = Query(None),
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    dept_scope, _ = resolve_scope(actor, department_id=department_id)
    return success_response(
        await LeaveService.department_stats(
            db, timeframe, today=_today(), department_id=dept_scope,
        ),
    )


@requests_router.get("/calendar")
async def leave_calendar(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    department_id: Optional[uuid.UUID] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    today = _today()
    dept_scope, emp_scope = resolve_scope(employee, department_id=department_id)
    days = await LeaveService.calendar(
        db,
        year or today.year,
        month or today.month,
        department_id=dept_scope,
        employee_id=emp_scope,
    )
    return success_response(
        {
            "year": year or today.year,
            "month": month or today.month,
            "days": {
                d: [e.model_dump(mode="json") for e in entries]
                for d, entries in days.items()
            },
        }
    )


@requests_router.get("/report")
async def leave_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    status: Optional[LeaveStatus] = Query(None),
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
    rows = await LeaveService.report_rows(
        db,
        start=start,
        end=end,
        status=status,
        department_id=dept_scope,
        employee_id=emp_scope,
    )
    if format == "csv":
        return csv_download(
            render_csv(REPORT_HEADERS, rows),
            f"leave_{start.isoformat()}_{end.isoformat()}.csv",
        )
    return success_response(
        {"startDate": start, "endDate": end, "headers": REPORT_HEADERS, "rows": rows},
    )


# ── Single request ──────────────────────────────────────────────────

@requests_router.get("/{request_id}")
async def get_leave_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(LeaveRequest)
        .where(LeaveRequest.id == request_id)
        .options(
            selectinload(LeaveRequest.employee),
            selectinload(LeaveRequest.leave_type),
        )
    )
    leave_req = result.scalars().first()
    if leave_req is None:
        raise NotFoundException("LeaveRequest", request_id)

    dept_scope, emp_scope = resolve_scope(employee)
    if (emp_scope and leave_req.employee_id != emp_scope) or (
        dept_scope and leave_req.employee.department_id != dept_scope
    ):
        raise ForbiddenException("You cannot view this leave request.")
    return success_response(LeaveRequestResponse.model_validate(leave_req))


@requests_router.put("/{request_id}")
async def decide_leave_request(
    request: Request,
    request_id: uuid.UUID,
    body: LeaveDecision,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject with ``{"action": "approve" | "reject"}``."""
    status = LeaveStatus.approved if body.action == LeaveAction.approve else LeaveStatus.rejected
    decided = await LeaveService.decide(
        db,
        request_id,
        status,
        actor=actor,
        comments=body.comments,
        client=client_info(request),
    )
    return success_response(decided, f"Leave request {status.value.lower()}")


@requests_router.put("/{request_id}/status")
async def update_leave_status(
    request: Request,
    request_id: uuid.UUID,
    body: LeaveStatusUpdate,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    decided = await LeaveService.decide(
        db,
        request_id,
        body.status,
        actor=actor,
        comments=body.comments,
        client=client_info(request),
    )
    return success_response(decided, f"Leave request {body.status.value.lower()}")


@requests_router.put("/{request_id}/cancel")
async def cancel_leave_request(
    request: Request,
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cancelled = await LeaveService.cancel_leave(
        db, request_id, actor=employee, client=client_info(request),
    )
    return success_response(cancelled, "Leave request cancelled")
