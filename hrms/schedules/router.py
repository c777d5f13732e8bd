"""Scheduling router — department shifts and schedule assignment.

Routes:
    /shifts/department            — List, create shifts (manager+)
    /shifts/{id}                  — Update, delete a shift
    /schedules/department         — Paginated department schedules
    /schedules/department/assign  — Assign employees (recurrence aware)
    /schedules/my                 — Caller's upcoming schedules
    /schedules/{id}               — Remove a schedule
"""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role, resolve_scope
from hrms.common.audit import client_info
from hrms.common.constants import ShiftStatus, UserRole
from hrms.common.exceptions import ValidationException
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.schedules.schemas import ScheduleAssign, ShiftCreate, ShiftUpdate
from hrms.schedules.service import ScheduleService, ShiftService

shifts_router = APIRouter(prefix="", tags=["schedules"])
schedules_router = APIRouter(prefix="", tags=["schedules"])


# ═════════════════════════════════════════════════════════════════════
# Shifts
# ═════════════════════════════════════════════════════════════════════


@shifts_router.get("/department")
async def department_shifts(
    department_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ShiftStatus] = Query(None),
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    dept_scope, _ = resolve_scope(actor, department_id=department_id)
    return success_response(
        await ShiftService.list_shifts(db, department_id=dept_scope, status=status),
    )


@shifts_router.post("/department", status_code=201)
async def create_shift(
    request: Request,
    body: ShiftCreate,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    shift = await ShiftService.create_shift(db, body, actor=actor, client=client_info(request))
    return success_response(shift, "Shift created")


@shifts_router.put("/{shift_id}")
async def update_shift(
    request: Request,
    shift_id: uuid.UUID,
    body: ShiftUpdate,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    shift = await ShiftService.update_shift(
        db, shift_id, body, actor=actor, client=client_info(request),
    )
    return success_response(shift, "Shift updated")


@shifts_router.delete("/{shift_id}")
async def delete_shift(
    request: Request,
    shift_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    deactivated = await ShiftService.delete_shift(
        db, shift_id, actor=actor, client=client_info(request),
    )
    message = "Shift is scheduled and was deactivated" if deactivated else "Shift deleted"
    return success_response({"id": str(shift_id), "deactivated": deactivated}, message)


# ═════════════════════════════════════════════════════════════════════
# Schedules
# ═════════════════════════════════════════════════════════════════════


@schedules_router.get("/department")
async def department_schedules(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    shift_id: Optional[uuid.UUID] = Query(None, alias="shiftId"),
    search: Optional[str] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    if start_date and end_date and end_date < start_date:
        raise ValidationException({"endDate": ["endDate must be on or after startDate."]})
    dept_scope, _ = resolve_scope(actor, department_id=department_id)
    page = await ScheduleService.list_schedules(
        db,
        pagination,
        department_id=dept_scope,
        start=start_date,
        end=end_date,
        shift_id=shift_id,
        search=search,
    )
    return success_response(page.envelope("schedules"))


@schedules_router.post("/department/assign", status_code=201)
async def assign_schedule(
    request: Request,
    body: ScheduleAssign,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Assign employees to a shift; recurring options create one schedule per occurrence."""
    created = await ScheduleService.assign(db, body, actor=actor, client=client_info(request))
    return success_response(created, f"{len(created)} schedule(s) created")


@schedules_router.get("/my")
async def my_schedules(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    today = datetime.now(timezone.utc).date()
    return success_response(await ScheduleService.upcoming_for(db, employee.id, today=today))


@schedules_router.delete("/{schedule_id}")
async def delete_schedule(
    request: Request,
    schedule_id: uuid.UUID,
    actor: Employee = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleService.delete_schedule(
        db, schedule_id, actor=actor, client=client_info(request),
    )
    return success_response(None, "Schedule deleted")
