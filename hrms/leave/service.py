"""Leave service layer — leave types, balance engine, applications, approvals.

Business logic:
  - Balance per type and year: allowance + carry-forward − approved − pending
  - Application with overlap and balance checks; auto-approval for types
    that do not require approval
  - Decisions only from Pending; managers decide for their own department
  - Cancellation by the owner, stats, summaries, calendar, CSV report
"""

from __future__ import annotations

import calendar as _calendar
import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import LeaveStatus, LeaveTimeframe, UserRole
from hrms.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrms.common.export import format_date
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Department, Employee
from hrms.leave.models import LeaveRequest, LeaveType
from hrms.leave.schemas import (
    CalendarEntry,
    LeaveBalance,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveSummary,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from hrms.notifications.service import notify_leave_decided, notify_leave_submitted

logger = logging.getLogger(__name__)

REPORT_HEADERS = [
    "Employee Name", "Email", "Department", "Leave Type",
    "Start Date", "End Date", "Days", "Status", "Reason",
]
_TYPE_FIELDS = ["name", "description", "days_allowed", "carry_forward", "requires_approval", "is_active"]
_ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


def inclusive_days(start: date, end: date) -> int:
    """Calendar days from *start* to *end*, both included."""
    return (end - start).days + 1


def overlap_days(start: date, end: date, window_start: date, window_end: date) -> int:
    """Days of ``[start, end]`` that fall inside ``[window_start, window_end]``."""
    lo, hi = max(start, window_start), min(end, window_end)
    return inclusive_days(lo, hi) if hi >= lo else 0


def timeframe_window(timeframe: LeaveTimeframe, today: date) -> tuple[date, date]:
    """Calendar month / quarter / year containing *today*."""
    if timeframe == LeaveTimeframe.month:
        start = today.replace(day=1)
        end = today.replace(day=_calendar.monthrange(today.year, today.month)[1])
    elif timeframe == LeaveTimeframe.quarter:
        first_month = 3 * ((today.month - 1) // 3) + 1
        start = date(today.year, first_month, 1)
        last_month = first_month + 2
        end = date(today.year, last_month, _calendar.monthrange(today.year, last_month)[1])
    else:
        start, end = date(today.year, 1, 1), date(today.year, 12, 31)
    return start, end


def _request_options() -> list:
    return [
        selectinload(LeaveRequest.employee),
        selectinload(LeaveRequest.leave_type),
    ]


def lock_applicant(employee_id: uuid.UUID) -> Select:
    """Row lock that serialises one employee's applications."""
    return select(Employee.id).where(Employee.id == employee_id).with_for_update()


async def _transition(
    db: AsyncSession,
    leave_req: LeaveRequest,
    expected: LeaveStatus,
    **values: Any,
) -> None:
    """Write *values* only while the row is still in *expected*; 409 otherwise."""
    result = await db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave_req.id, LeaveRequest.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        current = (
            await db.execute(select(LeaveRequest.status).where(LeaveRequest.id == leave_req.id))
        ).scalar_one()
        logger.warning(
            "Leave %s changed concurrently: expected %s, found %s",
            leave_req.id, expected.value, current.value,
        )
        raise ConflictError(
            "status", current.value, detail=f"Leave request is already {current.value}.",
        )
    await db.refresh(leave_req, list(values) + ["updated_at"])


# ═════════════════════════════════════════════════════════════════════
# LeaveTypeService
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeService:
    """Admin-maintained catalogue of leave types."""

    @staticmethod
    async def list_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[LeaveTypeResponse]:
        query = select(LeaveType).order_by(LeaveType.name)
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        result = await db.execute(query)
        return [LeaveTypeResponse.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        name: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).scalar() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict] = None,
    ) -> LeaveTypeResponse:
        await LeaveTypeService._ensure_unique_name(db, data.name)

        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=snapshot(leave_type, _TYPE_FIELDS),
            **(client or {}),
        )
        logger.info("Leave type %r created (%s days)", leave_type.name, leave_type.days_allowed)
        return LeaveTypeResponse.model_validate(leave_type)

    @staticmethod
    async def update_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict] = None,
    ) -> LeaveTypeResponse:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            await LeaveTypeService._ensure_unique_name(db, changes["name"], exclude_id=leave_type_id)

        old_values = snapshot(leave_type, _TYPE_FIELDS)
        for field, value in changes.items():
            setattr(leave_type, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=snapshot(leave_type, _TYPE_FIELDS),
            **(client or {}),
        )
        return LeaveTypeResponse.model_validate(leave_type)

    @staticmethod
    async def delete_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
        client: Optional[dict] = None,
    ) -> bool:
        """Delete a leave type. Returns True when it was only deactivated
        because requests still reference it."""
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)

        in_use = (
            await db.execute(
                select(func.count())
                .select_from(LeaveRequest)
                .where(LeaveRequest.leave_type_id == leave_type_id)
            )
        ).scalar_one()

        old_values = snapshot(leave_type, _TYPE_FIELDS)
        if in_use:
            leave_type.is_active = False
            await db.flush()
        else:
            await db.execute(delete(LeaveType).where(LeaveType.id == leave_type_id))

        await create_audit_entry(
            db,
            action="deactivate" if in_use else "delete",
            entity_type="leave_type",
            entity_id=leave_type_id,
            actor_id=actor_id,
            old_values=old_values,
            **(client or {}),
        )
        logger.info(
            "Leave type %r %s", old_values["name"], "deactivated" if in_use else "deleted",
        )
        return bool(in_use)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: balances, requests, approvals, reporting."""

    # ─────────────────────────────────────────────────────────────────
    # Balance engine
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _days_by_status(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> dict[LeaveStatus, int]:
        """Approved / pending days of requests starting in *year*."""
        result = await db.execute(
            select(LeaveRequest.status, func.coalesce(func.sum(LeaveRequest.number_of_days), 0))
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.leave_type_id == leave_type_id,
                LeaveRequest.status.in_(_ACTIVE_STATUSES),
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
            .group_by(LeaveRequest.status)
        )
        totals = {LeaveStatus.approved: 0, LeaveStatus.pending: 0}
        for status, days in result.all():
            totals[status] = int(days)
        return totals

    @staticmethod
    async def compute_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> LeaveBalance:
        """Balance of *leave_type* for *year*.

        Carry-forward is last year's unused allowance, capped at one year's
        allowance.
        """
        current = await LeaveService._days_by_status(db, employee_id, leave_type.id, year)

        carried = 0
        if leave_type.carry_forward:
            previous = await LeaveService._days_by_status(
                db, employee_id, leave_type.id, year - 1,
            )
            unused = leave_type.days_allowed - previous[LeaveStatus.approved]
            carried = min(leave_type.days_allowed, max(0, unused))

        used = current[LeaveStatus.approved]
        pending = current[LeaveStatus.pending]
        return LeaveBalance(
            leave_type_id=leave_type.id,
            leave_type=leave_type.name,
            year=year,
            days_allowed=leave_type.days_allowed,
            carried_forward=carried,
            days_used=used,
            days_pending=pending,
            remaining=max(0, leave_type.days_allowed + carried - used - pending),
        )

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalance]:
        """Balances of every active leave type."""
        result = await db.execute(
            select(LeaveType).where(LeaveType.is_active.is_(True)).order_by(LeaveType.name)
        )
        return [
            await LeaveService.compute_balance(db, employee_id, lt, year)
            for lt in result.scalars().all()
        ]

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestCreate,
        *,
        client: Optional[dict] = None,
    ) -> LeaveRequestResponse:
        """Apply for leave with validation:
        - Start date not in the past
        - No overlapping pending/approved requests
        - Requested days within the remaining balance
        """
        now = datetime.now(timezone.utc)
        today = now.date()

        if data.start_date < today:
            raise ValidationException({"start_date": ["Leave cannot start in the past."]})

        # ── Leave type ──────────────────────────────────────────────
        lt_result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == data.leave_type_id,
                LeaveType.is_active.is_(True),
            )
        )
        leave_type = lt_result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", data.leave_type_id)

        days = inclusive_days(data.start_date, data.end_date)

        await db.execute(lock_applicant(employee.id))

        # ── Overlap ─────────────────────────────────────────────────
        overlap = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status.in_(_ACTIVE_STATUSES),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap.scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

        # ── Balance ─────────────────────────────────────────────────
        balance = await LeaveService.compute_balance(
            db, employee.id, leave_type, data.start_date.year,
        )
        if days > balance.remaining:
            logger.warning(
                "Leave rejected for %s: %s days requested, %s remaining",
                employee.email, days, balance.remaining,
            )
            raise ValidationException(
                {"number_of_days": [
                    f"Insufficient {leave_type.name} balance: {days} day(s) requested, "
                    f"{balance.remaining} remaining."
                ]}
            )

        leave_req = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            number_of_days=days,
            reason=data.reason,
            status=LeaveStatus.pending,
        )
        if not leave_type.requires_approval:
            leave_req.status = LeaveStatus.approved
            leave_req.action_at = now
            leave_req.comments = "Approved automatically"
        leave_req.employee = employee
        leave_req.leave_type = leave_type
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=employee.id,
            new_values={
                "leave_type": leave_type.name,
                "start_date": data.start_date,
                "end_date": data.end_date,
                "number_of_days": days,
                "status": leave_req.status,
            },
            **(client or {}),
        )

        if leave_req.status == LeaveStatus.pending:
            approver_id = await LeaveService._approver_for(db, employee)
            if approver_id is not None:
                await notify_leave_submitted(db, leave_req, approver_id, employee.full_name)

        logger.info(
            "Leave %s for %s: %s..%s (%s days, %s)",
            leave_req.id, employee.email, data.start_date, data.end_date,
            days, leave_req.status.value,
        )
        return LeaveRequestResponse.model_validate(leave_req)

    @staticmethod
    async def _approver_for(db: AsyncSession, employee: Employee) -> Optional[uuid.UUID]:
        """Department manager, falling back to the direct manager."""
        approver_id = None
        if employee.department_id is not None:
            dept = await db.get(Department, employee.department_id)
            approver_id = dept.manager_id if dept else None
        if approver_id is None or approver_id == employee.id:
            approver_id = employee.manager_id
        return approver_id if approver_id != employee.id else None

    # ─────────────────────────────────────────────────────────────────
    # Decide
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        request_id: uuid.UUID,
        status: LeaveStatus,
        *,
        actor: Employee,
        comments: Optional[str] = None,
        client: Optional[dict] = None,
    ) -> LeaveRequestResponse:
        """Approve or reject a pending request.

        Managers may only decide requests from their own department and
        never their own.
        """
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(*_request_options())
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)

        if actor.role != UserRole.admin:
            if leave_req.employee_id == actor.id:
                raise ForbiddenException("You cannot decide your own leave request.")
            if (
                actor.department_id is None
                or leave_req.employee.department_id != actor.department_id
            ):
                raise ForbiddenException(
                    "You can only decide leave requests from your own department."
                )

        if leave_req.status != LeaveStatus.pending:
            logger.warning(
                "Decision on %s rejected: already %s", leave_req.id, leave_req.status.value,
            )
            raise ConflictError(
                "status",
                leave_req.status.value,
                detail=f"Leave request is already {leave_req.status.value}.",
            )

        old_status = leave_req.status
        await _transition(
            db,
            leave_req,
            old_status,
            status=status,
            action_by=actor.id,
            action_at=datetime.now(timezone.utc),
            comments=comments,
        )

        await create_audit_entry(
            db,
            action="approve" if status == LeaveStatus.approved else "reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": status, "comments": comments},
            **(client or {}),
        )
        await notify_leave_decided(db, leave_req)
        logger.info("Leave %s %s by %s", leave_req.id, status.value.lower(), actor.email)

        return LeaveRequestResponse.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> LeaveRequestResponse:
        """Owner cancels a pending request or an approved one not yet started."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(*_request_options())
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        if leave_req.employee_id != actor.id:
            raise ForbiddenException("You can only cancel your own leave requests.")

        now = datetime.now(timezone.utc)
        if leave_req.status not in _ACTIVE_STATUSES:
            raise ConflictError(
                "status",
                leave_req.status.value,
                detail=f"Leave request is already {leave_req.status.value}.",
            )
        if leave_req.status == LeaveStatus.approved and leave_req.start_date <= now.date():
            raise ValidationException(
                {"status": ["Approved leave that has already started cannot be cancelled."]}
            )

        old_status = leave_req.status
        await _transition(
            db, leave_req, old_status, status=LeaveStatus.cancelled, cancelled_at=now,
        )

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": LeaveStatus.cancelled},
            **(client or {}),
        )
        logger.info("Leave %s cancelled by %s", leave_req.id, actor.email)

        return LeaveRequestResponse.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _scoped_query(
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> Select:
        query = select(LeaveRequest)
        if department_id is not None:
            query = query.join(Employee, Employee.id == LeaveRequest.employee_id).where(
                Employee.department_id == department_id,
            )
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        return query

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Paginated requests, newest first."""
        query = LeaveService._scoped_query(department_id=department_id, employee_id=employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if leave_type_id is not None:
            query = query.where(LeaveRequest.leave_type_id == leave_type_id)
        query = query.order_by(LeaveRequest.created_at.desc())

        page = await paginate(
            db, query, pagination, model=LeaveRequest, options=_request_options(),
        )
        page.data = [LeaveRequestResponse.model_validate(r) for r in page.data]
        return page

    @staticmethod
    async def summary(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> LeaveSummary:
        """Request counts by status."""
        base = LeaveService._scoped_query(
            department_id=department_id, employee_id=employee_id,
        ).subquery()
        result = await db.execute(
            select(base.c.status, func.count()).group_by(base.c.status)
        )
        counts = {status: n for status, n in result.all()}
        return LeaveSummary(
            total=sum(counts.values()),
            pending=counts.get(LeaveStatus.pending, 0),
            approved=counts.get(LeaveStatus.approved, 0),
            rejected=counts.get(LeaveStatus.rejected, 0),
            cancelled=counts.get(LeaveStatus.cancelled, 0),
        )

    @staticmethod
    async def department_stats(
        db: AsyncSession,
        timeframe: LeaveTimeframe,
        *,
        today: date,
        department_id: Optional[uuid.UUID] = None,
    ) -> dict[str, Any]:
        """Approved leave days per department and leave type, clipped to the window."""
        start, end = timeframe_window(timeframe, today)

        query = (
            select(LeaveRequest, Department.id, Department.name)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .join(Department, Department.id == Employee.department_id)
            .where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .options(selectinload(LeaveRequest.leave_type))
        )
        if department_id is not None:
            query = query.where(Department.id == department_id)

        departments: dict[uuid.UUID, dict[str, Any]] = {}
        for leave_req, dept_id, dept_name in (await db.execute(query)).all():
            entry = departments.setdefault(
                dept_id,
                {
                    "departmentId": str(dept_id),
                    "department": dept_name,
                    "totalDays": 0,
                    "requests": 0,
                    "byType": defaultdict(int),
                },
            )
            days = overlap_days(leave_req.start_date, leave_req.end_date, start, end)
            entry["totalDays"] += days
            entry["requests"] += 1
            entry["byType"][leave_req.leave_type.name] += days

        rows = sorted(departments.values(), key=lambda d: d["department"])
        for row in rows:
            row["byType"] = dict(row["byType"])
        return {
            "timeframe": timeframe.value,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "departments": rows,
        }

    @staticmethod
    async def calendar(
        db: AsyncSession,
        year: int,
        month: int,
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> dict[str, list[CalendarEntry]]:
        """Approved and pending leave keyed by ISO date for one month."""
        start = date(year, month, 1)
        end = date(year, month, _calendar.monthrange(year, month)[1])

        query = (
            LeaveService._scoped_query(department_id=department_id, employee_id=employee_id)
            .where(
                LeaveRequest.status.in_(_ACTIVE_STATUSES),
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .options(*_request_options())
            .order_by(LeaveRequest.start_date)
        )
        days: dict[str, list[CalendarEntry]] = defaultdict(list)
        for leave_req in (await db.execute(query)).scalars().all():
            cursor = max(leave_req.start_date, start)
            last = min(leave_req.end_date, end)
            while cursor <= last:
                days[cursor.isoformat()].append(
                    CalendarEntry(
                        request_id=leave_req.id,
                        user_id=leave_req.employee_id,
                        name=leave_req.employee.full_name,
                        leave_type=leave_req.leave_type.name,
                        status=leave_req.status,
                    )
                )
                cursor += timedelta(days=1)
        return dict(sorted(days.items()))

    @staticmethod
    async def on_leave_count(
        db: AsyncSession,
        day: date,
        *,
        department_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Distinct employees with approved leave covering *day*."""
        query = (
            select(func.count(func.distinct(LeaveRequest.employee_id)))
            .where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
        )
        if department_id is not None:
            query = query.join(Employee, Employee.id == LeaveRequest.employee_id).where(
                Employee.department_id == department_id,
            )
        return (await db.execute(query)).scalar_one()

    # ─────────────────────────────────────────────────────────────────
    # Report
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def report_rows(
        db: AsyncSession,
        *,
        start: date,
        end: date,
        status: Optional[LeaveStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> list[dict[str, Any]]:
        """Export rows keyed by ``REPORT_HEADERS`` for requests overlapping the range."""
        query = (
            LeaveService._scoped_query(department_id=department_id, employee_id=employee_id)
            .where(LeaveRequest.start_date <= end, LeaveRequest.end_date >= start)
            .options(
                selectinload(LeaveRequest.employee).selectinload(Employee.department),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.start_date)
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        rows: list[dict[str, Any]] = []
        for r in (await db.execute(query)).scalars().all():
            emp = r.employee
            rows.append(
                {
                    "Employee Name": emp.full_name,
                    "Email": emp.email,
                    "Department": emp.department.name if emp.department else "",
                    "Leave Type": r.leave_type.name,
                    "Start Date": format_date(r.start_date),
                    "End Date": format_date(r.end_date),
                    "Days": r.number_of_days,
                    "Status": r.status.value,
                    "Reason": r.reason or "",
                }
            )
        return rows
