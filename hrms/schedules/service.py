"""Scheduling service layer — department shifts and schedule assignment.

Business logic:
  - Shifts belong to a department; managers manage their own department's
  - Assignments expand recurring options into one schedule per occurrence
  - Assignees must be active members of the shift's department, within the
    shift's ``max_employees`` and free of overlapping schedules
"""

from __future__ import annotations

import calendar as _calendar
import logging
import uuid
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import RecurrenceType, ShiftStatus, UserRole
from hrms.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Department, Employee
from hrms.schedules.models import Schedule, Shift, schedule_employees
from hrms.schedules.schemas import (
    RecurringOptions,
    ScheduleAssign,
    ScheduleResponse,
    ShiftCreate,
    ShiftResponse,
    ShiftUpdate,
)

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 366
_SHIFT_FIELDS = [
    "name", "start_time", "end_time", "description",
    "max_employees", "grace_minutes", "status",
]


# ═════════════════════════════════════════════════════════════════════
# Recurrence
# ═════════════════════════════════════════════════════════════════════


def _add_months(d: date, months: int) -> Optional[date]:
    """Same day ``months`` later, clamped to month end; None past ``date.max``."""
    month_index = d.month - 1 + months
    year, month = d.year + month_index // 12, month_index % 12 + 1
    if year > date.max.year:
        return None
    return date(year, month, min(d.day, _calendar.monthrange(year, month)[1]))


def _append_capped(starts: list[date], day: date) -> None:
    starts.append(day)
    if len(starts) > MAX_OCCURRENCES:
        raise ValidationException(
            {"recurring_options": [f"Recurrence expands to more than {MAX_OCCURRENCES} schedules."]}
        )


def expand_occurrences(
    start: date,
    end: date,
    options: Optional[RecurringOptions],
) -> list[tuple[date, date]]:
    """Expand a base ``[start, end]`` span into dated occurrences.

    Each occurrence keeps the base span's length. Weekly ``days`` use
    0 = Sunday; without days the start date's weekday repeats.
    Expansion stops with a 422 as soon as it passes ``MAX_OCCURRENCES``.
    """
    if options is None:
        return [(start, end)]

    span = end - start
    until = min(options.end_date, date.max - span)
    starts: list[date] = []

    if options.type == RecurrenceType.daily:
        current = start
        while current <= until:
            _append_capped(starts, current)
            if (until - current).days < options.interval:
                break
            current += timedelta(days=options.interval)

    elif options.type == RecurrenceType.weekly:
        # Python weekday(): Monday=0; recurrence days: Sunday=0
        wanted = sorted(set(options.days) or {(start.weekday() + 1) % 7})
        step = 7 * options.interval
        week_start = start - timedelta(days=(start.weekday() + 1) % 7)
        while week_start <= until:
            for offset in wanted:
                if offset > (until - week_start).days:
                    break
                day = week_start + timedelta(days=offset)
                if day >= start:
                    _append_capped(starts, day)
            if (until - week_start).days < step:
                break
            week_start += timedelta(days=step)

    else:
        n = 0
        current = start
        while current is not None and current <= until:
            _append_capped(starts, current)
            n += options.interval
            current = _add_months(start, n)

    return [(s, s + span) for s in starts]


def _find_self_overlap(occurrences: list[tuple[date, date]]) -> Optional[date]:
    ordered = sorted(occurrences)
    for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
        if next_start <= prev_end:
            return next_start
    return None


# ═════════════════════════════════════════════════════════════════════
# ShiftService
# ═════════════════════════════════════════════════════════════════════


def _ensure_shift_access(actor: Employee, shift: Shift) -> None:
    if actor.role != UserRole.admin and shift.department_id != actor.department_id:
        raise ForbiddenException("You can only manage shifts of your own department.")


class ShiftService:
    """Department shift catalogue."""

    @staticmethod
    async def get_shift(db: AsyncSession, shift_id: uuid.UUID) -> Shift:
        shift = await db.get(Shift, shift_id)
        if shift is None:
            raise NotFoundException("Shift", shift_id)
        return shift

    @staticmethod
    async def list_shifts(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[ShiftStatus] = None,
    ) -> list[ShiftResponse]:
        query = select(Shift).order_by(Shift.start_time, Shift.name)
        if department_id is not None:
            query = query.where(Shift.department_id == department_id)
        if status is not None:
            query = query.where(Shift.status == status)
        result = await db.execute(query)
        return [ShiftResponse.model_validate(s) for s in result.scalars().all()]

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession,
        department_id: uuid.UUID,
        name: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Shift.id).where(
            Shift.department_id == department_id,
            func.lower(Shift.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(Shift.id != exclude_id)
        if (await db.execute(query)).scalar() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create_shift(
        db: AsyncSession,
        data: ShiftCreate,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> ShiftResponse:
        """Create a shift in the actor's department (admins may choose one)."""
        department_id = actor.department_id
        if actor.role == UserRole.admin and data.department_id is not None:
            department_id = data.department_id
        if department_id is None:
            raise ValidationException({"department_id": ["A department is required."]})
        if await db.get(Department, department_id) is None:
            raise ValidationException(
                {"department_id": [f"Department '{department_id}' does not exist."]}
            )

        await ShiftService._ensure_unique_name(db, department_id, data.name)

        shift = Shift(
            **data.model_dump(exclude={"department_id"}),
            department_id=department_id,
            created_by=actor.id,
        )
        db.add(shift)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=actor.id,
            new_values=snapshot(shift, _SHIFT_FIELDS),
            **(client or {}),
        )
        logger.info("Shift %r created in department %s", shift.name, department_id)
        return ShiftResponse.model_validate(shift)

    @staticmethod
    async def update_shift(
        db: AsyncSession,
        shift_id: uuid.UUID,
        data: ShiftUpdate,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> ShiftResponse:
        shift = await ShiftService.get_shift(db, shift_id)
        _ensure_shift_access(actor, shift)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            await ShiftService._ensure_unique_name(
                db, shift.department_id, changes["name"], exclude_id=shift.id,
            )
        start = changes.get("start_time", shift.start_time)
        end = changes.get("end_time", shift.end_time)
        if start == end:
            raise ValidationException({"end_time": ["end_time must differ from start_time."]})

        old_values = snapshot(shift, _SHIFT_FIELDS)
        for field, value in changes.items():
            setattr(shift, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=snapshot(shift, _SHIFT_FIELDS),
            **(client or {}),
        )
        return ShiftResponse.model_validate(shift)

    @staticmethod
    async def delete_shift(
        db: AsyncSession,
        shift_id: uuid.UUID,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> bool:
        """Delete a shift. Returns True when it was only deactivated
        because schedules still reference it."""
        shift = await ShiftService.get_shift(db, shift_id)
        _ensure_shift_access(actor, shift)

        in_use = (
            await db.execute(
                select(func.count()).select_from(Schedule).where(Schedule.shift_id == shift_id)
            )
        ).scalar_one()

        old_values = snapshot(shift, _SHIFT_FIELDS)
        if in_use:
            shift.status = ShiftStatus.inactive
            await db.flush()
        else:
            await db.execute(delete(Shift).where(Shift.id == shift_id))

        await create_audit_entry(
            db,
            action="deactivate" if in_use else "delete",
            entity_type="shift",
            entity_id=shift_id,
            actor_id=actor.id,
            old_values=old_values,
            **(client or {}),
        )
        logger.info("Shift %r %s", old_values["name"], "deactivated" if in_use else "deleted")
        return bool(in_use)


# ═════════════════════════════════════════════════════════════════════
# ScheduleService
# ═════════════════════════════════════════════════════════════════════


def _schedule_options() -> list:
    return [selectinload(Schedule.shift), selectinload(Schedule.employees)]


class ScheduleService:
    """Schedule listing and assignment."""

    @staticmethod
    async def list_schedules(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        shift_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Schedules overlapping ``[start, end]``, earliest first."""
        query = select(Schedule).join(Shift, Shift.id == Schedule.shift_id)
        if department_id is not None:
            query = query.where(Shift.department_id == department_id)
        if start is not None:
            query = query.where(Schedule.end_date >= start)
        if end is not None:
            query = query.where(Schedule.start_date <= end)
        if shift_id is not None:
            query = query.where(Schedule.shift_id == shift_id)
        if employee_id is not None:
            query = query.where(
                Schedule.id.in_(
                    select(schedule_employees.c.schedule_id).where(
                        schedule_employees.c.employee_id == employee_id,
                    )
                )
            )
        if search:
            pattern = f"%{search}%"
            matching = (
                select(schedule_employees.c.schedule_id)
                .join(Employee, Employee.id == schedule_employees.c.employee_id)
                .where(
                    or_(
                        Employee.first_name.ilike(pattern),
                        Employee.last_name.ilike(pattern),
                        Employee.email.ilike(pattern),
                    )
                )
            )
            query = query.where(or_(Shift.name.ilike(pattern), Schedule.id.in_(matching)))

        query = query.order_by(Schedule.start_date, Shift.start_time)
        page = await paginate(
            db, query, pagination, model=Schedule, options=_schedule_options(),
        )
        page.data = [ScheduleResponse.model_validate(s) for s in page.data]
        return page

    @staticmethod
    async def upcoming_for(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        today: date,
        limit: int = 50,
    ) -> list[ScheduleResponse]:
        """The employee's schedules that have not ended yet."""
        result = await db.execute(
            select(Schedule)
            .join(schedule_employees, schedule_employees.c.schedule_id == Schedule.id)
            .where(
                schedule_employees.c.employee_id == employee_id,
                Schedule.end_date >= today,
            )
            .options(*_schedule_options())
            .order_by(Schedule.start_date)
            .limit(limit)
        )
        return [ScheduleResponse.model_validate(s) for s in result.scalars().unique().all()]

    @staticmethod
    async def assign(
        db: AsyncSession,
        data: ScheduleAssign,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> list[ScheduleResponse]:
        """Assign employees to a shift, one schedule per occurrence."""
        shift = await ShiftService.get_shift(db, data.shift_id)
        _ensure_shift_access(actor, shift)
        if shift.status != ShiftStatus.active:
            raise ValidationException({"shift_id": ["Shift is inactive."]})

        if shift.max_employees is not None and len(data.employee_ids) > shift.max_employees:
            raise ValidationException(
                {"employee_ids": [
                    f"Shift '{shift.name}' allows at most {shift.max_employees} employee(s)."
                ]}
            )

        # ── Assignees ───────────────────────────────────────────────
        result = await db.execute(select(Employee).where(Employee.id.in_(data.employee_ids)))
        employees = {e.id: e for e in result.scalars().all()}
        invalid = [
            str(eid) for eid in data.employee_ids
            if eid not in employees
            or not employees[eid].is_active
            or employees[eid].department_id != shift.department_id
        ]
        if invalid:
            raise ValidationException(
                {"employee_ids": [
                    "Employees must be active members of the shift's department: "
                    + ", ".join(invalid)
                ]}
            )

        # ── Occurrences ─────────────────────────────────────────────
        occurrences = expand_occurrences(data.start_date, data.end_date, data.recurring_options)
        clash = _find_self_overlap(occurrences)
        if clash is not None:
            raise ValidationException(
                {"recurring_options": [f"Recurring schedules overlap on {clash.isoformat()}."]}
            )

        first, last = occurrences[0][0], max(e for _, e in occurrences)
        existing = await db.execute(
            select(schedule_employees.c.employee_id, Schedule.start_date, Schedule.end_date)
            .join(Schedule, Schedule.id == schedule_employees.c.schedule_id)
            .where(
                schedule_employees.c.employee_id.in_(data.employee_ids),
                Schedule.start_date <= last,
                Schedule.end_date >= first,
            )
        )
        for emp_id, s_start, s_end in existing.all():
            for o_start, o_end in occurrences:
                if s_start <= o_end and s_end >= o_start:
                    emp = employees[emp_id]
                    logger.warning("Schedule overlap for %s on %s", emp.email, o_start)
                    raise ConflictError(
                        "employee_ids",
                        emp_id,
                        detail=(
                            f"{emp.full_name} already has a schedule between "
                            f"{s_start.isoformat()} and {s_end.isoformat()}."
                        ),
                    )

        # ── Create ──────────────────────────────────────────────────
        group = uuid.uuid4() if len(occurrences) > 1 else None
        assignees = [employees[eid] for eid in data.employee_ids]
        created: list[Schedule] = []
        for o_start, o_end in occurrences:
            schedule = Schedule(
                shift_id=shift.id,
                start_date=o_start,
                end_date=o_end,
                recurrence_group=group,
                created_by=actor.id,
            )
            schedule.shift = shift
            schedule.employees = list(assignees)
            db.add(schedule)
            created.append(schedule)
        await db.flush()

        await create_audit_entry(
            db,
            action="assign",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=actor.id,
            new_values={
                "employee_ids": data.employee_ids,
                "start_date": data.start_date,
                "end_date": data.end_date,
                "occurrences": len(created),
                "recurrence_group": group,
            },
            **(client or {}),
        )
        logger.info(
            "Assigned %d employee(s) to shift %r in %d schedule(s)",
            len(assignees), shift.name, len(created),
        )
        return [ScheduleResponse.model_validate(s) for s in created]

    @staticmethod
    async def delete_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        *,
        actor: Employee,
        client: Optional[dict] = None,
    ) -> None:
        result = await db.execute(
            select(Schedule).where(Schedule.id == schedule_id).options(selectinload(Schedule.shift))
        )
        schedule = result.scalars().first()
        if schedule is None:
            raise NotFoundException("Schedule", schedule_id)
        _ensure_shift_access(actor, schedule.shift)

        old_values = snapshot(schedule, ["shift_id", "start_date", "end_date"])
        await db.execute(
            delete(schedule_employees).where(schedule_employees.c.schedule_id == schedule_id)
        )
        await db.execute(delete(Schedule).where(Schedule.id == schedule_id))

        await create_audit_entry(
            db,
            action="delete",
            entity_type="schedule",
            entity_id=schedule_id,
            actor_id=actor.id,
            old_values=old_values,
            **(client or {}),
        )
