"""Attendance service layer — clock sessions, late detection, reporting.

Business logic:
  - One open ("In Progress") session per employee; clock-out closes it
    and stores the duration in whole minutes
  - Arrival status from the shift of the schedule covering today
  - Role-scoped listing, statistics and CSV/JSON reports
  - Manager/admin corrections with duration recomputation
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import Select, case, distinct, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.attendance.models import AttendanceRecord
from hrms.attendance.schemas import (
    AttendanceRecordResponse,
    AttendanceStatistics,
    AttendanceUpdate,
    TodayResponse,
)
from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import ArrivalStatus, AttendanceSessionStatus, ShiftStatus, UserRole
from hrms.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrms.common.export import format_date, format_duration, format_hours, format_time
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.common.timeutils import as_utc, minutes_between
from hrms.config import settings
from hrms.core_hr.models import Employee
from hrms.schedules.models import Schedule, Shift, schedule_employees

logger = logging.getLogger(__name__)

REPORT_HEADERS = [
    "Date", "Employee Name", "Email", "Department",
    "Clock In", "Clock Out", "Duration", "Status",
]
_AUDIT_FIELDS = ["clock_in", "clock_out", "duration", "status", "notes", "session_date"]


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations: clock, read, correct, report."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def get_shift_for_day(
        db: AsyncSession,
        employee_id: uuid.UUID,
        target_date: date,
    ) -> Optional[Shift]:
        """Shift of the active schedule covering *target_date*, if any."""
        result = await db.execute(
            select(Shift)
            .join(Schedule, Schedule.shift_id == Shift.id)
            .join(schedule_employees, schedule_employees.c.schedule_id == Schedule.id)
            .where(
                schedule_employees.c.employee_id == employee_id,
                Schedule.start_date <= target_date,
                Schedule.end_date >= target_date,
                Shift.status == ShiftStatus.active,
            )
            .order_by(Schedule.start_date.desc(), Shift.start_time)
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    def determine_arrival_status(
        clock_in_time: datetime,
        shift: Optional[Shift],
    ) -> tuple[ArrivalStatus, int]:
        """Compare clock-in against shift start + grace.

        Returns (status, minutes late). Shift times are wall-clock times in
        ``DEFAULT_TIMEZONE`` on the session date.
        """
        if shift is None:
            return ArrivalStatus.on_time, 0

        tz = ZoneInfo(settings.DEFAULT_TIMEZONE)
        local_in = as_utc(clock_in_time).astimezone(tz)
        shift_start = datetime.combine(local_in.date(), shift.start_time, tzinfo=tz)
        late_by = int((local_in - shift_start).total_seconds() // 60)

        if late_by <= shift.grace_minutes:
            return ArrivalStatus.on_time, 0
        if late_by <= settings.LATE_THRESHOLD_MINUTES:
            return ArrivalStatus.late, late_by
        return ArrivalStatus.very_late, late_by

    @staticmethod
    async def _get_open_session(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[AttendanceRecord]:
        result = await db.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.status == AttendanceSessionStatus.in_progress,
            )
            .options(selectinload(AttendanceRecord.employee))
        )
        return result.scalars().first()

    @staticmethod
    def _scoped_query(
        *,
        department_id: Optional[uuid.UUID],
        employee_id: Optional[uuid.UUID],
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[AttendanceSessionStatus] = None,
    ) -> Select:
        query = select(AttendanceRecord)
        if department_id is not None:
            query = query.join(Employee, Employee.id == AttendanceRecord.employee_id).where(
                Employee.department_id == department_id,
            )
        if employee_id is not None:
            query = query.where(AttendanceRecord.employee_id == employee_id)
        if start is not None:
            query = query.where(AttendanceRecord.session_date >= start)
        if end is not None:
            query = query.where(AttendanceRecord.session_date <= end)
        if status is not None:
            query = query.where(AttendanceRecord.status == status)
        return query

    # ── Clock in ────────────────────────────────────────────────────

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        employee: Employee,
        *,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttendanceRecordResponse:
        """Open a session. 409 when one is already in progress."""
        if await AttendanceService._get_open_session(db, employee.id) is not None:
            logger.warning("Duplicate clock-in rejected for %s", employee.email)
            raise ConflictError(
                "session",
                employee.id,
                detail="You already have an active session. Clock out first.",
            )

        now = datetime.now(timezone.utc)
        today = now.date()
        local_day = now.astimezone(ZoneInfo(settings.DEFAULT_TIMEZONE)).date()
        shift = await AttendanceService.get_shift_for_day(db, employee.id, local_day)
        arrival, late_by = AttendanceService.determine_arrival_status(now, shift)

        record = AttendanceRecord(
            employee_id=employee.id,
            session_date=today,
            clock_in=now,
            status=AttendanceSessionStatus.in_progress,
            arrival_status=arrival,
            late_by_minutes=late_by,
            shift_id=shift.id if shift else None,
            notes=notes,
            ip_address=ip_address,
        )
        record.employee = employee
        db.add(record)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent clock-in won the unique open-session index
            await db.rollback()
            raise ConflictError(
                "session",
                employee.id,
                detail="You already have an active session. Clock out first.",
            )

        await create_audit_entry(
            db,
            action="clock_in",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee.id,
            new_values={
                "clock_in": now,
                "arrival_status": arrival,
                "shift_id": shift.id if shift else None,
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Clock-in %s at %s (%s)", employee.email, now.isoformat(), arrival.value)

        return AttendanceRecordResponse.model_validate(record)

    # ── Clock out ───────────────────────────────────────────────────

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        employee: Employee,
        *,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttendanceRecordResponse:
        """Close the open session. 422 when there is none."""
        record = await AttendanceService._get_open_session(db, employee.id)
        if record is None:
            raise ValidationException(
                {"clock_out": ["No active session found. Please clock in first."]}
            )

        now = datetime.now(timezone.utc)
        record.clock_out = now
        record.duration = minutes_between(record.clock_in, now)
        record.status = AttendanceSessionStatus.completed
        if notes:
            record.notes = f"{record.notes}\n{notes}" if record.notes else notes
        await db.flush()

        await create_audit_entry(
            db,
            action="clock_out",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee.id,
            new_values={"clock_out": now, "duration": record.duration},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Clock-out %s after %s min", employee.email, record.duration)

        return AttendanceRecordResponse.model_validate(record)

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get_active_session(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[AttendanceRecordResponse]:
        record = await AttendanceService._get_open_session(db, employee_id)
        return AttendanceRecordResponse.model_validate(record) if record else None

    @staticmethod
    async def get_today(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> TodayResponse:
        """All of today's sessions; the open one counts up to now."""
        now = datetime.now(timezone.utc)
        today = now.date()
        result = await db.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.session_date == today,
            )
            .options(selectinload(AttendanceRecord.employee))
            .order_by(AttendanceRecord.clock_in)
        )
        records = result.scalars().all()

        total = 0
        active = None
        for r in records:
            if r.status == AttendanceSessionStatus.in_progress:
                active = r
                total += minutes_between(r.clock_in, now)
            else:
                total += r.duration or 0

        return TodayResponse(
            date=today,
            sessions=[AttendanceRecordResponse.model_validate(r) for r in records],
            active_session=AttendanceRecordResponse.model_validate(active) if active else None,
            total_minutes=total,
            total_hours=format_hours(total),
        )

    @staticmethod
    async def list_records(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[AttendanceSessionStatus] = None,
    ) -> PaginatedResponse:
        """Paginated sessions, newest first."""
        if start and end and end < start:
            raise ValidationException({"endDate": ["endDate must be on or after startDate."]})

        query = AttendanceService._scoped_query(
            department_id=department_id,
            employee_id=employee_id,
            start=start,
            end=end,
            status=status,
        ).order_by(AttendanceRecord.clock_in.desc())

        page = await paginate(
            db,
            query,
            pagination,
            model=AttendanceRecord,
            options=[selectinload(AttendanceRecord.employee)],
        )
        page.data = [AttendanceRecordResponse.model_validate(r) for r in page.data]
        return page

    # ── Statistics ──────────────────────────────────────────────────

    @staticmethod
    async def statistics(
        db: AsyncSession,
        *,
        start: date,
        end: date,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> AttendanceStatistics:
        """Aggregates over sessions in the inclusive range; open ones add no hours."""
        base = AttendanceService._scoped_query(
            department_id=department_id, employee_id=employee_id, start=start, end=end,
        ).subquery()
        workday = settings.WORKDAY_MINUTES

        row = (
            await db.execute(
                select(
                    func.count(distinct(base.c.session_date)),
                    func.count(base.c.id),
                    func.coalesce(func.sum(base.c.duration), 0),
                    func.coalesce(
                        func.sum(
                            case(
                                (
                                    base.c.arrival_status.in_(
                                        [ArrivalStatus.late, ArrivalStatus.very_late]
                                    ),
                                    1,
                                ),
                                else_=0,
                            )
                        ),
                        0,
                    ),
                    func.coalesce(
                        func.sum(
                            case(
                                (base.c.duration > workday, base.c.duration - workday),
                                else_=0,
                            )
                        ),
                        0,
                    ),
                )
            )
        ).one()
        total_days, total_sessions, total_minutes, late, overtime = row

        total_hours = format_hours(int(total_minutes))
        return AttendanceStatistics(
            start_date=start,
            end_date=end,
            total_days=total_days,
            total_sessions=total_sessions,
            total_hours=total_hours,
            average_hours_per_day=round(total_hours / total_days, 2) if total_days else 0.0,
            late_arrivals=int(late),
            overtime_hours=format_hours(int(overtime)),
        )

    # ── Report ──────────────────────────────────────────────────────

    @staticmethod
    async def report_rows(
        db: AsyncSession,
        *,
        start: date,
        end: date,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> list[dict[str, Any]]:
        """Export rows keyed by ``REPORT_HEADERS``, oldest first."""
        query = (
            AttendanceService._scoped_query(
                department_id=department_id, employee_id=employee_id, start=start, end=end,
            )
            .options(selectinload(AttendanceRecord.employee).selectinload(Employee.department))
            .order_by(AttendanceRecord.session_date, AttendanceRecord.clock_in)
        )
        records = (await db.execute(query)).scalars().all()

        rows: list[dict[str, Any]] = []
        for r in records:
            emp = r.employee
            rows.append(
                {
                    "Date": format_date(r.session_date),
                    "Employee Name": emp.full_name,
                    "Email": emp.email,
                    "Department": emp.department.name if emp.department else "",
                    "Clock In": format_time(as_utc(r.clock_in)),
                    "Clock Out": format_time(as_utc(r.clock_out)),
                    "Duration": format_duration(r.duration),
                    "Status": r.status.value,
                }
            )
        return rows

    # ── Correction ──────────────────────────────────────────────────

    @staticmethod
    async def update_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        data: AttendanceUpdate,
        *,
        actor: Employee,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttendanceRecordResponse:
        """Correct clock times / notes; the duration follows the times."""
        result = await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .options(selectinload(AttendanceRecord.employee))
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("AttendanceRecord", record_id)

        if actor.role == UserRole.manager and (
            actor.department_id is None or record.employee.department_id != actor.department_id
        ):
            raise ForbiddenException("You can only edit attendance for your own department.")

        old_values = snapshot(record, _AUDIT_FIELDS)
        changes = data.model_dump(exclude_unset=True)

        clock_in = changes.get("clock_in") or as_utc(record.clock_in)
        clock_out = changes["clock_out"] if "clock_out" in changes else as_utc(record.clock_out)
        latest = datetime.now(timezone.utc) + timedelta(minutes=1)
        if clock_in > latest:
            raise ValidationException({"clock_in": ["clock_in cannot be in the future."]})
        if clock_out is not None and clock_out <= clock_in:
            raise ValidationException({"clock_out": ["clock_out must be after clock_in."]})
        if clock_out is not None and clock_out > latest:
            raise ValidationException({"clock_out": ["clock_out cannot be in the future."]})

        if "clock_in" in changes:
            record.clock_in = clock_in
            record.session_date = clock_in.date()
        if "clock_out" in changes:
            record.clock_out = clock_out
        if "notes" in changes:
            record.notes = changes["notes"]

        if record.clock_out is not None:
            record.duration = minutes_between(record.clock_in, record.clock_out)
            record.status = AttendanceSessionStatus.completed
        else:
            record.duration = None
            record.status = AttendanceSessionStatus.in_progress
        record.edited_by = actor.id

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                "session",
                record_id,
                detail="The employee already has another session in progress.",
            )

        await create_audit_entry(
            db,
            action="update",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=snapshot(record, _AUDIT_FIELDS),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Attendance %s corrected by %s", record.id, actor.email)

        return AttendanceRecordResponse.model_validate(record)
