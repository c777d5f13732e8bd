"""Scheduling test suite — shifts, recurrence expansion, assignment rules,
listing, and removal.
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from hrms.common.constants import RecurrenceType, ShiftStatus
from hrms.common.exceptions import ValidationException
from hrms.schedules.models import Schedule, Shift
from hrms.schedules.schemas import RecurringOptions
from hrms.schedules.service import MAX_OCCURRENCES, expand_occurrences
from tests.conftest import TestSessionFactory, create_employee, create_shift


def _recurring(kind: RecurrenceType, end: date, *, interval: int = 1, days=None) -> RecurringOptions:
    return RecurringOptions(type=kind, interval=interval, end_date=end, days=days or [])


async def _assign(client, headers, shift, employee_ids, start, end, recurring=None):
    body = {
        "shift_id": str(shift.id),
        "employee_ids": [str(e) for e in employee_ids],
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }
    if recurring is not None:
        body["recurring_options"] = recurring
    return await client.post("/api/schedules/department/assign", headers=headers, json=body)


@pytest.fixture
async def morning(db, test_department):
    return await create_shift(db, test_department.id)


# ═════════════════════════════════════════════════════════════════════
# 1. RECURRENCE EXPANSION
# ═════════════════════════════════════════════════════════════════════


class TestRecurrence:
    def test_no_options_is_single_occurrence(self):
        assert expand_occurrences(date(2026, 3, 2), date(2026, 3, 3), None) == [
            (date(2026, 3, 2), date(2026, 3, 3)),
        ]

    def test_daily_with_interval(self):
        occ = expand_occurrences(
            date(2026, 3, 2), date(2026, 3, 2),
            _recurring(RecurrenceType.daily, date(2026, 3, 8), interval=2),
        )
        assert [s for s, _ in occ] == [
            date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 6), date(2026, 3, 8),
        ]

    def test_weekly_days_start_on_sunday(self):
        # 1 = Monday, 3 = Wednesday; 2026-03-02 is a Monday
        occ = expand_occurrences(
            date(2026, 3, 2), date(2026, 3, 2),
            _recurring(RecurrenceType.weekly, date(2026, 3, 15), days=[1, 3]),
        )
        assert [s for s, _ in occ] == [
            date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 9), date(2026, 3, 11),
        ]

    def test_weekly_defaults_to_start_weekday(self):
        occ = expand_occurrences(
            date(2026, 3, 4), date(2026, 3, 4),
            _recurring(RecurrenceType.weekly, date(2026, 3, 25)),
        )
        assert [s for s, _ in occ] == [
            date(2026, 3, 4), date(2026, 3, 11), date(2026, 3, 18), date(2026, 3, 25),
        ]

    def test_monthly_clamps_to_month_end(self):
        occ = expand_occurrences(
            date(2026, 1, 31), date(2026, 1, 31),
            _recurring(RecurrenceType.monthly, date(2026, 4, 30)),
        )
        assert [s for s, _ in occ] == [
            date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30),
        ]

    def test_span_is_preserved(self):
        occ = expand_occurrences(
            date(2026, 3, 2), date(2026, 3, 3),
            _recurring(RecurrenceType.weekly, date(2026, 3, 9)),
        )
        assert occ == [
            (date(2026, 3, 2), date(2026, 3, 3)),
            (date(2026, 3, 9), date(2026, 3, 10)),
        ]

    def test_too_many_occurrences(self):
        with pytest.raises(ValidationException):
            expand_occurrences(
                date(2026, 1, 1), date(2026, 1, 1),
                _recurring(RecurrenceType.daily, date(2027, 12, 31)),
            )
        assert MAX_OCCURRENCES == 366

    def test_weekday_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            _recurring(RecurrenceType.weekly, date(2026, 3, 9), days=[7])

    def test_cap_stops_expansion_early(self):
        with pytest.raises(ValidationException):
            expand_occurrences(
                date(2026, 1, 1), date(2026, 1, 1),
                _recurring(RecurrenceType.daily, date.max),
            )

    def test_expansion_stops_at_last_representable_date(self):
        occ = expand_occurrences(
            date(9999, 12, 30), date(9999, 12, 30),
            _recurring(RecurrenceType.daily, date.max, interval=7),
        )
        assert occ == [(date(9999, 12, 30), date(9999, 12, 30))]

    def test_monthly_expansion_near_year_9999(self):
        occ = expand_occurrences(
            date(9999, 11, 15), date(9999, 11, 15),
            _recurring(RecurrenceType.monthly, date.max, interval=2),
        )
        assert [s for s, _ in occ] == [date(9999, 11, 15)]


# ═════════════════════════════════════════════════════════════════════
# 2. SHIFTS
# ═════════════════════════════════════════════════════════════════════


class TestShifts:
    async def test_manager_creates_shift_in_own_department(
        self, client, manager_headers, test_department, other_department,
    ):
        resp = await client.post(
            "/api/shifts/department",
            headers=manager_headers,
            json={
                "name": "Night",
                "start_time": "22:00",
                "end_time": "06:00",
                "department_id": str(other_department.id),
            },
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["department_id"] == str(test_department.id)
        assert data["crosses_midnight"] is True
        assert data["grace_minutes"] == 15

    async def test_admin_picks_department(self, client, admin_headers, other_department):
        resp = await client.post(
            "/api/shifts/department",
            headers=admin_headers,
            json={
                "name": "Early",
                "start_time": "06:00",
                "end_time": "14:00",
                "department_id": str(other_department.id),
            },
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["department_id"] == str(other_department.id)

    async def test_admin_without_department_is_422(self, client, admin_headers):
        resp = await client.post(
            "/api/shifts/department",
            headers=admin_headers,
            json={"name": "Early", "start_time": "06:00", "end_time": "14:00"},
        )
        assert resp.status_code == 422

    async def test_equal_times_rejected(self, client, manager_headers):
        resp = await client.post(
            "/api/shifts/department",
            headers=manager_headers,
            json={"name": "Zero", "start_time": "09:00", "end_time": "09:00"},
        )
        assert resp.status_code == 422

    async def test_duplicate_name_in_department(self, client, manager_headers, morning):
        resp = await client.post(
            "/api/shifts/department",
            headers=manager_headers,
            json={"name": "MORNING", "start_time": "08:00", "end_time": "16:00"},
        )
        assert resp.status_code == 409

    async def test_employee_cannot_manage_shifts(self, client, auth_headers):
        resp = await client.get("/api/shifts/department", headers=auth_headers)
        assert resp.status_code == 403

    async def test_list_scoped_to_department(
        self, client, db, manager_headers, morning, other_department,
    ):
        await create_shift(db, other_department.id, name="Sales Morning")
        resp = await client.get("/api/shifts/department", headers=manager_headers)
        assert [s["name"] for s in resp.json()["data"]] == ["Morning"]

    async def test_update_shift(self, client, manager_headers, morning):
        resp = await client.put(
            f"/api/shifts/{morning.id}",
            headers=manager_headers,
            json={"grace_minutes": 5, "max_employees": 3},
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["grace_minutes"] == 5
        assert data["max_employees"] == 3

    @pytest.mark.parametrize("field", ["name", "start_time", "end_time", "status"])
    async def test_null_required_field_is_422(self, client, manager_headers, morning, field):
        resp = await client.put(
            f"/api/shifts/{morning.id}", headers=manager_headers, json={field: None},
        )
        assert resp.status_code == 422
        async with TestSessionFactory() as session:
            shift = await session.get(Shift, morning.id)
        assert shift.name == "Morning"

    async def test_null_optional_field_clears_it(self, client, db, manager_headers, test_department):
        shift = await create_shift(db, test_department.id, name="Capped", max_employees=2)
        resp = await client.put(
            f"/api/shifts/{shift.id}", headers=manager_headers, json={"max_employees": None},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["max_employees"] is None

    async def test_manager_cannot_edit_other_department(
        self, client, db, manager_headers, other_department,
    ):
        shift = await create_shift(db, other_department.id)
        resp = await client.put(
            f"/api/shifts/{shift.id}", headers=manager_headers, json={"grace_minutes": 5},
        )
        assert resp.status_code == 403

    async def test_delete_unused_shift(self, client, manager_headers, morning):
        resp = await client.delete(f"/api/shifts/{morning.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["deactivated"] is False
        async with TestSessionFactory() as session:
            assert await session.get(Shift, morning.id) is None

    async def test_delete_scheduled_shift_deactivates(
        self, client, manager_headers, morning, test_employee,
    ):
        await _assign(client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 2))
        resp = await client.delete(f"/api/shifts/{morning.id}", headers=manager_headers)
        assert resp.json()["data"]["deactivated"] is True
        async with TestSessionFactory() as session:
            shift = await session.get(Shift, morning.id)
        assert shift.status == ShiftStatus.inactive


# ═════════════════════════════════════════════════════════════════════
# 3. ASSIGNMENT
# ═════════════════════════════════════════════════════════════════════


class TestAssignment:
    async def test_single_assignment(self, client, manager_headers, morning, test_employee):
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 6),
        )
        assert resp.status_code == 201
        assert resp.json()["message"] == "1 schedule(s) created"
        schedule = resp.json()["data"][0]
        assert schedule["recurrence_group"] is None
        assert schedule["shift"]["name"] == "Morning"
        assert [e["id"] for e in schedule["employees"]] == [str(test_employee.id)]

    async def test_recurring_assignment_shares_group(
        self, client, manager_headers, morning, test_employee,
    ):
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id],
            date(2026, 3, 2), date(2026, 3, 2),
            {"type": "weekly", "end_date": "2026-03-15", "days": [1, 3]},
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert len(data) == 4
        groups = {s["recurrence_group"] for s in data}
        assert len(groups) == 1 and None not in groups

    async def test_self_overlapping_recurrence_is_422(
        self, client, manager_headers, morning, test_employee,
    ):
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id],
            date(2026, 3, 2), date(2026, 3, 4),
            {"type": "daily", "end_date": "2026-03-06"},
        )
        assert resp.status_code == 422
        assert "recurring_options" in resp.json()["errors"]

    async def test_overlap_with_existing_schedule_conflicts(
        self, client, db, manager_headers, morning, test_department, test_employee,
    ):
        await _assign(client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 6))
        late = await create_shift(db, test_department.id, name="Late")
        resp = await _assign(
            client, manager_headers, late, [test_employee.id], date(2026, 3, 5), date(2026, 3, 5),
        )
        assert resp.status_code == 409
        assert "Test User" in resp.json()["message"]

        async with TestSessionFactory() as session:
            assert (await session.execute(select(func.count(Schedule.id)))).scalar_one() == 1

    async def test_capacity_enforced(
        self, client, db, manager_headers, test_department, test_employee, manager_user,
    ):
        solo = await create_shift(db, test_department.id, name="Solo", max_employees=1)
        resp = await _assign(
            client, manager_headers, solo, [test_employee.id, manager_user.id],
            date(2026, 3, 2), date(2026, 3, 2),
        )
        assert resp.status_code == 422
        assert "employee_ids" in resp.json()["errors"]

    async def test_assignee_must_be_in_department(
        self, client, manager_headers, morning, other_employee,
    ):
        resp = await _assign(
            client, manager_headers, morning, [other_employee.id], date(2026, 3, 2), date(2026, 3, 2),
        )
        assert resp.status_code == 422

    async def test_inactive_assignee_rejected(
        self, client, db, manager_headers, morning, test_department,
    ):
        gone = await create_employee(
            db, email="gone@example.com", department_id=test_department.id,
        )
        gone.is_active = False
        await db.commit()
        resp = await _assign(
            client, manager_headers, morning, [gone.id], date(2026, 3, 2), date(2026, 3, 2),
        )
        assert resp.status_code == 422

    async def test_inactive_shift_rejected(self, client, db, manager_headers, morning, test_employee):
        morning.status = ShiftStatus.inactive
        await db.commit()
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 2),
        )
        assert resp.status_code == 422

    async def test_end_before_start_is_422(self, client, manager_headers, morning, test_employee):
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id], date(2026, 3, 5), date(2026, 3, 2),
        )
        assert resp.status_code == 422

    async def test_far_future_recurrence_end_is_422(
        self, client, manager_headers, morning, test_employee,
    ):
        resp = await _assign(
            client, manager_headers, morning, [test_employee.id],
            date(2026, 3, 2), date(2026, 3, 2),
            {"type": "daily", "interval": 1, "end_date": "9999-12-31"},
        )
        assert resp.status_code == 422
        async with TestSessionFactory() as session:
            assert (await session.execute(select(func.count(Schedule.id)))).scalar_one() == 0

    async def test_unknown_shift_is_404(self, client, manager_headers, test_employee):
        resp = await client.post(
            "/api/schedules/department/assign",
            headers=manager_headers,
            json={
                "shift_id": str(uuid.uuid4()),
                "employee_ids": [str(test_employee.id)],
                "start_date": "2026-03-02",
                "end_date": "2026-03-02",
            },
        )
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# 4. LISTING & REMOVAL
# ═════════════════════════════════════════════════════════════════════


class TestScheduleListing:
    async def test_department_listing_with_range(
        self, client, manager_headers, morning, test_employee,
    ):
        await _assign(
            client, manager_headers, morning, [test_employee.id],
            date(2026, 3, 2), date(2026, 3, 2),
            {"type": "weekly", "end_date": "2026-03-23"},
        )
        resp = await client.get(
            "/api/schedules/department?startDate=2026-03-08&endDate=2026-03-20",
            headers=manager_headers,
        )
        data = resp.json()["data"]
        assert [s["start_date"] for s in data["schedules"]] == ["2026-03-09", "2026-03-16"]
        assert data["pagination"]["total"] == 2

    async def test_search_by_employee_name(self, client, manager_headers, morning, test_employee):
        await _assign(client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 2))
        hit = await client.get("/api/schedules/department?search=test", headers=manager_headers)
        miss = await client.get("/api/schedules/department?search=zzz", headers=manager_headers)
        assert hit.json()["data"]["pagination"]["total"] == 1
        assert miss.json()["data"]["pagination"]["total"] == 0

    async def test_inverted_range_is_422(self, client, manager_headers):
        resp = await client.get(
            "/api/schedules/department?startDate=2026-03-08&endDate=2026-03-01",
            headers=manager_headers,
        )
        assert resp.status_code == 422

    async def test_my_schedules_are_upcoming_only(
        self, client, manager_headers, auth_headers, morning, test_employee,
    ):
        await _assign(client, manager_headers, morning, [test_employee.id], date(2020, 1, 6), date(2020, 1, 6))
        await _assign(client, manager_headers, morning, [test_employee.id], date(2099, 1, 5), date(2099, 1, 5))
        resp = await client.get("/api/schedules/my", headers=auth_headers)
        assert [s["start_date"] for s in resp.json()["data"]] == ["2099-01-05"]

    async def test_delete_schedule(self, client, manager_headers, morning, test_employee):
        created = await _assign(
            client, manager_headers, morning, [test_employee.id], date(2026, 3, 2), date(2026, 3, 2),
        )
        schedule_id = created.json()["data"][0]["id"]
        resp = await client.delete(f"/api/schedules/{schedule_id}", headers=manager_headers)
        assert resp.status_code == 200
        async with TestSessionFactory() as session:
            assert (await session.execute(select(func.count(Schedule.id)))).scalar_one() == 0

    async def test_delete_unknown_schedule_is_404(self, client, manager_headers):
        resp = await client.delete(f"/api/schedules/{uuid.uuid4()}", headers=manager_headers)
        assert resp.status_code == 404
