"""Leave module test suite — leave types, application validation, the balance
engine, approval workflow, cancellation, scoping, and reports.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from hrms.common.constants import LeaveStatus, LeaveTimeframe, NotificationType
from hrms.common.exceptions import ConflictError
from hrms.leave.models import LeaveRequest
from hrms.leave.service import (
    LeaveService,
    inclusive_days,
    lock_applicant,
    overlap_days,
    timeframe_window,
)
from hrms.notifications.models import Notification
from tests.conftest import (
    TestSessionFactory,
    create_employee,
    create_leave_type,
    headers_for,
)


def _future(days: int) -> date:
    return datetime.now(timezone.utc).date() + timedelta(days=days)


async def _seed_request(
    db,
    employee,
    leave_type,
    start: date,
    end: date,
    status: LeaveStatus = LeaveStatus.pending,
) -> LeaveRequest:
    req = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=start,
        end_date=end,
        number_of_days=inclusive_days(start, end),
        status=status,
    )
    db.add(req)
    await db.commit()
    return req


async def _apply(client, headers, leave_type, start: date, end: date, reason: str = "Trip"):
    return await client.post(
        "/api/leave-requests",
        headers=headers,
        json={
            "leave_type_id": str(leave_type.id),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "reason": reason,
        },
    )


@pytest.fixture
async def annual(db):
    return await create_leave_type(db)


# ═════════════════════════════════════════════════════════════════════
# 1. HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestDayArithmetic:
    def test_inclusive_days(self):
        assert inclusive_days(date(2026, 1, 1), date(2026, 1, 1)) == 1
        assert inclusive_days(date(2026, 1, 30), date(2026, 2, 2)) == 4

    def test_overlap_days(self):
        assert overlap_days(date(2026, 1, 28), date(2026, 2, 3), date(2026, 2, 1), date(2026, 2, 28)) == 3
        assert overlap_days(date(2026, 1, 1), date(2026, 1, 5), date(2026, 2, 1), date(2026, 2, 28)) == 0

    def test_timeframe_windows(self):
        today = date(2026, 5, 17)
        assert timeframe_window(LeaveTimeframe.month, today) == (date(2026, 5, 1), date(2026, 5, 31))
        assert timeframe_window(LeaveTimeframe.quarter, today) == (date(2026, 4, 1), date(2026, 6, 30))
        assert timeframe_window(LeaveTimeframe.year, today) == (date(2026, 1, 1), date(2026, 12, 31))


# ═════════════════════════════════════════════════════════════════════
# 2. LEAVE TYPES
# ═════════════════════════════════════════════════════════════════════


class TestLeaveTypes:
    async def test_admin_creates_type(self, client, admin_headers):
        resp = await client.post(
            "/api/leave-types",
            headers=admin_headers,
            json={"name": "Sick Leave", "days_allowed": 10, "carry_forward": False},
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["name"] == "Sick Leave"
        assert data["is_active"] is True

    async def test_add_alias(self, client, admin_headers):
        resp = await client.post(
            "/api/leave-types/add", headers=admin_headers, json={"name": "Personal", "days_allowed": 3},
        )
        assert resp.status_code == 201

    async def test_duplicate_name_conflicts(self, client, admin_headers, annual):
        resp = await client.post(
            "/api/leave-types", headers=admin_headers, json={"name": "annual leave", "days_allowed": 5},
        )
        assert resp.status_code == 409

    async def test_non_admin_cannot_create(self, client, manager_headers):
        resp = await client.post(
            "/api/leave-types", headers=manager_headers, json={"name": "X", "days_allowed": 1},
        )
        assert resp.status_code == 403

    async def test_negative_allowance_is_422(self, client, admin_headers):
        resp = await client.post(
            "/api/leave-types", headers=admin_headers, json={"name": "X", "days_allowed": -1},
        )
        assert resp.status_code == 422

    async def test_update_type(self, client, admin_headers, annual):
        resp = await client.put(
            f"/api/leave-types/{annual.id}", headers=admin_headers, json={"days_allowed": 25},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["days_allowed"] == 25

    @pytest.mark.parametrize(
        "field", ["name", "days_allowed", "carry_forward", "requires_approval", "is_active"],
    )
    async def test_null_required_field_is_422(self, client, admin_headers, annual, field):
        resp = await client.put(
            f"/api/leave-types/{annual.id}", headers=admin_headers, json={field: None},
        )
        assert resp.status_code == 422
        assert field in resp.json()["errors"]

    async def test_null_description_clears_it(self, client, admin_headers, annual):
        resp = await client.put(
            f"/api/leave-types/{annual.id}", headers=admin_headers, json={"description": None},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["description"] is None

    async def test_list_hides_inactive(self, client, db, admin_headers, auth_headers, annual):
        sick = await create_leave_type(db, name="Sick Leave", days_allowed=10)
        sick.is_active = False
        await db.commit()

        resp = await client.get("/api/leave-types", headers=auth_headers)
        assert [t["name"] for t in resp.json()["data"]] == ["Annual Leave"]

        resp = await client.get("/api/leave-types?include_inactive=true", headers=auth_headers)
        assert len(resp.json()["data"]) == 1

        resp = await client.get("/api/leave-types?include_inactive=true", headers=admin_headers)
        assert len(resp.json()["data"]) == 2

    async def test_delete_unused_type(self, client, admin_headers, annual):
        resp = await client.delete(f"/api/leave-types/{annual.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["deactivated"] is False

        listing = await client.get("/api/leave-types?include_inactive=true", headers=admin_headers)
        assert listing.json()["data"] == []

    async def test_delete_used_type_deactivates(
        self, client, db, admin_headers, annual, test_employee,
    ):
        await _seed_request(db, test_employee, annual, _future(5), _future(5))
        resp = await client.delete(f"/api/leave-types/{annual.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["deactivated"] is True
        assert resp.json()["message"] == "Leave type is in use and was deactivated"


# ═════════════════════════════════════════════════════════════════════
# 3. APPLY
# ═════════════════════════════════════════════════════════════════════


class TestApply:
    async def test_apply_creates_pending_request(
        self, client, auth_headers, annual, test_employee, manager_user,
    ):
        resp = await _apply(client, auth_headers, annual, _future(7), _future(9))
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "Pending"
        assert data["number_of_days"] == 3
        assert data["user_id"] == str(test_employee.id)
        assert data["leave_type"]["name"] == "Annual Leave"

        # The department manager is asked to review it
        async with TestSessionFactory() as session:
            notes = (
                await session.execute(
                    select(Notification).where(Notification.recipient_id == manager_user.id)
                )
            ).scalars().all()
        assert len(notes) == 1
        assert notes[0].type == NotificationType.action_required

    async def test_start_in_past_is_422(self, client, auth_headers, annual):
        resp = await _apply(client, auth_headers, annual, _future(-1), _future(1))
        assert resp.status_code == 422
        assert "start_date" in resp.json()["errors"]

    async def test_end_before_start_is_422(self, client, auth_headers, annual):
        resp = await _apply(client, auth_headers, annual, _future(5), _future(3))
        assert resp.status_code == 422

    async def test_unknown_type_is_404(self, client, auth_headers):
        resp = await client.post(
            "/api/leave-requests",
            headers=auth_headers,
            json={
                "leave_type_id": str(uuid.uuid4()),
                "start_date": _future(3).isoformat(),
                "end_date": _future(3).isoformat(),
            },
        )
        assert resp.status_code == 404

    async def test_inactive_type_is_404(self, client, db, auth_headers, annual):
        annual.is_active = False
        await db.commit()
        resp = await _apply(client, auth_headers, annual, _future(3), _future(3))
        assert resp.status_code == 404

    async def test_overlap_is_422(self, client, auth_headers, annual):
        assert (await _apply(client, auth_headers, annual, _future(10), _future(12))).status_code == 201
        resp = await _apply(client, auth_headers, annual, _future(12), _future(14))
        assert resp.status_code == 422
        assert "dates" in resp.json()["errors"]

    async def test_overlap_ignores_cancelled(self, client, db, auth_headers, annual, test_employee):
        await _seed_request(
            db, test_employee, annual, _future(10), _future(12), LeaveStatus.cancelled,
        )
        resp = await _apply(client, auth_headers, annual, _future(11), _future(11))
        assert resp.status_code == 201

    async def test_insufficient_balance_is_422(self, client, db, auth_headers):
        short = await create_leave_type(db, name="Short", days_allowed=3)
        resp = await _apply(client, auth_headers, short, _future(20), _future(24))
        assert resp.status_code == 422
        assert "Insufficient" in resp.json()["message"]

    async def test_pending_days_count_against_balance(self, client, db, auth_headers):
        short = await create_leave_type(db, name="Short", days_allowed=3)
        assert (await _apply(client, auth_headers, short, _future(20), _future(21))).status_code == 201
        resp = await _apply(client, auth_headers, short, _future(30), _future(31))
        assert resp.status_code == 422

    def test_applications_lock_the_applicant_row(self):
        sql = str(lock_applicant(uuid.uuid4()).compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE")
        assert "employees" in sql

    async def test_auto_approval(self, client, db, auth_headers):
        wfh = await create_leave_type(db, name="Remote Day", days_allowed=5, requires_approval=False)
        resp = await _apply(client, auth_headers, wfh, _future(4), _future(4))
        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "Approved"


# ═════════════════════════════════════════════════════════════════════
# 4. DECISIONS
# ═════════════════════════════════════════════════════════════════════


class TestDecisions:
    async def test_manager_approves(
        self, client, db, manager_headers, manager_user, annual, test_employee,
    ):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}",
            headers=manager_headers,
            json={"action": "approve", "comments": "Enjoy"},
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Leave request approved"
        data = resp.json()["data"]
        assert data["status"] == "Approved"
        assert data["action_by"] == str(manager_user.id)
        assert data["comments"] == "Enjoy"

        async with TestSessionFactory() as session:
            note = (
                await session.execute(
                    select(Notification).where(Notification.recipient_id == test_employee.id)
                )
            ).scalars().one()
        assert note.title == "Leave Request Approved"
        assert "Enjoy" in note.message

    async def test_second_decision_conflicts(self, client, db, manager_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        await client.put(f"/api/leave-requests/{req.id}", headers=manager_headers, json={"action": "approve"})
        resp = await client.put(
            f"/api/leave-requests/{req.id}", headers=manager_headers, json={"action": "reject"},
        )
        assert resp.status_code == 409
        assert resp.json()["message"] == "Leave request is already Approved."

    async def test_decision_on_stale_read_conflicts(self, db, admin_user, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        async with TestSessionFactory() as other:
            fresh = await other.get(LeaveRequest, req.id)
            fresh.status = LeaveStatus.approved
            await other.commit()

        # db still holds the request as Pending
        assert req.status == LeaveStatus.pending
        with pytest.raises(ConflictError):
            await LeaveService.decide(db, req.id, LeaveStatus.rejected, actor=admin_user)

        async with TestSessionFactory() as session:
            stored = await session.get(LeaveRequest, req.id)
            notes = (await session.execute(select(Notification))).scalars().all()
        assert stored.status == LeaveStatus.approved
        assert notes == []

    async def test_reject_via_status(self, client, db, admin_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}/status",
            headers=admin_headers,
            json={"status": "Rejected", "comments": "Busy week"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "Rejected"

    async def test_status_must_be_a_decision(self, client, db, admin_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}/status", headers=admin_headers, json={"status": "Cancelled"},
        )
        assert resp.status_code == 422

    async def test_employee_cannot_decide(self, client, db, auth_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}", headers=auth_headers, json={"action": "approve"},
        )
        assert resp.status_code == 403

    async def test_manager_cannot_decide_own(self, client, db, manager_headers, manager_user, annual):
        req = await _seed_request(db, manager_user, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}", headers=manager_headers, json={"action": "approve"},
        )
        assert resp.status_code == 403

    async def test_admin_decides_for_manager(self, client, db, admin_headers, manager_user, annual):
        req = await _seed_request(db, manager_user, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}", headers=admin_headers, json={"action": "approve"},
        )
        assert resp.status_code == 200

    async def test_manager_cannot_decide_other_department(
        self, client, db, manager_headers, annual, other_employee,
    ):
        req = await _seed_request(db, other_employee, annual, _future(5), _future(6))
        resp = await client.put(
            f"/api/leave-requests/{req.id}", headers=manager_headers, json={"action": "approve"},
        )
        assert resp.status_code == 403

    async def test_unknown_request_is_404(self, client, admin_headers):
        resp = await client.put(
            f"/api/leave-requests/{uuid.uuid4()}", headers=admin_headers, json={"action": "approve"},
        )
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# 5. CANCELLATION
# ═════════════════════════════════════════════════════════════════════


class TestCancellation:
    async def test_owner_cancels_pending(self, client, db, auth_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "Cancelled"
        assert data["cancelled_at"] is not None

    async def test_cancel_twice_conflicts(self, client, db, auth_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)
        resp = await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)
        assert resp.status_code == 409

    async def test_cannot_cancel_someone_else(self, client, db, manager_headers, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        resp = await client.put(f"/api/leave-requests/{req.id}/cancel", headers=manager_headers)
        assert resp.status_code == 403

    async def test_cancel_future_approved(self, client, db, auth_headers, annual, test_employee):
        req = await _seed_request(
            db, test_employee, annual, _future(5), _future(6), LeaveStatus.approved,
        )
        resp = await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)
        assert resp.status_code == 200

    async def test_cannot_cancel_started_approved(self, client, db, auth_headers, annual, test_employee):
        req = await _seed_request(
            db, test_employee, annual, _future(-1), _future(1), LeaveStatus.approved,
        )
        resp = await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)
        assert resp.status_code == 422

    async def test_cancel_does_not_overwrite_concurrent_approval(self, db, annual, test_employee):
        req = await _seed_request(db, test_employee, annual, _future(5), _future(6))
        async with TestSessionFactory() as other:
            fresh = await other.get(LeaveRequest, req.id)
            fresh.status = LeaveStatus.approved
            await other.commit()

        with pytest.raises(ConflictError):
            await LeaveService.cancel_leave(db, req.id, actor=test_employee)

        async with TestSessionFactory() as session:
            stored = await session.get(LeaveRequest, req.id)
        assert stored.status == LeaveStatus.approved
        assert stored.cancelled_at is None

    async def test_cancel_restores_balance(self, client, db, auth_headers, annual, test_employee):
        start = _future(40)
        req = await _seed_request(db, test_employee, annual, start, start + timedelta(days=4))
        await client.put(f"/api/leave-requests/{req.id}/cancel", headers=auth_headers)

        resp = await client.get(f"/api/leave-requests/stats?year={start.year}", headers=auth_headers)
        balance = resp.json()["data"][0]
        assert balance["daysPending"] == 0
        assert balance["remaining"] == 20


# ═════════════════════════════════════════════════════════════════════
# 6. BALANCES
# ═════════════════════════════════════════════════════════════════════


class TestBalances:
    async def test_stats_reports_used_and_pending(self, client, db, auth_headers, annual, test_employee):
        await _seed_request(
            db, test_employee, annual, date(2026, 2, 2), date(2026, 2, 4), LeaveStatus.approved,
        )
        await _seed_request(db, test_employee, annual, date(2026, 6, 1), date(2026, 6, 2))
        await _seed_request(
            db, test_employee, annual, date(2026, 7, 1), date(2026, 7, 9), LeaveStatus.rejected,
        )

        resp = await client.get("/api/leave-requests/stats?year=2026", headers=auth_headers)
        assert resp.status_code == 200
        balance = resp.json()["data"][0]
        assert balance["leaveType"] == "Annual Leave"
        assert balance["daysAllowed"] == 20
        assert balance["daysUsed"] == 3
        assert balance["daysPending"] == 2
        assert balance["remaining"] == 15

    async def test_carry_forward_from_previous_year(self, db, test_employee):
        lt = await create_leave_type(db, name="Earned", days_allowed=10, carry_forward=True)
        await _seed_request(
            db, test_employee, lt, date(2025, 3, 2), date(2025, 3, 5), LeaveStatus.approved,
        )
        balance = await LeaveService.compute_balance(db, test_employee.id, lt, 2026)
        assert balance.carried_forward == 6
        assert balance.remaining == 16

    async def test_carry_forward_is_capped(self, db, test_employee):
        lt = await create_leave_type(db, name="Earned", days_allowed=10, carry_forward=True)
        balance = await LeaveService.compute_balance(db, test_employee.id, lt, 2026)
        assert balance.carried_forward == 10
        assert balance.remaining == 20

    async def test_no_carry_forward_without_flag(self, db, test_employee, annual):
        balance = await LeaveService.compute_balance(db, test_employee.id, annual, 2026)
        assert balance.carried_forward == 0

    async def test_remaining_never_negative(self, db, test_employee):
        lt = await create_leave_type(db, name="Tiny", days_allowed=2)
        await _seed_request(
            db, test_employee, lt, date(2026, 1, 5), date(2026, 1, 9), LeaveStatus.approved,
        )
        balance = await LeaveService.compute_balance(db, test_employee.id, lt, 2026)
        assert balance.remaining == 0


# ═════════════════════════════════════════════════════════════════════
# 7. LISTING, AGGREGATES, REPORTS
# ═════════════════════════════════════════════════════════════════════


class TestListing:
    async def _seed_both(self, db, annual, test_employee, other_employee):
        mine = await _seed_request(db, test_employee, annual, _future(5), _future(5))
        theirs = await _seed_request(db, other_employee, annual, _future(5), _future(5))
        return mine, theirs

    async def test_employee_sees_own_only(
        self, client, db, auth_headers, annual, test_employee, other_employee,
    ):
        mine, _ = await self._seed_both(db, annual, test_employee, other_employee)
        resp = await client.get("/api/leave-requests", headers=auth_headers)
        rows = resp.json()["data"]["leaveRequests"]
        assert [r["id"] for r in rows] == [str(mine.id)]

    async def test_manager_sees_department(
        self, client, db, manager_headers, annual, test_employee, other_employee,
    ):
        mine, _ = await self._seed_both(db, annual, test_employee, other_employee)
        for path in ("/api/leave-requests", "/api/leave-requests/team"):
            rows = (await client.get(path, headers=manager_headers)).json()["data"]["leaveRequests"]
            assert [r["id"] for r in rows] == [str(mine.id)]

    async def test_admin_sees_all_and_filters(
        self, client, db, admin_headers, annual, test_employee, other_employee,
    ):
        await self._seed_both(db, annual, test_employee, other_employee)
        resp = await client.get("/api/leave-requests", headers=admin_headers)
        assert resp.json()["data"]["pagination"]["total"] == 2

        resp = await client.get(
            f"/api/leave-requests?user_id={other_employee.id}", headers=admin_headers,
        )
        rows = resp.json()["data"]["leaveRequests"]
        assert [r["user"]["email"] for r in rows] == [other_employee.email]

    async def test_my_requests(self, client, db, other_headers, annual, test_employee, other_employee):
        _, theirs = await self._seed_both(db, annual, test_employee, other_employee)
        rows = (
            await client.get("/api/leave-requests/my-requests", headers=other_headers)
        ).json()["data"]["leaveRequests"]
        assert [r["id"] for r in rows] == [str(theirs.id)]

    async def test_detail_access(
        self, client, db, auth_headers, other_headers, annual, test_employee, other_employee,
    ):
        mine, _ = await self._seed_both(db, annual, test_employee, other_employee)
        assert (await client.get(f"/api/leave-requests/{mine.id}", headers=auth_headers)).status_code == 200
        assert (await client.get(f"/api/leave-requests/{mine.id}", headers=other_headers)).status_code == 403

    async def test_summary_counts(self, client, db, auth_headers, annual, test_employee):
        await _seed_request(db, test_employee, annual, _future(5), _future(5))
        await _seed_request(db, test_employee, annual, _future(8), _future(8), LeaveStatus.approved)
        await _seed_request(db, test_employee, annual, _future(9), _future(9), LeaveStatus.rejected)

        data = (await client.get("/api/leave-requests/summary", headers=auth_headers)).json()["data"]
        assert data == {"total": 3, "pending": 1, "approved": 1, "rejected": 1, "cancelled": 0}

    async def test_calendar(self, client, db, manager_headers, annual, test_employee):
        start = date(2026, 8, 30)
        await _seed_request(db, test_employee, annual, start, date(2026, 9, 2), LeaveStatus.approved)

        resp = await client.get(
            "/api/leave-requests/calendar?year=2026&month=9", headers=manager_headers,
        )
        days = resp.json()["data"]["days"]
        assert sorted(days) == ["2026-09-01", "2026-09-02"]
        assert days["2026-09-01"][0]["name"] == "Test User"
        assert days["2026-09-01"][0]["leave_type"] == "Annual Leave"

    async def test_department_stats(
        self, client, db, admin_headers, annual, test_employee, other_employee,
    ):
        today = datetime.now(timezone.utc).date()
        await _seed_request(db, test_employee, annual, today, today, LeaveStatus.approved)
        await _seed_request(db, other_employee, annual, today, today, LeaveStatus.pending)

        resp = await client.get(
            "/api/leave-requests/department-stats?timeframe=month", headers=admin_headers,
        )
        data = resp.json()["data"]
        assert data["timeframe"] == "month"
        assert len(data["departments"]) == 1
        row = data["departments"][0]
        assert row["department"] == "Engineering"
        assert row["totalDays"] == 1
        assert row["byType"] == {"Annual Leave": 1}

    async def test_department_stats_requires_manager(self, client, auth_headers):
        resp = await client.get("/api/leave-requests/department-stats", headers=auth_headers)
        assert resp.status_code == 403

    async def test_report_csv(self, client, db, admin_headers, annual, test_employee):
        await _seed_request(
            db, test_employee, annual, date(2026, 1, 12), date(2026, 1, 13), LeaveStatus.approved,
        )
        resp = await client.get(
            "/api/leave-requests/report?startDate=2026-01-01&endDate=2026-01-31&format=csv",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        lines = resp.text.strip().splitlines()
        assert lines[0] == "Employee Name,Email,Department,Leave Type,Start Date,End Date,Days,Status,Reason"
        assert lines[1].startswith("Test User,test.user@example.com,Engineering,Annual Leave,")
        assert len(lines) == 2

    async def test_apply_without_approver(self, client, db, annual):
        """An employee without a manager still applies; nobody is notified."""
        loner = await create_employee(db, email="loner@example.com", first_name="Lone")
        headers = await headers_for(db, loner)
        resp = await _apply(client, headers, annual, _future(3), _future(3))
        assert resp.status_code == 201

        async with TestSessionFactory() as session:
            assert (await session.execute(select(Notification))).scalars().all() == []
