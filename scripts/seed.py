#!/usr/bin/env python3
"""Seed a development database with a minimal working organisation.

Creates missing tables, then (when missing):
  - one department ("Operations")
  - an admin, a manager and an employee account
  - the default leave types (Annual, Sick, Personal)

Existing rows are matched by email / name and left untouched, so the script
is safe to run repeatedly.

Usage:
    python scripts/seed.py                      # seed using DATABASE_URL
    python scripts/seed.py --skip-create        # schema already migrated with alembic
    python scripts/seed.py --password 'S3cret!' # password for all seeded accounts
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.service import hash_password
from hrms.common.constants import UserRole
from hrms.core_hr.models import Department, Employee
from hrms.database import Base, async_session_factory, engine
from hrms.leave.models import LeaveType
from hrms.logging_config import configure_logging

# Register every table on Base.metadata
import hrms.attendance.models  # noqa: F401
import hrms.auth.models  # noqa: F401
import hrms.common.audit  # noqa: F401
import hrms.notifications.models  # noqa: F401
import hrms.schedules.models  # noqa: F401
import hrms.tasks.models  # noqa: F401

logger = logging.getLogger("seed")

DEFAULT_PASSWORD = "ChangeMe123!"

LEAVE_TYPES = [
    {"name": "Annual Leave", "description": "Paid annual vacation", "days_allowed": 20, "carry_forward": True},
    {"name": "Sick Leave", "description": "Illness or medical appointments", "days_allowed": 10},
    {"name": "Personal Leave", "description": "Personal matters", "days_allowed": 3},
]

ACCOUNTS = [
    ("admin@hrms.local", "Ada", "Admin", UserRole.admin, "HR Administrator"),
    ("manager@hrms.local", "Mark", "Manager", UserRole.manager, "Operations Manager"),
    ("employee@hrms.local", "Erin", "Employee", UserRole.employee, "Operations Associate"),
]


async def _get_or_create_department(db: AsyncSession) -> Department:
    dept = (
        await db.execute(select(Department).where(Department.name == "Operations"))
    ).scalar_one_or_none()
    if dept is None:
        dept = Department(name="Operations", description="Day-to-day operations")
        db.add(dept)
        await db.flush()
        logger.info("Created department %s", dept.name)
    return dept


async def _get_or_create_employee(
    db: AsyncSession,
    dept: Department,
    password_hash: str,
    email: str,
    first_name: str,
    last_name: str,
    role: UserRole,
    position: str,
) -> Employee:
    emp = (await db.execute(select(Employee).where(Employee.email == email))).scalar_one_or_none()
    if emp is not None:
        logger.info("Account %s already exists, skipping", email)
        return emp
    emp = Employee(
        email=email,
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        role=role,
        position=position,
        department_id=None if role == UserRole.admin else dept.id,
        date_of_joining=date.today(),
        is_active=True,
    )
    db.add(emp)
    await db.flush()
    logger.info("Created %s account %s", role.value, email)
    return emp


async def seed(password: str, create_tables: bool = True) -> None:
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created")

    password_hash = hash_password(password)
    async with async_session_factory() as db:
        dept = await _get_or_create_department(db)

        staff = {}
        for email, first, last, role, position in ACCOUNTS:
            staff[role] = await _get_or_create_employee(
                db, dept, password_hash, email, first, last, role, position,
            )

        manager = staff[UserRole.manager]
        if dept.manager_id is None:
            dept.manager_id = manager.id
        employee = staff[UserRole.employee]
        if employee.manager_id is None:
            employee.manager_id = manager.id

        existing = set((await db.execute(select(LeaveType.name))).scalars().all())
        for fields in LEAVE_TYPES:
            if fields["name"] in existing:
                continue
            db.add(LeaveType(**fields))
            logger.info("Created leave type %s", fields["name"])

        await db.commit()

    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the HRMS database with starter data")
    parser.add_argument("--password", type=str, default=DEFAULT_PASSWORD,
                        help="Password for every seeded account")
    parser.add_argument("--skip-create", action="store_true",
                        help="Do not create tables from the ORM metadata first")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(seed(args.password, create_tables=not args.skip_create))
    logger.info("Seed complete")


if __name__ == "__main__":
    main()
