"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, employees, attendance, leave, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import hashlib
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrms.auth.service import hash_password
from hrms.common.constants import UserRole
from hrms.config import settings
from hrms.database import Base, get_db
from hrms.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrms.auth.models  # noqa: F401
import hrms.common.audit  # noqa: F401
import hrms.core_hr.models  # noqa: F401
import hrms.attendance.models  # noqa: F401
import hrms.leave.models  # noqa: F401
import hrms.notifications.models  # noqa: F401
import hrms.schedules.models  # noqa: F401
import hrms.tasks.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "Password123!"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrms.common.rate_limit import limiter

    limiter._storage.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(
    *,
    name: str = "Engineering",
    location: str | None = "Head Office",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=f"{name} department",
        location=location,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: str = "test.user@example.com",
    first_name: str = "Test",
    last_name: str = "User",
    role: UserRole = UserRole.employee,
    department_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        first_name=first_name,
        last_name=last_name,
        position="Engineer",
        department_id=department_id,
        manager_id=manager_id,
        date_of_joining=date(2024, 1, 15),
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def create_department(db: AsyncSession, **kwargs):
    from hrms.core_hr.models import Department

    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.commit()
    return dept


async def create_employee(db: AsyncSession, **kwargs):
    from hrms.core_hr.models import Employee

    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.commit()
    return emp


async def create_leave_type(
    db: AsyncSession,
    *,
    name: str = "Annual Leave",
    days_allowed: int = 20,
    carry_forward: bool = False,
    requires_approval: bool = True,
):
    from hrms.leave.models import LeaveType

    lt = LeaveType(
        id=uuid.uuid4(),
        name=name,
        days_allowed=days_allowed,
        carry_forward=carry_forward,
        requires_approval=requires_approval,
        is_active=True,
    )
    db.add(lt)
    await db.commit()
    return lt


async def create_shift(
    db: AsyncSession,
    department_id: uuid.UUID,
    *,
    name: str = "Morning",
    start_time: time = time(9, 0),
    end_time: time = time(17, 0),
    grace_minutes: int = 15,
    max_employees: int | None = None,
):
    from hrms.schedules.models import Shift

    shift = Shift(
        id=uuid.uuid4(),
        name=name,
        start_time=start_time,
        end_time=end_time,
        department_id=department_id,
        grace_minutes=grace_minutes,
        max_employees=max_employees,
    )
    db.add(shift)
    await db.commit()
    return shift


@pytest.fixture
async def test_department(db):
    """The department most fixtures belong to."""
    return await create_department(db)


@pytest.fixture
async def other_department(db):
    return await create_department(db, name="Sales", location="Branch Office")


@pytest.fixture
async def admin_user(db):
    return await create_employee(
        db,
        email="admin@example.com",
        first_name="Ada",
        last_name="Admin",
        role=UserRole.admin,
    )


@pytest.fixture
async def manager_user(db, test_department):
    """Manager of ``test_department``."""
    manager = await create_employee(
        db,
        email="manager@example.com",
        first_name="Mona",
        last_name="Manager",
        role=UserRole.manager,
        department_id=test_department.id,
    )
    test_department.manager_id = manager.id
    await db.commit()
    return manager


@pytest.fixture
async def test_employee(db, test_department, manager_user):
    """An employee of ``test_department`` reporting to ``manager_user``."""
    return await create_employee(
        db,
        department_id=test_department.id,
        manager_id=manager_user.id,
    )


@pytest.fixture
async def other_employee(db, other_department):
    return await create_employee(
        db,
        email="other.user@example.com",
        first_name="Olly",
        last_name="Other",
        department_id=other_department.id,
    )


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def headers_for(db: AsyncSession, employee) -> dict[str, str]:
    """Bearer headers for *employee* backed by a persisted session."""
    from hrms.auth.models import UserSession

    token = create_access_token(employee.id, employee.role)
    session = UserSession(
        id=uuid.uuid4(),
        employee_id=employee.id,
        token_hash=hashlib.sha256(token.encode()).hexdigest(),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(session)
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def auth_headers(db, test_employee) -> dict[str, str]:
    """Return Bearer auth headers for ``test_employee``."""
    return await headers_for(db, test_employee)


@pytest.fixture
async def manager_headers(db, manager_user) -> dict[str, str]:
    return await headers_for(db, manager_user)


@pytest.fixture
async def admin_headers(db, admin_user) -> dict[str, str]:
    return await headers_for(db, admin_user)


@pytest.fixture
async def other_headers(db, other_employee) -> dict[str, str]:
    return await headers_for(db, other_employee)
