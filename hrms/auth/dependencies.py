"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.auth.models import UserSession
from hrms.auth.service import hash_token
from hrms.common.constants import PERMISSIONS, ROLE_LEVELS, UserRole
from hrms.common.exceptions import ForbiddenException, UnauthorizedException
from hrms.config import settings
from hrms.core_hr.models import Employee
from hrms.database import get_db


def extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException(detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate JWT, verify session, return the authenticated Employee."""
    token = extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException(detail="Token has expired.")
    except JWTError:
        raise UnauthorizedException(detail="Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException(detail="Invalid token type.")

    # Session must exist, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException(detail="Session invalid or expired.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedException(detail="Invalid token.")

    emp_result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id, Employee.is_active.is_(True))
        .options(selectinload(Employee.department)),
    )
    employee = emp_result.scalars().first()
    if employee is None:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    # Role comes from the stored record so demotions apply immediately
    request.state.user_role = employee.role
    return employee


# ── Role-based dependency ───────────────────────────────────────────

def has_role(user_role: UserRole, *allowed_roles: UserRole) -> bool:
    """True when *user_role* is at or above the lowest of *allowed_roles*."""
    required = min(ROLE_LEVELS[r] for r in allowed_roles)
    return ROLE_LEVELS.get(user_role, 0) >= required


def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy, e.g. admin can access manager endpoints.
    """

    async def _check(
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        if not has_role(employee.role, *allowed_roles):
            raise ForbiddenException(
                detail=f"Role '{employee.role.value}' is not permitted. "
                f"Required: {[r.value for r in allowed_roles]}.",
            )
        return employee

    return _check


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission string."""

    async def _check(
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        if permission not in PERMISSIONS.get(employee.role, []):
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted to role '{employee.role.value}'.",
            )
        return employee

    return _check


# ── Data scope ──────────────────────────────────────────────────────

def resolve_scope(
    viewer: Employee,
    *,
    department_id: Optional[uuid.UUID] = None,
    employee_id: Optional[uuid.UUID] = None,
) -> tuple[Optional[uuid.UUID], Optional[uuid.UUID]]:
    """Narrow (department_id, employee_id) filters to what *viewer* may see.

    Employees see themselves, managers their department, admins anything.
    """
    if viewer.role == UserRole.admin:
        return department_id, employee_id
    if viewer.role == UserRole.manager and viewer.department_id is not None:
        if department_id is not None and department_id != viewer.department_id:
            raise ForbiddenException("You can only view your own department.")
        return viewer.department_id, employee_id
    if employee_id is not None and employee_id != viewer.id:
        raise ForbiddenException("You can only view your own records.")
    return None, viewer.id
