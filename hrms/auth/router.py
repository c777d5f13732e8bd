"""Auth router — password login, token refresh, logout, current user profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import extract_bearer, get_current_user
from hrms.auth.schemas import (
    DeptBrief,
    LoginRequest,
    MeResponse,
    ProfileUpdate,
    RefreshRequest,
    RefreshResponse,
    TokenResponse,
    UserInfo,
)
from hrms.auth.service import (
    authenticate,
    create_session,
    hash_token,
    refresh_access_token,
    revoke_session,
    update_profile,
)
from hrms.common.audit import client_info, create_audit_entry
from hrms.common.constants import PERMISSIONS
from hrms.common.rate_limit import limiter
from hrms.common.responses import success_response
from hrms.config import settings
from hrms.core_hr.models import Employee
from hrms.database import get_db

router = APIRouter(prefix="", tags=["auth"])
# POST /api/users/login is the path older clients call
login_router = APIRouter(prefix="", tags=["auth"])


def _user_info(employee: Employee) -> UserInfo:
    return UserInfo(
        id=employee.id,
        email=employee.email,
        first_name=employee.first_name,
        last_name=employee.last_name,
        full_name=employee.full_name,
        role=employee.role.value,
        department_id=employee.department_id,
        department=employee.department.name if employee.department else None,
        manager_id=employee.manager_id,
    )


async def _me(db: AsyncSession, employee: Employee) -> MeResponse:
    result = await db.execute(
        select(func.count()).select_from(Employee).where(
            Employee.manager_id == employee.id,
            Employee.is_active.is_(True),
        ),
    )
    dept = None
    if employee.department:
        dept = DeptBrief(id=employee.department.id, name=employee.department.name)

    return MeResponse(
        id=employee.id,
        email=employee.email,
        first_name=employee.first_name,
        last_name=employee.last_name,
        full_name=employee.full_name,
        phone=employee.phone,
        position=employee.position,
        role=employee.role.value,
        permissions=PERMISSIONS.get(employee.role, []),
        department=dept,
        manager_id=employee.manager_id,
        direct_reports_count=result.scalar() or 0,
    )


# ── POST /login — Email + password ──────────────────────────────────

@router.post("/login")
@login_router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    employee = await authenticate(db, body.email, body.password)
    await db.refresh(employee, attribute_names=["department"])

    meta = client_info(request)
    access_token, refresh_token, expires_in = await create_session(
        db, employee, meta["ip_address"], meta["user_agent"],
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        **meta,
    )

    return success_response(
        TokenResponse(
            token=access_token,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            role=employee.role.value,
            user=_user_info(employee),
        ),
        "Login successful",
    )


# ── POST /refresh — Rotate token pair ───────────────────────────────

@router.post("/refresh")
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    meta = client_info(request)
    access, refresh, expires_in = await refresh_access_token(
        db, body.refresh_token, ip=meta["ip_address"], user_agent=meta["user_agent"],
    )
    return success_response(
        RefreshResponse(
            token=access,
            access_token=access,
            refresh_token=refresh,
            expires_in=expires_in,
        ),
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, hash_token(extract_bearer(request)))

    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        **client_info(request),
    )

    return success_response(None, "Logged out successfully")


# ── GET /profile, /me — Current user profile ───────────────────────

@router.get("/profile")
@router.get("/me")
async def me(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(await _me(db, employee))


# ── PUT /profile — Self-service edits / password change ────────────

@router.put("/profile")
async def update_me(
    request: Request,
    body: ProfileUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(
        exclude_unset=True, exclude={"current_password", "new_password"},
    )
    await update_profile(db, employee, **body.model_dump(exclude_unset=True))

    await create_audit_entry(
        db,
        action="update_profile",
        entity_type="employee",
        entity_id=employee.id,
        actor_id=employee.id,
        new_values={**changes, "password_changed": bool(body.new_password)},
        **client_info(request),
    )

    return success_response(await _me(db, employee), "Profile updated")
