"""Auth service — password login, JWT management, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.models import UserSession
from hrms.common.constants import UserRole
from hrms.common.exceptions import UnauthorizedException, ValidationException
from hrms.config import settings
from hrms.core_hr.models import Employee

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password."


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ── Login ───────────────────────────────────────────────────────────

async def authenticate(db: AsyncSession, email: str, password: str) -> Employee:
    """Return the active employee for *email*/*password* or raise 401.

    Unknown email, wrong password and inactive account share one message.
    """
    result = await db.execute(
        select(Employee).where(Employee.email == email.lower()),
    )
    employee = result.scalars().first()
    if (
        employee is None
        or not employee.is_active
        or not verify_password(password, employee.password_hash)
    ):
        logger.warning("Rejected login for %s", email)
        raise UnauthorizedException(detail=_INVALID_CREDENTIALS)
    return employee


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _create_access_token(employee_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def _create_refresh_token(employee_id: uuid.UUID) -> str:
    payload = {
        "sub": str(employee_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # each refresh token is distinct
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    employee: Employee,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create JWT pair and persist session.  Returns (access, refresh, expires_in)."""
    access_token, expires_in = _create_access_token(employee.id, employee.role)
    refresh_token = _create_refresh_token(employee.id)

    session = UserSession(
        employee_id=employee.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_EXPIRY_DAYS),
    )
    db.add(session)
    employee.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info("Session opened for %s", employee.email)
    return access_token, refresh_token, expires_in


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[str, str, int]:
    """Validate refresh token, rotate it, and issue new token pair.

    Returns (new_access_token, new_refresh_token, expires_in).

    Each refresh token can only be used once. Presenting an already
    consumed one revokes every session of that user.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise UnauthorizedException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise UnauthorizedException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()

    if session is None:
        raise UnauthorizedException(detail="Invalid refresh token.")

    if session.is_revoked:
        await revoke_all_user_sessions(db, session.employee_id)
        await db.commit()  # persist revocations before the error rolls back
        logger.warning("Refresh token reuse for employee %s", session.employee_id)
        raise UnauthorizedException(
            detail="Refresh token reuse detected. All sessions revoked.",
        )

    # Consume the old session
    session.is_revoked = True
    await db.flush()

    employee = await db.get(Employee, uuid.UUID(payload["sub"]))
    if employee is None or not employee.is_active:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    return await create_session(db, employee, ip, user_agent)


# ── Revoke ──────────────────────────────────────────────────────────

async def revoke_all_user_sessions(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> None:
    """Revoke every active session of an employee."""
    await db.execute(
        update(UserSession)
        .where(
            UserSession.employee_id == employee_id,
            UserSession.is_revoked.is_(False),
        )
        .values(is_revoked=True),
    )
    await db.flush()


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


# ── Profile ─────────────────────────────────────────────────────────

async def update_profile(
    db: AsyncSession,
    employee: Employee,
    *,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    current_password: Optional[str] = None,
    new_password: Optional[str] = None,
) -> Employee:
    """Apply self-service profile edits; password change verifies the old one."""
    if new_password:
        if not current_password or not verify_password(
            current_password, employee.password_hash,
        ):
            raise ValidationException(
                {"current_password": ["Current password is incorrect."]},
            )
        employee.password_hash = hash_password(new_password)
        logger.info("Password changed for %s", employee.email)

    if first_name is not None:
        employee.first_name = first_name
    if last_name is not None:
        employee.last_name = last_name
    if phone is not None:
        employee.phone = phone

    await db.flush()
    return employee
