"""Auth module test suite — password login, JWT, sessions, RBAC, profile."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from hrms.auth.models import UserSession
from hrms.common.constants import PERMISSIONS, UserRole
from hrms.config import settings
from tests.conftest import TEST_PASSWORD, TestSessionFactory, create_access_token


async def _login(client, email: str, password: str = TEST_PASSWORD):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


# ── Login ───────────────────────────────────────────────────────────


async def test_login_returns_token_pair_and_user(client, test_employee):
    """Valid credentials → 200 with access + refresh tokens and the user block."""
    resp = await _login(client, test_employee.email)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["token"] == data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["role"] == "employee"
    assert data["user"]["email"] == test_employee.email
    assert data["user"]["department"] == "Engineering"


async def test_login_email_is_case_insensitive(client, test_employee):
    resp = await _login(client, test_employee.email.upper())
    assert resp.status_code == 200


async def test_login_legacy_users_path(client, test_employee):
    """Older clients post to /api/users/login."""
    resp = await client.post(
        "/api/users/login",
        json={"email": test_employee.email, "password": TEST_PASSWORD},
    )
    assert resp.status_code == 200


async def test_login_wrong_password(client, test_employee):
    """Wrong password → 401 problem document with a message."""
    resp = await _login(client, test_employee.email, "not-the-password")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Invalid email or password."
    assert resp.headers["content-type"].startswith("application/problem+json")


async def test_login_unknown_email_same_message(client):
    resp = await _login(client, "nobody@example.com")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password."


async def test_login_inactive_account_rejected(client, db, test_employee):
    test_employee.is_active = False
    await db.commit()
    resp = await _login(client, test_employee.email)
    assert resp.status_code == 401


async def test_login_missing_fields_is_422(client):
    resp = await client.post("/api/auth/login", json={"email": "a@example.com"})
    assert resp.status_code == 422
    assert "password" in resp.json()["errors"]


async def test_login_persists_session(client, test_employee):
    resp = await _login(client, test_employee.email)
    token = resp.json()["data"]["access_token"]

    async with TestSessionFactory() as session:
        row = (
            await session.execute(
                select(UserSession).where(
                    UserSession.token_hash == hashlib.sha256(token.encode()).hexdigest(),
                )
            )
        ).scalars().first()
    assert row is not None
    assert row.employee_id == test_employee.id
    assert row.is_revoked is False


# ── JWT tokens ──────────────────────────────────────────────────────


async def test_jwt_has_correct_claims(client, manager_user):
    resp = await _login(client, manager_user.email)
    token = resp.json()["data"]["access_token"]
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == str(manager_user.id)
    assert payload["role"] == UserRole.manager.value
    assert payload["type"] == "access"
    assert "exp" in payload


async def test_missing_token_is_401(client):
    resp = await client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


async def test_garbage_token_is_401(client):
    resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_expired_token_is_401(client, db, test_employee):
    """Expired access token → 401 even with a session row present."""
    expired_token = create_access_token(test_employee.id, expired=True)
    db.add(UserSession(
        id=uuid.uuid4(),
        employee_id=test_employee.id,
        token_hash=hashlib.sha256(expired_token.encode()).hexdigest(),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        is_revoked=False,
        created_at=datetime.now(timezone.utc),
    ))
    await db.commit()

    resp = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {expired_token}"},
    )
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token has expired."


async def test_token_without_session_is_401(client, test_employee):
    token = create_access_token(test_employee.id)
    resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_role_is_read_from_database(client, db, test_employee, auth_headers):
    """A promotion applies on the next request, regardless of the token's role claim."""
    test_employee.role = UserRole.admin
    await db.commit()
    resp = await client.get("/api/dashboard/admin", headers=auth_headers)
    assert resp.status_code == 200


async def test_deactivated_user_token_rejected(client, db, test_employee, auth_headers):
    test_employee.is_active = False
    await db.commit()
    resp = await client.get("/api/auth/me", headers=auth_headers)
    assert resp.status_code == 401


# ── Refresh ─────────────────────────────────────────────────────────


async def test_refresh_rotates_tokens(client, test_employee):
    login = (await _login(client, test_employee.email)).json()["data"]

    resp = await client.post(
        "/api/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["access_token"] != login["access_token"]
    assert data["refresh_token"] != login["refresh_token"]

    me = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200


async def test_refresh_reuse_revokes_all_sessions(client, test_employee):
    login = (await _login(client, test_employee.email)).json()["data"]
    first = await client.post(
        "/api/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    new_access = first.json()["data"]["access_token"]

    reuse = await client.post(
        "/api/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    assert reuse.status_code == 401
    assert "reuse" in reuse.json()["message"].lower()

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_access}"})
    assert me.status_code == 401


async def test_refresh_with_access_token_rejected(client, test_employee):
    login = (await _login(client, test_employee.email)).json()["data"]
    resp = await client.post(
        "/api/auth/refresh", json={"refresh_token": login["access_token"]},
    )
    assert resp.status_code == 401


# ── Logout ──────────────────────────────────────────────────────────


async def test_logout_revokes_session(client, test_employee, auth_headers):
    resp = await client.post("/api/auth/logout", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Logged out successfully"

    again = await client.get("/api/auth/me", headers=auth_headers)
    assert again.status_code == 401


# ── Profile ─────────────────────────────────────────────────────────


async def test_me_returns_profile_and_permissions(client, test_employee, auth_headers):
    resp = await client.get("/api/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == str(test_employee.id)
    assert data["role"] == "employee"
    assert data["permissions"] == PERMISSIONS[UserRole.employee]
    assert data["department"]["name"] == "Engineering"
    assert data["direct_reports_count"] == 0


async def test_me_counts_direct_reports(client, manager_headers, test_employee):
    resp = await client.get("/api/auth/profile", headers=manager_headers)
    assert resp.json()["data"]["direct_reports_count"] == 1


async def test_update_profile_fields(client, auth_headers):
    resp = await client.put(
        "/api/auth/profile",
        headers=auth_headers,
        json={"first_name": "Tess", "phone": "555-0100"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["first_name"] == "Tess"
    assert data["phone"] == "555-0100"


async def test_change_password_requires_current(client, auth_headers):
    resp = await client.put(
        "/api/auth/profile", headers=auth_headers, json={"new_password": "NewPassword1!"},
    )
    assert resp.status_code == 422


async def test_change_password_wrong_current(client, auth_headers):
    resp = await client.put(
        "/api/auth/profile",
        headers=auth_headers,
        json={"current_password": "wrong-one", "new_password": "NewPassword1!"},
    )
    assert resp.status_code == 422
    assert "current_password" in resp.json()["errors"]


async def test_change_password_then_login(client, test_employee, auth_headers):
    resp = await client.put(
        "/api/auth/profile",
        headers=auth_headers,
        json={"current_password": TEST_PASSWORD, "new_password": "NewPassword1!"},
    )
    assert resp.status_code == 200

    assert (await _login(client, test_employee.email)).status_code == 401
    assert (await _login(client, test_employee.email, "NewPassword1!")).status_code == 200


# ── RBAC ────────────────────────────────────────────────────────────


async def test_employee_cannot_reach_manager_route(client, auth_headers):
    resp = await client.get("/api/dashboard/manager", headers=auth_headers)
    assert resp.status_code == 403
    assert resp.json()["success"] is False


async def test_admin_inherits_manager_routes(client, admin_headers):
    resp = await client.get("/api/dashboard/manager", headers=admin_headers)
    assert resp.status_code == 200
