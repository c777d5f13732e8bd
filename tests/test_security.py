"""Security test suite — login rate limiting, credential and token storage,
forged tokens, and injection-safe sorting.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy import select

from hrms.auth.models import UserSession
from hrms.auth.service import hash_password, hash_token, verify_password
from hrms.common.constants import UserRole
from hrms.config import settings
from hrms.core_hr.models import Employee
from tests.conftest import TEST_PASSWORD, TestSessionFactory


# ═════════════════════════════════════════════════════════════════════
# 1. RATE LIMITING
# ═════════════════════════════════════════════════════════════════════


class TestRateLimiting:
    """Verify the per-client limit on the login endpoint."""

    @pytest.fixture(autouse=True)
    def _enable_limiter(self):
        from hrms.common.rate_limit import limiter

        original = limiter.enabled
        limiter.enabled = True
        limiter._storage.reset()
        yield
        limiter.enabled = original

    async def test_login_rate_limited(self, client, test_employee):
        """POST /auth/login allows LOGIN_RATE_LIMIT requests, then returns 429.

        Failed logins count toward the limit too.
        """
        allowed = int(settings.LOGIN_RATE_LIMIT.split("/")[0])
        for i in range(allowed):
            resp = await client.post(
                "/api/auth/login",
                json={"email": test_employee.email, "password": f"wrong-{i}"},
            )
            assert resp.status_code == 401, f"Request {i + 1} should not be rate-limited"

        resp = await client.post(
            "/api/auth/login",
            json={"email": test_employee.email, "password": TEST_PASSWORD},
        )
        assert resp.status_code == 429


# ═════════════════════════════════════════════════════════════════════
# 2. CREDENTIAL & TOKEN STORAGE
# ═════════════════════════════════════════════════════════════════════


class TestStorage:

    def test_password_hash_is_bcrypt(self):
        hashed = hash_password("Sup3rSecret!")
        assert hashed.startswith("$2")
        assert "Sup3rSecret!" not in hashed
        assert verify_password("Sup3rSecret!", hashed)
        assert not verify_password("sup3rsecret!", hashed)

    def test_malformed_hash_never_verifies(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    async def test_login_stores_only_token_hashes(self, client, test_employee):
        resp = await client.post(
            "/api/auth/login",
            json={"email": test_employee.email, "password": TEST_PASSWORD},
        )
        data = resp.json()["data"]

        async with TestSessionFactory() as session:
            stored = (
                await session.execute(
                    select(UserSession).where(UserSession.employee_id == test_employee.id)
                )
            ).scalars().one()
        assert stored.token_hash == hash_token(data["access_token"])
        assert stored.refresh_token_hash == hash_token(data["refresh_token"])
        assert data["access_token"] not in (stored.token_hash, stored.refresh_token_hash)

    async def test_password_hash_never_serialized(self, client, admin_headers, test_employee):
        resp = await client.get(f"/api/employees/{test_employee.id}", headers=admin_headers)
        assert "password_hash" not in resp.text

    async def test_login_updates_last_login(self, client, test_employee):
        await client.post(
            "/api/auth/login",
            json={"email": test_employee.email, "password": TEST_PASSWORD},
        )
        async with TestSessionFactory() as session:
            emp = await session.get(Employee, test_employee.id)
        assert emp.last_login_at is not None


# ═════════════════════════════════════════════════════════════════════
# 3. FORGED TOKENS
# ═════════════════════════════════════════════════════════════════════


class TestForgedTokens:

    def _forge(self, employee_id, *, secret=None, role=UserRole.admin, token_type="access"):
        payload = {
            "sub": str(employee_id),
            "role": role.value,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        }
        return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    async def test_wrong_signature_rejected(self, client, test_employee):
        token = self._forge(test_employee.id, secret="not-the-real-secret")
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_valid_signature_without_session_rejected(self, client, test_employee):
        """A correctly signed token that was never issued has no session row."""
        token = self._forge(test_employee.id)
        resp = await client.get("/api/dashboard/admin", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_refresh_token_not_accepted_as_access(self, client, test_employee):
        login = await client.post(
            "/api/auth/login",
            json={"email": test_employee.email, "password": TEST_PASSWORD},
        )
        refresh = login.json()["data"]["refresh_token"]
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh}"})
        assert resp.status_code == 401

    async def test_unknown_refresh_token_rejected(self, client, test_employee):
        token = self._forge(test_employee.id, token_type="refresh")
        resp = await client.post("/api/auth/refresh", json={"refresh_token": token})
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# 4. INJECTION-SAFE SORTING
# ═════════════════════════════════════════════════════════════════════


class TestSortInjection:

    async def test_sort_param_is_never_interpolated(self, client, admin_headers, test_employee):
        resp = await client.get(
            "/api/employees?sort=email;DROP TABLE employees--", headers=admin_headers,
        )
        assert resp.status_code == 200

        again = await client.get("/api/employees", headers=admin_headers)
        assert again.json()["data"]["pagination"]["total"] == 3
