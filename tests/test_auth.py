"""Auth module tests — login, refresh rotation + reuse detection, logout,
cookie sessions, login rate limiting and the /me access summary.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from sirtis.auth.models import UserSession
from sirtis.common.audit import AuditLog
from sirtis.common.constants import UserRole
from sirtis.config import settings
from tests.conftest import DEFAULT_PASSWORD, make_employee, make_headers, make_user

LOGIN = "/api/v1/auth/login"
REFRESH = "/api/v1/auth/refresh"
LOGOUT = "/api/v1/auth/logout"
ME = "/api/v1/auth/me"


async def _login(client, email: str, password: str = DEFAULT_PASSWORD):
    return await client.post(LOGIN, json={"email": email, "password": password})


# ═════════════════════════════════════════════════════════════════════
# 1. LOGIN
# ═════════════════════════════════════════════════════════════════════


class TestLogin:

    async def test_login_success_returns_token_pair(self, client, db):
        user = await make_user(db, role=UserRole.hr, email="hr.officer@sirtis.org")

        resp = await _login(client, "hr.officer@sirtis.org")

        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == settings.JWT_EXPIRY_HOURS * 3600
        assert body["user"]["id"] == str(user.id)
        assert body["user"]["role"] == "hr"
        assert settings.SESSION_COOKIE_NAME in resp.cookies

    async def test_login_email_is_case_insensitive(self, client, db):
        await make_user(db, email="mixed.case@sirtis.org")
        resp = await _login(client, "Mixed.Case@sirtis.org")
        assert resp.status_code == 200

    async def test_login_creates_session_and_audit_entry(self, client, db):
        user = await make_user(db)
        resp = await _login(client, user.email)
        assert resp.status_code == 200

        sessions = (
            await db.execute(select(UserSession).where(UserSession.user_id == user.id))
        ).scalars().all()
        assert len(sessions) == 1
        assert sessions[0].refresh_token_hash is not None

        actions = (
            await db.execute(select(AuditLog.action).where(AuditLog.user_id == user.id))
        ).scalars().all()
        assert "LOGIN" in actions

    async def test_wrong_password_is_401_problem_json(self, client, db):
        user = await make_user(db)

        resp = await _login(client, user.email, "not-the-password")

        assert resp.status_code == 401
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["status"] == 401
        assert body["instance"] == LOGIN
        assert body["detail"] == "Invalid email or password."

    async def test_failed_login_is_audited(self, client, db):
        user = await make_user(db)
        await _login(client, user.email, "wrong")

        entry = (
            await db.execute(select(AuditLog).where(AuditLog.action == "LOGIN_FAILED"))
        ).scalars().first()
        assert entry is not None
        assert entry.outcome == "failure"
        assert entry.details["reason"] == "bad_password"

    async def test_unknown_email_gives_same_error(self, client):
        resp = await _login(client, "nobody@sirtis.org")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password."

    async def test_suspended_user_cannot_log_in(self, client, db):
        user = await make_user(db, is_active=False)
        resp = await _login(client, user.email)
        assert resp.status_code == 401

    async def test_missing_password_is_422(self, client):
        resp = await client.post(LOGIN, json={"email": "a@sirtis.org"})
        assert resp.status_code == 422
        assert "password" in resp.json()["errors"]

    async def test_login_rate_limited(self, client, db):
        user = await make_user(db)
        statuses = [
            (await _login(client, user.email, "wrong")).status_code for _ in range(6)
        ]
        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429


# ═════════════════════════════════════════════════════════════════════
# 2. REFRESH
# ═════════════════════════════════════════════════════════════════════


class TestRefresh:

    async def test_refresh_rotates_tokens(self, client, db):
        user = await make_user(db)
        first = (await _login(client, user.email)).json()

        resp = await client.post(REFRESH, json={"refresh_token": first["refresh_token"]})

        assert resp.status_code == 200
        second = resp.json()
        assert second["access_token"] != first["access_token"]
        assert second["refresh_token"] != first["refresh_token"]

        client.cookies.clear()
        me = await client.get(ME, headers={"Authorization": f"Bearer {second['access_token']}"})
        assert me.status_code == 200

    async def test_refresh_token_reuse_revokes_everything(self, client, db):
        user = await make_user(db)
        first = (await _login(client, user.email)).json()
        second = (await client.post(REFRESH, json={"refresh_token": first["refresh_token"]})).json()

        reuse = await client.post(REFRESH, json={"refresh_token": first["refresh_token"]})
        assert reuse.status_code == 403
        assert "reuse" in reuse.json()["detail"].lower()

        client.cookies.clear()
        me = await client.get(ME, headers={"Authorization": f"Bearer {second['access_token']}"})
        assert me.status_code == 401

        reasons = set((await db.execute(select(UserSession.revoked_reason))).scalars().all())
        assert reasons == {"rotated", "token_reuse"}

    async def test_refresh_after_logout_leaves_other_devices(self, client, db):
        user = await make_user(db)
        laptop = (await _login(client, user.email)).json()
        phone = (await _login(client, user.email)).json()
        client.cookies.clear()

        await client.post(LOGOUT, headers={"Authorization": f"Bearer {laptop['access_token']}"})
        resp = await client.post(REFRESH, json={"refresh_token": laptop["refresh_token"]})

        assert resp.status_code == 403
        assert resp.json()["detail"] == "Refresh token revoked."
        client.cookies.clear()
        me = await client.get(ME, headers={"Authorization": f"Bearer {phone['access_token']}"})
        assert me.status_code == 200

        reasons = (
            await db.execute(select(UserSession.revoked_reason).where(UserSession.user_id == user.id))
        ).scalars().all()
        assert sorted(r or "" for r in reasons) == ["", "logout"]

    async def test_access_token_is_not_a_refresh_token(self, client, db):
        user = await make_user(db)
        tokens = (await _login(client, user.email)).json()
        resp = await client.post(REFRESH, json={"refresh_token": tokens["access_token"]})
        assert resp.status_code == 403

    async def test_garbage_refresh_token(self, client):
        resp = await client.post(REFRESH, json={"refresh_token": "not-a-jwt"})
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. SESSIONS
# ═════════════════════════════════════════════════════════════════════


class TestSessions:

    async def test_no_token_is_401(self, client):
        resp = await client.get(ME)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing session token."

    async def test_cookie_session_is_accepted(self, client, db):
        user = await make_user(db)
        headers = await make_headers(db, user)
        token = headers["Authorization"].removeprefix("Bearer ")

        client.cookies.set(settings.SESSION_COOKIE_NAME, token)
        resp = await client.get(ME)

        assert resp.status_code == 200
        assert resp.json()["id"] == str(user.id)

    async def test_token_without_session_row_is_rejected(self, client, db):
        user = await make_user(db)
        token = jwt.encode(
            {
                "sub": str(user.id),
                "role": user.role,
                "type": "access",
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get(ME, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_expired_token(self, client, db):
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "type": "access",
                "exp": datetime.now(timezone.utc) - timedelta(minutes=5),
            },
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get(ME, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired."

    async def test_logout_revokes_session(self, client, db):
        user = await make_user(db)
        headers = await make_headers(db, user)

        resp = await client.post(LOGOUT, headers=headers)
        assert resp.status_code == 200

        again = await client.get(ME, headers=headers)
        assert again.status_code == 401

    async def test_suspended_user_session_stops_working(self, client, db):
        user = await make_user(db)
        headers = await make_headers(db, user)
        user.is_active = False
        await db.commit()

        resp = await client.get(ME, headers=headers)
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# 4. /me
# ═════════════════════════════════════════════════════════════════════


class TestMe:

    async def test_me_reports_access_matrix(self, client, db):
        user = await make_user(db, role=UserRole.basic_user_1)
        headers = await make_headers(db, user)

        body = (await client.get(ME, headers=headers)).json()

        assert body["role"] == "basic_user_1"
        assert body["module_access"]["call_centre"] == "view"
        assert body["module_access"]["meal"] == "none"
        assert body["document_clearance"] == "confidential"
        assert body["flags"]["can_manage_users"] is False
        assert body["employee_id"] is None

    async def test_me_links_employee_record(self, client, db):
        user = await make_user(db, role=UserRole.hr)
        employee = await make_employee(db, user_id=user.id)
        headers = await make_headers(db, user)

        body = (await client.get(ME, headers=headers)).json()

        assert body["employee_id"] == str(employee.id)
        assert body["flags"]["can_view_others_profiles"] is True

    async def test_stored_role_wins_over_token_claim(self, client, db):
        user = await make_user(db, role=UserRole.system_administrator)
        headers = await make_headers(db, user)
        user.role = UserRole.basic_user_2.value
        await db.commit()

        body = (await client.get(ME, headers=headers)).json()
        assert body["role"] == "basic_user_2"
