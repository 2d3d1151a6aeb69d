"""Admin tests — user management, role matrix, audit log search, settings
and system status.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select

from sirtis.admin.service import MASK, is_secret, mask_secrets
from sirtis.auth.models import User
from sirtis.common.constants import UserRole
from sirtis.performance.models import PerformancePlan, PlanComment
from tests.conftest import make_employee, make_headers, make_user

ADMIN = "/api/v1/admin"


# ═════════════════════════════════════════════════════════════════════
# 1. USERS
# ═════════════════════════════════════════════════════════════════════


class TestUsers:

    async def test_create_with_temporary_password(self, client, admin_headers):
        resp = await client.post(
            f"{ADMIN}/users",
            json={
                "email": "New.Officer@Sirtis.org",
                "first_name": "Nyasha",
                "last_name": "Dube",
                "department": "HUMAN_RESOURCE_MANAGEMENT",
            },
            headers=admin_headers,
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["data"]["email"] == "new.officer@sirtis.org"
        assert body["data"]["role"] == "hr"
        assert body["data"]["must_change_password"] is True
        assert len(body["temporary_password"]) >= 8

        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "new.officer@sirtis.org", "password": body["temporary_password"]},
        )
        assert login.status_code == 200

    async def test_explicit_password_and_role(self, client, admin_headers):
        resp = await client.post(
            f"{ADMIN}/users",
            json={
                "email": "chosen@sirtis.org",
                "first_name": "C",
                "last_name": "D",
                "password": "Chosen-Pass-1",
                "role": "advance_user_2",
            },
            headers=admin_headers,
        )
        body = resp.json()
        assert "temporary_password" not in body
        assert body["data"]["role"] == "advance_user_2"
        assert body["data"]["must_change_password"] is False

    async def test_duplicate_email_is_409(self, client, db, admin_headers):
        await make_user(db, email="taken@sirtis.org")
        resp = await client.post(
            f"{ADMIN}/users",
            json={"email": "TAKEN@sirtis.org", "first_name": "A", "last_name": "B"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_list_with_filters(self, client, db, admin_headers):
        await make_user(db, role=UserRole.hr, email="hr@sirtis.org", department="HUMAN_RESOURCE_MANAGEMENT")
        await make_user(db, email="gone@sirtis.org", is_active=False)

        resp = await client.get(f"{ADMIN}/users", params={"status": "suspended"}, headers=admin_headers)
        assert [u["email"] for u in resp.json()["data"]] == ["gone@sirtis.org"]

        body = (await client.get(f"{ADMIN}/users", params={"role": "hr"}, headers=admin_headers)).json()
        assert [u["email"] for u in body["data"]] == ["hr@sirtis.org"]
        assert "HUMAN_RESOURCE_MANAGEMENT" in body["departments"]
        assert "system_administrator" in body["roles"]

    async def test_non_admin_is_403(self, client, login_as):
        _, headers = await login_as(UserRole.hr)
        assert (await client.get(f"{ADMIN}/users", headers=headers)).status_code == 403

    async def test_role_change_ends_sessions(self, client, db, admin_headers):
        target = await make_user(db, email="target@sirtis.org")
        headers = await make_headers(db, target)
        assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 200

        resp = await client.put(
            f"{ADMIN}/users/{target.id}", json={"role": "advance_user_1"}, headers=admin_headers,
        )
        assert resp.json()["data"]["role"] == "advance_user_1"

        assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 401

    async def test_admin_cannot_demote_self(self, client, admin, admin_headers):
        resp = await client.put(f"{ADMIN}/users/{admin[0].id}", json={"role": "hr"}, headers=admin_headers)
        assert resp.status_code == 400

    async def test_toggle_status(self, client, db, admin, admin_headers):
        target = await make_user(db, email="toggle@sirtis.org")

        resp = await client.post(f"{ADMIN}/users/{target.id}/toggle-status", headers=admin_headers)
        assert resp.json()["data"]["status"] == "suspended"
        assert resp.json()["message"] == "User suspended."

        resp = await client.post(f"{ADMIN}/users/{target.id}/toggle-status", headers=admin_headers)
        assert resp.json()["data"]["is_active"] is True

        resp = await client.post(f"{ADMIN}/users/{admin[0].id}/toggle-status", headers=admin_headers)
        assert resp.status_code == 400

    async def test_reset_password(self, client, db, admin_headers):
        target = await make_user(db, email="forgot@sirtis.org")

        resp = await client.post(f"{ADMIN}/users/{target.id}/reset-password", headers=admin_headers)
        temporary = resp.json()["temporary_password"]
        assert resp.json()["data"]["must_change_password"] is True

        login = await client.post(
            "/api/v1/auth/login", json={"email": "forgot@sirtis.org", "password": temporary},
        )
        assert login.status_code == 200

    async def test_delete(self, client, db, admin, admin_headers):
        target = await make_user(db, email="leaving@sirtis.org")

        assert (await client.delete(f"{ADMIN}/users/{target.id}", headers=admin_headers)).status_code == 200
        assert (await client.delete(f"{ADMIN}/users/{target.id}", headers=admin_headers)).status_code == 404
        assert (await client.delete(f"{ADMIN}/users/{admin[0].id}", headers=admin_headers)).status_code == 400

    async def test_bulk_reports_failures(self, client, db, admin, admin_headers):
        a = await make_user(db, email="a@sirtis.org")
        b = await make_user(db, email="b@sirtis.org")
        missing = uuid.uuid4()

        resp = await client.post(
            f"{ADMIN}/users/bulk",
            json={"action": "suspend", "user_ids": [str(a.id), str(b.id), str(admin[0].id), str(missing)]},
            headers=admin_headers,
        )

        data = resp.json()["data"]
        assert data["succeeded"] == [str(a.id), str(b.id)]
        assert {f["user_id"] for f in data["failed"]} == {str(admin[0].id), str(missing)}
        assert resp.json()["message"] == "2 user(s) processed, 2 failed."

    async def test_delete_refuses_plan_supervisor(self, client, db, admin_headers):
        supervisor = await make_user(db, email="supervisor@sirtis.org")
        employee = await make_employee(db)
        db.add(PerformancePlan(employee_id=employee.id, supervisor_id=supervisor.id, plan_year=2025))
        await db.commit()

        resp = await client.delete(f"{ADMIN}/users/{supervisor.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert "performance" in resp.json()["detail"]

    async def test_bulk_delete_keeps_going_past_referenced_user(self, client, db, admin_headers):
        commenter = await make_user(db, email="commenter@sirtis.org")
        leaving = await make_user(db, email="leaving@sirtis.org")
        supervisor = await make_user(db, email="supervisor@sirtis.org")
        plan = PerformancePlan(employee_id=(await make_employee(db)).id, supervisor_id=supervisor.id, plan_year=2025)
        db.add(plan)
        await db.flush()
        db.add(PlanComment(plan_id=plan.id, user_id=commenter.id, comment="Noted", comment_type="general"))
        await db.commit()

        resp = await client.post(
            f"{ADMIN}/users/bulk",
            json={"action": "delete", "user_ids": [str(commenter.id), str(leaving.id)]},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["succeeded"] == [str(leaving.id)]
        assert [f["user_id"] for f in data["failed"]] == [str(commenter.id)]
        emails = set(await db.scalars(select(User.email)))
        assert "commenter@sirtis.org" in emails
        assert "leaving@sirtis.org" not in emails


# ═════════════════════════════════════════════════════════════════════
# 2. ROLES / AUDIT
# ═════════════════════════════════════════════════════════════════════


class TestRolesAndAudit:

    async def test_role_matrix(self, client, admin_headers):
        data = (await client.get(f"{ADMIN}/roles", headers=admin_headers)).json()["data"]
        roles = {r["role"]: r for r in data["roles"]}

        assert roles["basic_user_1"]["modules"]["call_centre"] == "view"
        assert roles["hr"]["modules"]["payroll"] == "full"
        assert roles["advance_user_1"]["document_clearance"] == "secret"
        assert data["department_defaults"]["PROGRAMS"] == "advance_user_1"

    async def test_audit_log_search(self, client, db, admin_headers, login_as):
        target = await make_user(db, email="audited@sirtis.org")
        await client.post(f"{ADMIN}/users/{target.id}/toggle-status", headers=admin_headers)

        _, hr_headers = await login_as(UserRole.hr)
        body = (
            await client.get(f"{ADMIN}/audit", params={"action": "USER_SUSPEND"}, headers=hr_headers)
        ).json()

        assert [e["resource_id"] for e in body["data"]] == [str(target.id)]
        assert body["data"][0]["severity"] == "warning"
        assert body["stats"]["warning"] >= 1
        assert set(body["stats"]) >= {"info", "warning", "critical"}

    async def test_audit_log_closed_to_other_roles(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        assert (await client.get(f"{ADMIN}/audit", headers=headers)).status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. SETTINGS / STATUS
# ═════════════════════════════════════════════════════════════════════


class TestSettings:

    def test_secret_keys_are_masked(self):
        assert is_secret("smtp_password")
        assert not is_secret("smtp_host")
        assert mask_secrets({"smtp_password": "pw", "api_key": "", "smtp_host": "mail"}) == {
            "smtp_password": MASK,
            "api_key": "",
            "smtp_host": "mail",
        }

    async def test_defaults(self, client, admin_headers):
        data = (await client.get(f"{ADMIN}/settings", headers=admin_headers)).json()["data"]
        assert data["system"]["app_name"] == "SIRTIS"
        assert data["security"]["max_login_attempts"] == 5

    async def test_update_section_and_mask(self, client, admin_headers):
        resp = await client.put(
            f"{ADMIN}/settings/email",
            json={"values": {"smtp_host": "smtp.sirtis.org", "smtp_password": "s3cret"}},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["smtp_password"] == MASK
        assert resp.json()["message"] == "Email settings saved."

        # Re-submitting the mask keeps the stored secret.
        await client.put(
            f"{ADMIN}/settings/email",
            json={"values": {"smtp_password": MASK, "smtp_port": 465}},
            headers=admin_headers,
        )
        data = (await client.get(f"{ADMIN}/settings", headers=admin_headers)).json()["data"]["email"]
        assert data["smtp_host"] == "smtp.sirtis.org"
        assert data["smtp_port"] == 465
        assert data["smtp_password"] == MASK

    async def test_unknown_key_is_400(self, client, admin_headers):
        resp = await client.put(
            f"{ADMIN}/settings/system", json={"values": {"colour": "blue"}}, headers=admin_headers,
        )
        assert resp.status_code == 400

    async def test_unknown_section_is_422(self, client, admin_headers):
        resp = await client.put(f"{ADMIN}/settings/cache", json={"values": {}}, headers=admin_headers)
        assert resp.status_code == 422

    async def test_system_status(self, client, admin_headers):
        data = (await client.get(f"{ADMIN}/system-status", headers=admin_headers)).json()["data"]
        assert data["database"] == "connected"
        assert data["row_counts"]["users"] >= 1
