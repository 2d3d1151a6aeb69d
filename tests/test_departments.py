"""Department CRUD tests — default codes, uniqueness, employee counts and delete guards."""

from __future__ import annotations

from sirtis.common.constants import UserRole
from tests.conftest import make_department, make_employee

DEPARTMENTS = "/api/v1/departments"


class TestDepartments:

    async def test_create_with_default_code(self, client, admin_headers):
        resp = await client.post(DEPARTMENTS, json={"name": "Finance"}, headers=admin_headers)

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["code"] == "FIN"
        assert data["description"] == "Finance Department"
        assert data["is_active"] is True

    async def test_explicit_code_is_uppercased(self, client, admin_headers):
        resp = await client.post(
            DEPARTMENTS, json={"name": "Call Centre", "code": "call_center"}, headers=admin_headers,
        )
        assert resp.json()["data"]["code"] == "CALL_CENTER"

    async def test_duplicate_name_is_409(self, client, db, admin_headers):
        await make_department(db, name="Programs", code="PROGRAMS")
        resp = await client.post(
            DEPARTMENTS, json={"name": "programs", "code": "PRG"}, headers=admin_headers,
        )
        assert resp.status_code == 409
        assert "name" in resp.json()["errors"]

    async def test_duplicate_code_is_409(self, client, db, admin_headers):
        await make_department(db, name="Programs", code="PRO")
        resp = await client.post(DEPARTMENTS, json={"name": "Procurement"}, headers=admin_headers)
        assert resp.status_code == 409
        assert "code" in resp.json()["errors"]

    async def test_list_counts_active_employees(self, client, db, admin_headers):
        dept = await make_department(db)
        await make_employee(db, department_id=dept.id)
        await make_employee(db, department_id=dept.id, status="archived")

        resp = await client.get(DEPARTMENTS, headers=admin_headers)

        assert resp.status_code == 200
        [item] = resp.json()["data"]
        assert item["employee_count"] == 1

    async def test_inactive_hidden_unless_requested(self, client, db, admin_headers):
        dept = await make_department(db)
        dept.is_active = False
        await db.commit()

        assert (await client.get(DEPARTMENTS, headers=admin_headers)).json()["data"] == []
        resp = await client.get(DEPARTMENTS, params={"include_inactive": True}, headers=admin_headers)
        assert len(resp.json()["data"]) == 1

    async def test_update(self, client, db, admin_headers):
        dept = await make_department(db)
        resp = await client.put(
            f"{DEPARTMENTS}/{dept.id}", json={"location": "Harare", "code": "prog"}, headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["location"] == "Harare"
        assert resp.json()["data"]["code"] == "PROG"

    async def test_delete_with_active_employees_is_400(self, client, db, admin_headers):
        dept = await make_department(db)
        await make_employee(db, department_id=dept.id)

        resp = await client.delete(f"{DEPARTMENTS}/{dept.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert "1 active employees" in resp.json()["detail"]

    async def test_delete_empty_department(self, client, db, admin_headers):
        dept = await make_department(db)
        resp = await client.delete(f"{DEPARTMENTS}/{dept.id}", headers=admin_headers)
        assert resp.status_code == 200

        resp = await client.get(f"{DEPARTMENTS}/{dept.id}", headers=admin_headers)
        assert resp.status_code == 404

    async def test_hr_can_edit_but_others_cannot(self, client, login_as):
        _, hr_headers = await login_as(UserRole.hr)
        resp = await client.post(DEPARTMENTS, json={"name": "Logistics"}, headers=hr_headers)
        assert resp.status_code == 201

        _, headers = await login_as(UserRole.advance_user_1)
        resp = await client.post(DEPARTMENTS, json={"name": "Security"}, headers=headers)
        assert resp.status_code == 403
