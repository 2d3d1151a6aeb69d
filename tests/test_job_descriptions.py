"""Job description tests — create, re-version on save, weight validation
and deactivation.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select

from sirtis.common.audit import AuditLog
from sirtis.common.constants import UserRole
from tests.conftest import make_employee

JDS = "/api/v1/job-descriptions"

RESPONSIBILITIES = [
    {"description": "Run community dialogues", "weight": 70, "tasks": ["Plan sessions", "Report attendance"]},
    {"description": "Maintain beneficiary records", "weight": 30, "tasks": ["Update the register"]},
]


def _payload(employee_id, **overrides):
    body = {
        "employee_id": str(employee_id),
        "job_title": "Community Mobiliser",
        "location": "Bulawayo",
        "job_summary": "Mobilises communities for programme activities.",
        "key_responsibilities": RESPONSIBILITIES,
    }
    body.update(overrides)
    return body


class TestSaveJobDescription:

    async def test_create_then_save_bumps_version(self, client, db, admin_headers):
        employee = await make_employee(db)

        first = await client.post(JDS, json=_payload(employee.id), headers=admin_headers)
        assert first.status_code == 201
        assert first.json()["data"]["version"] == 1
        assert first.json()["message"] == "Job description created."

        second = await client.post(
            JDS, json=_payload(employee.id, location="Harare"), headers=admin_headers,
        )
        data = second.json()["data"]
        assert data["id"] == first.json()["data"]["id"]
        assert data["version"] == 2
        assert data["location"] == "Harare"
        assert second.json()["message"] == "Job description saved as version 2."

    async def test_weights_must_total_100(self, client, db, admin_headers):
        employee = await make_employee(db)
        items = [{**RESPONSIBILITIES[0], "weight": 50}]

        resp = await client.post(JDS, json=_payload(employee.id, key_responsibilities=items), headers=admin_headers)

        assert resp.status_code == 422
        assert "key_responsibilities" in resp.json()["errors"]

    async def test_empty_responsibilities_are_allowed(self, client, db, admin_headers):
        employee = await make_employee(db)
        resp = await client.post(JDS, json=_payload(employee.id, key_responsibilities=[]), headers=admin_headers)
        assert resp.status_code == 201

    async def test_responsibility_needs_tasks(self, client, db, admin_headers):
        employee = await make_employee(db)
        items = [{"description": "Everything", "weight": 100, "tasks": []}]
        resp = await client.post(JDS, json=_payload(employee.id, key_responsibilities=items), headers=admin_headers)
        assert resp.status_code == 422

    async def test_unknown_employee_is_404(self, client, admin_headers):
        resp = await client.post(JDS, json=_payload(uuid.uuid4()), headers=admin_headers)
        assert resp.status_code == 404

    async def test_other_roles_forbidden(self, client, db, login_as):
        employee = await make_employee(db)
        _, headers = await login_as(UserRole.advance_user_2)
        assert (await client.post(JDS, json=_payload(employee.id), headers=headers)).status_code == 403
        assert (await client.get(JDS, headers=headers)).status_code == 403


class TestManageJobDescription:

    async def test_update_counts_as_new_version(self, client, db, admin_headers):
        employee = await make_employee(db)
        jd = (await client.post(JDS, json=_payload(employee.id), headers=admin_headers)).json()["data"]

        resp = await client.put(f"{JDS}/{jd['id']}", json={"acknowledgment": True}, headers=admin_headers)

        assert resp.json()["data"]["acknowledgment"] is True
        assert resp.json()["data"]["version"] == 2

    async def test_deactivate_hides_from_list(self, client, db, admin_headers, login_as):
        employee = await make_employee(db)
        other = await make_employee(db, first_name="Chipo")
        jd = (await client.post(JDS, json=_payload(employee.id), headers=admin_headers)).json()["data"]
        await client.post(JDS, json=_payload(other.id), headers=admin_headers)

        _, hr_headers = await login_as(UserRole.hr)
        resp = await client.get(JDS, params={"employee_id": str(employee.id)}, headers=hr_headers)
        assert [d["id"] for d in resp.json()["data"]] == [jd["id"]]

        assert (await client.delete(f"{JDS}/{jd['id']}", headers=admin_headers)).status_code == 200
        remaining = (await client.get(JDS, headers=hr_headers)).json()["data"]
        assert [d["employee_id"] for d in remaining] == [str(other.id)]

        detail = (await client.get(f"{JDS}/{jd['id']}", headers=hr_headers)).json()["data"]
        assert detail["is_active"] is False

    async def test_save_is_audited(self, client, db, admin_headers):
        employee = await make_employee(db)
        jd = (await client.post(JDS, json=_payload(employee.id), headers=admin_headers)).json()["data"]

        entries = (
            await db.execute(select(AuditLog).where(AuditLog.resource == "job_description"))
        ).scalars().all()
        assert [e.resource_id for e in entries] == [jd["id"]]
