"""Qualification tests — self-service records, derived expiry status and
HR verification.
"""

from __future__ import annotations

from datetime import date, timedelta

from sirtis.common.constants import UserRole
from tests.conftest import make_employee

OWN = "/api/v1/employee/qualifications"
EMPLOYEES = "/api/v1/employees"

DEGREE = {
    "type": "education",
    "title": "BSc Social Work",
    "institution": "University of Zimbabwe",
    "date_obtained": "2019-11-30",
}


async def _employee_session(db, login_as, role=UserRole.basic_user_1, **kw):
    user, headers = await login_as(role, **kw)
    employee = await make_employee(db, user_id=user.id)
    return employee, headers


class TestOwnQualifications:

    async def test_add_and_list(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)

        resp = await client.post(OWN, json=DEGREE, headers=headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "active"
        assert data["verification_status"] == "pending"

        listed = (await client.get(OWN, headers=headers)).json()["data"]
        assert [q["title"] for q in listed] == ["BSc Social Work"]

    async def test_past_expiry_reads_as_expired(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)
        body = {
            "type": "certification",
            "title": "First Aid",
            "date_obtained": "2020-01-10",
            "expiry_date": (date.today() - timedelta(days=1)).isoformat(),
        }

        resp = await client.post(OWN, json=body, headers=headers)

        assert resp.json()["data"]["status"] == "expired"

    async def test_expiry_before_obtained_is_422(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)
        body = {**DEGREE, "expiry_date": "2018-01-01"}
        resp = await client.post(OWN, json=body, headers=headers)
        assert resp.status_code == 422
        assert "expiry_date" in resp.json()["errors"]

    async def test_unknown_type_is_422(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)
        resp = await client.post(OWN, json={**DEGREE, "type": "hobby"}, headers=headers)
        assert resp.status_code == 422

    async def test_someone_elses_qualification_is_404(self, client, db, login_as):
        _, owner_headers = await _employee_session(db, login_as)
        _, other_headers = await _employee_session(db, login_as, first_name="Other")
        qid = (await client.post(OWN, json=DEGREE, headers=owner_headers)).json()["data"]["id"]

        assert (await client.put(f"{OWN}/{qid}", json={"grade": "2.1"}, headers=other_headers)).status_code == 404
        assert (await client.delete(f"{OWN}/{qid}", headers=other_headers)).status_code == 404

    async def test_delete(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)
        qid = (await client.post(OWN, json=DEGREE, headers=headers)).json()["data"]["id"]

        assert (await client.delete(f"{OWN}/{qid}", headers=headers)).status_code == 200
        assert (await client.get(OWN, headers=headers)).json()["data"] == []

    async def test_requires_employee_record(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_2)
        assert (await client.get(OWN, headers=headers)).status_code == 404


class TestVerification:

    async def test_hr_verifies_and_edit_resets(self, client, db, login_as):
        employee, headers = await _employee_session(db, login_as)
        qid = (await client.post(OWN, json=DEGREE, headers=headers)).json()["data"]["id"]
        hr_user, hr_headers = await login_as(UserRole.hr)

        resp = await client.post(
            f"{EMPLOYEES}/{employee.id}/qualifications/{qid}/verify",
            json={"status": "verified"},
            headers=hr_headers,
        )
        data = resp.json()["data"]
        assert data["verification_status"] == "verified"
        assert data["verified_by"] == str(hr_user.id)
        assert resp.json()["message"] == "Qualification marked verified."

        resp = await client.put(f"{OWN}/{qid}", json={"grade": "2.1"}, headers=headers)
        data = resp.json()["data"]
        assert data["grade"] == "2.1"
        assert data["verification_status"] == "pending"
        assert data["verified_at"] is None

    async def test_hr_lists_employee_qualifications(self, client, db, login_as):
        employee, headers = await _employee_session(db, login_as)
        await client.post(OWN, json=DEGREE, headers=headers)
        _, hr_headers = await login_as(UserRole.hr)

        resp = await client.get(f"{EMPLOYEES}/{employee.id}/qualifications", headers=hr_headers)

        assert [q["title"] for q in resp.json()["data"]] == ["BSc Social Work"]

    async def test_verify_checks_owner(self, client, db, login_as):
        _, headers = await _employee_session(db, login_as)
        other = await make_employee(db, first_name="Chipo")
        qid = (await client.post(OWN, json=DEGREE, headers=headers)).json()["data"]["id"]
        _, hr_headers = await login_as(UserRole.hr)

        resp = await client.post(
            f"{EMPLOYEES}/{other.id}/qualifications/{qid}/verify",
            json={"status": "verified"},
            headers=hr_headers,
        )
        assert resp.status_code == 404

    async def test_employee_cannot_verify(self, client, db, login_as):
        employee, headers = await _employee_session(db, login_as)
        qid = (await client.post(OWN, json=DEGREE, headers=headers)).json()["data"]["id"]

        resp = await client.post(
            f"{EMPLOYEES}/{employee.id}/qualifications/{qid}/verify",
            json={"status": "verified"},
            headers=headers,
        )
        assert resp.status_code == 403
