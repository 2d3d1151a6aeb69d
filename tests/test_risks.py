"""Risk register tests — scoring, numbering, department visibility,
mitigations, the change log and summary reports.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from sirtis.common.constants import RiskRating, UserRole
from sirtis.risks.models import Risk
from sirtis.risks.service import risk_level, risk_score

RISKS = "/api/v1/risks"


def _risk(**overrides):
    body = {
        "title": "Donor funding delay",
        "description": "Quarterly tranche may arrive late",
        "category": "financial",
        "probability": "medium",
        "impact": "high",
    }
    body.update(overrides)
    return body


async def _create(client, headers, **overrides):
    resp = await client.post(RISKS, json=_risk(**overrides), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestScoring:

    @pytest.mark.parametrize(
        "p, i, score, level",
        [
            ("low", "low", 1, "low"),
            ("low", "medium", 2, "low"),
            ("medium", "low", 2, "low"),
            ("low", "high", 3, "medium"),
            ("medium", "medium", 4, "medium"),
            ("medium", "high", 6, "high"),
            ("high", "high", 9, "high"),
        ],
    )
    def test_score_and_level(self, p, i, score, level):
        assert risk_score(p, i) == score
        assert risk_level(score) == level

    def test_accepts_enum_members(self):
        assert risk_score(RiskRating.high, RiskRating.medium) == 6


class TestRisks:

    async def test_create_assigns_id_score_and_defaults(self, client, login_as):
        user, headers = await login_as(UserRole.advance_user_1, department="PROGRAMS")
        year = datetime.now(timezone.utc).year

        first = await _create(client, headers)
        second = await _create(client, headers, probability="low", impact="low")

        assert first["risk_id"] == f"RISK-{year}-000001"
        assert second["risk_id"] == f"RISK-{year}-000002"
        assert first["risk_score"] == 6
        assert first["risk_level"] == "high"
        assert first["department"] == "PROGRAMS"
        assert first["owner_id"] == str(user.id)
        assert first["date_identified"] == datetime.now(timezone.utc).date().isoformat()

    async def test_risk_ids_compare_numbers_not_strings(self, client, db, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        year = datetime.now(timezone.utc).year
        legacy = await _create(client, headers)
        padded = await _create(client, headers)
        await db.execute(update(Risk).where(Risk.id == uuid.UUID(legacy["id"])).values(risk_id=f"RISK-{year}-99"))
        await db.execute(update(Risk).where(Risk.id == uuid.UUID(padded["id"])).values(risk_id=f"RISK-{year}-000120"))
        await db.commit()

        assert (await _create(client, headers))["risk_id"] == f"RISK-{year}-000121"

    async def test_update_recomputes_score(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)

        resp = await client.put(f"{RISKS}/{risk['id']}", json={"impact": "low"}, headers=headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["risk_score"] == 2
        assert data["risk_level"] == "low"

    async def test_invalid_rating_is_422(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        resp = await client.post(RISKS, json=_risk(probability="extreme"), headers=headers)
        assert resp.status_code == 422

    async def test_list_sorted_by_score(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        await _create(client, headers, title="Minor", probability="low", impact="low")
        await _create(client, headers, title="Major", probability="high", impact="high")

        resp = await client.get(RISKS, headers=headers)
        assert [r["title"] for r in resp.json()["data"]] == ["Major", "Minor"]

        resp = await client.get(RISKS, params={"category": "financial", "status": "open"}, headers=headers)
        assert resp.json()["meta"]["total"] == 2

    async def test_department_visibility(self, client, login_as, admin_headers):
        _, programs = await login_as(UserRole.advance_user_1, department="PROGRAMS")
        await _create(client, admin_headers, title="Programs risk", department="PROGRAMS")
        finance = await _create(client, admin_headers, title="Finance risk", department="FINANCE")

        resp = await client.get(RISKS, headers=programs)
        assert [r["title"] for r in resp.json()["data"]] == ["Programs risk"]

        resp = await client.get(f"{RISKS}/{finance['id']}", headers=programs)
        assert resp.status_code == 403

        resp = await client.get(RISKS, headers=admin_headers)
        assert resp.json()["meta"]["total"] == 2

    async def test_delete_requires_full_access(self, client, login_as, admin_headers):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)

        assert (await client.delete(f"{RISKS}/{risk['id']}", headers=headers)).status_code == 403

        assert (await client.delete(f"{RISKS}/{risk['id']}", headers=admin_headers)).status_code == 200
        assert (await client.get(f"{RISKS}/{risk['id']}", headers=admin_headers)).status_code == 404

    async def test_view_only_cannot_create(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_1)
        resp = await client.post(RISKS, json=_risk(), headers=headers)
        assert resp.status_code == 403


class TestMitigationsAndAudit:

    async def test_mitigation_lifecycle(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)

        resp = await client.post(
            f"{RISKS}/{risk['id']}/mitigations",
            json={"title": "Bridge funding", "progress": 20, "budget": 500},
            headers=headers,
        )
        assert resp.status_code == 201
        mitigation = resp.json()["data"]
        assert mitigation["status"] == "planning"

        resp = await client.put(
            f"{RISKS}/mitigations/{mitigation['id']}", json={"progress": 100}, headers=headers,
        )
        assert resp.json()["data"]["status"] == "completed"

        listed = (await client.get(f"{RISKS}/{risk['id']}/mitigations", headers=headers)).json()["data"]
        assert [m["progress"] for m in listed] == [100]

    async def test_full_progress_on_create_completes(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)
        resp = await client.post(
            f"{RISKS}/{risk['id']}/mitigations", json={"title": "Done", "progress": 100}, headers=headers,
        )
        assert resp.json()["data"]["status"] == "completed"

    async def test_audit_trail_newest_first(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)
        await client.put(f"{RISKS}/{risk['id']}", json={"status": "mitigated"}, headers=headers)
        await client.post(f"{RISKS}/{risk['id']}/mitigations", json={"title": "Plan"}, headers=headers)

        entries = (await client.get(f"{RISKS}/{risk['id']}/audit", headers=headers)).json()["data"]

        assert [e["action"] for e in entries] == ["MITIGATION_ADDED", "UPDATE", "CREATE"]
        assert entries[1]["changes"]["new"]["status"] == "mitigated"

    async def test_mitigation_summary(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        risk = await _create(client, headers)
        overdue = (date.today() - timedelta(days=3)).isoformat()
        for body in (
            {"title": "A", "status": "in_progress", "progress": 40, "due_date": overdue, "budget": 100},
            {"title": "B", "progress": 100, "budget": 50},
        ):
            await client.post(f"{RISKS}/{risk['id']}/mitigations", json=body, headers=headers)

        data = (await client.get(f"{RISKS}/mitigations/summary", headers=headers)).json()["data"]

        assert data["total_plans"] == 2
        assert data["active_plans"] == 1
        assert data["completed_plans"] == 1
        assert data["overdue_plans"] == 1
        assert data["average_progress"] == 70
        assert data["total_budget"] == 150.0

    async def test_report_matrix(self, client, admin_headers):
        await _create(client, admin_headers, probability="high", impact="high")
        await _create(client, admin_headers, probability="high", impact="high", category="compliance")
        await _create(client, admin_headers, probability="low", impact="medium")

        data = (await client.get(f"{RISKS}/reports/summary", headers=admin_headers)).json()["data"]

        assert data["total_risks"] == 3
        assert data["matrix"]["high"]["high"] == 2
        assert data["matrix"]["low"]["medium"] == 1
        assert data["by_level"] == {"low": 1, "medium": 0, "high": 2}
        assert data["by_category"]["compliance"] == 1
        assert data["by_category"]["cybersecurity"] == 0
        assert data["average_score"] == round((9 + 9 + 2) / 3, 2)
