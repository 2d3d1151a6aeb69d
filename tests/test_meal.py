"""MEAL tests — form lifecycle, submissions with server metadata, indicator
aggregation, exports, analytics and community feedback.
"""

from __future__ import annotations

import csv
import io
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import DataError
from sqlalchemy.orm import Session

from sirtis.common.constants import CalculationType, UserRole
from sirtis.meal.device import parse_device_info
from sirtis.meal.models import MealFeedback, MealIndicator
from sirtis.meal.service import flatten, lookup, next_indicator_value

FORMS = "/api/v1/meal/forms"
INDICATORS = "/api/v1/meal/indicators"

ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-A525F) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36"
)


async def _published_form(client, headers, **overrides):
    body = {"name": "Household survey", "schema": {"fields": [{"key": "household.size"}]}}
    body.update(overrides)
    form = (await client.post(FORMS, json=body, headers=headers)).json()["data"]
    resp = await client.post(f"{FORMS}/{form['id']}/publish", headers=headers)
    assert resp.status_code == 200
    return resp.json()["data"]


# ═════════════════════════════════════════════════════════════════════
# 1. PURE HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestHelpers:

    def test_flatten_nested(self):
        assert flatten({"a": {"b": 1, "c": [1, 2]}, "d": "x"}) == {
            "data.a.b": 1,
            "data.a.c": [1, 2],
            "data.d": "x",
        }

    def test_lookup_dotted_key(self):
        assert lookup({"household": {"size": 5}}, "household.size") == 5
        with pytest.raises(KeyError):
            lookup({"household": {}}, "household.size")

    @pytest.mark.parametrize(
        "calc, current, n, raw, expected",
        [
            (CalculationType.sum, Decimal("10"), 2, "5", Decimal("15")),
            (CalculationType.sum, None, 0, 3, Decimal("3")),
            (CalculationType.count, Decimal("4"), 4, None, Decimal("5")),
            (CalculationType.average, Decimal("10"), 1, 20, Decimal("15")),
            (CalculationType.average, Decimal("10"), 3, 30, Decimal("15")),
            (CalculationType.max, Decimal("7"), 1, 3, Decimal("7")),
            (CalculationType.min, Decimal("7"), 1, 3, Decimal("3")),
        ],
    )
    def test_next_indicator_value(self, calc, current, n, raw, expected):
        assert next_indicator_value(current, n, calc, raw) == expected

    @pytest.mark.parametrize("raw", [None, "", True, "lots", "NaN", "sNaN", "Infinity", "-Infinity"])
    def test_non_numeric_values_rejected(self, raw):
        with pytest.raises((ValueError, ArithmeticError)):
            next_indicator_value(Decimal("1"), 1, CalculationType.sum, raw)

    def test_device_info_from_user_agent(self):
        info = parse_device_info(ANDROID_UA, "en-GB,en;q=0.9", {"screen_resolution": "412x915"})
        assert info["platform"] == "Android"
        assert info["browser"] == "Chrome"
        assert info["os"] == "Android 13"
        assert info["language"] == "en-GB"
        assert info["is_mobile"] is True
        assert info["screen_resolution"] == "412x915"
        assert info["timezone"] == "Unknown"

    def test_device_info_without_headers(self):
        info = parse_device_info(None)
        assert info["user_agent"] == "Unknown"
        assert info["language"] == "en"
        assert info["is_mobile"] is False


# ═════════════════════════════════════════════════════════════════════
# 2. FORMS
# ═════════════════════════════════════════════════════════════════════


class TestForms:

    async def test_create_is_draft_with_schema(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)

        resp = await client.post(FORMS, json={"name": "Baseline", "schema": {"fields": []}}, headers=headers)

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "draft"
        assert data["schema"] == {"fields": []}
        assert data["version"] == "1.0"

    async def test_project_assignment(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_2)
        project = (
            await client.post("/api/v1/programs/projects", json={"name": "P", "code": "P"}, headers=headers)
        ).json()["data"]

        resp = await client.post(
            FORMS, json={"name": "F", "project_ids": [project["id"]]}, headers=headers,
        )
        assert resp.json()["data"]["project_ids"] == [project["id"]]

        resp = await client.post(
            FORMS, json={"name": "F2", "project_ids": ["00000000-0000-0000-0000-000000000000"]}, headers=headers,
        )
        assert resp.status_code == 400

    async def test_publish_twice_is_400(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        resp = await client.post(f"{FORMS}/{form['id']}/publish", headers=headers)
        assert resp.status_code == 400

    async def test_archived_form_cannot_be_edited(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        await client.post(f"{FORMS}/{form['id']}/archive", headers=headers)

        resp = await client.put(f"{FORMS}/{form['id']}", json={"name": "Renamed"}, headers=headers)
        assert resp.status_code == 400

    async def test_view_role_cannot_create(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_2)
        assert (await client.get(FORMS, headers=headers)).status_code == 200
        assert (await client.post(FORMS, json={"name": "X"}, headers=headers)).status_code == 403

    async def test_any_user_can_read_a_form(self, client, login_as):
        _, editor = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, editor)

        _, outsider = await login_as(UserRole.basic_user_1)
        resp = await client.get(f"{FORMS}/{form['id']}", headers=outsider)
        assert resp.status_code == 200
        assert (await client.get(FORMS, headers=outsider)).status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. SUBMISSIONS
# ═════════════════════════════════════════════════════════════════════


class TestSubmissions:

    async def test_draft_form_rejects_submissions(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = (await client.post(FORMS, json={"name": "Draft"}, headers=headers)).json()["data"]

        resp = await client.post(f"{FORMS}/{form['id']}/submissions", json={"data": {}}, headers=headers)
        assert resp.status_code == 400

    async def test_submission_captures_metadata(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1, first_name="Field", last_name="Agent")
        form = await _published_form(client, headers)

        resp = await client.post(
            f"{FORMS}/{form['id']}/submissions",
            json={"data": {"household": {"size": 4}}, "region": "Mashonaland", "metadata": {"status": "partial"}},
            headers={**headers, "User-Agent": ANDROID_UA, "X-Forwarded-For": "41.60.1.2, 10.0.0.1"},
        )

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["submitted_by"] == "Field Agent"
        assert data["metadata"]["ip_address"] == "41.60.1.2"
        assert data["metadata"]["region"] == "Mashonaland"
        assert data["metadata"]["city"] == "Unknown"
        assert data["metadata"]["form_version"] == "1.0"
        assert data["metadata"]["status"] == "partial"
        assert data["device_info"]["platform"] == "Android"

    async def test_indicator_mappings(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        total = (await client.post(INDICATORS, json={"code": "HH-TOTAL", "name": "People"}, headers=headers)).json()["data"]
        avg = (await client.post(INDICATORS, json={"code": "HH-AVG", "name": "Avg size"}, headers=headers)).json()["data"]

        for size in (4, 6):
            resp = await client.post(
                f"{FORMS}/{form['id']}/submissions",
                json={
                    "data": {"household": {"size": size}},
                    "indicator_mappings": [
                        {"indicator_id": total["id"], "field_key": "household.size"},
                        {"indicator_id": avg["id"], "field_key": "household.size", "calculation_type": "average"},
                        {"indicator_id": avg["id"], "field_key": "missing.key"},
                    ],
                },
                headers=headers,
            )
            assert resp.json()["indicators_updated"] == 2

        indicators = {i["code"]: i for i in (await client.get(INDICATORS, headers=headers)).json()["data"]}
        assert indicators["HH-TOTAL"]["current"] == 10.0
        assert indicators["HH-AVG"]["current"] == 5.0
        assert indicators["HH-AVG"]["observation_count"] == 2

    async def test_max_and_min_mappings(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        largest = (await client.post(INDICATORS, json={"code": "HH-MAX", "name": "Largest"}, headers=headers)).json()["data"]
        smallest = (await client.post(INDICATORS, json={"code": "HH-MIN", "name": "Smallest"}, headers=headers)).json()["data"]

        for size in (4, 9, 2):
            await client.post(
                f"{FORMS}/{form['id']}/submissions",
                json={
                    "data": {"household": {"size": size}},
                    "indicator_mappings": [
                        {"indicator_id": largest["id"], "field_key": "household.size", "calculation_type": "max"},
                        {"indicator_id": smallest["id"], "field_key": "household.size", "calculation_type": "min"},
                    ],
                },
                headers=headers,
            )

        indicators = {i["code"]: i for i in (await client.get(INDICATORS, headers=headers)).json()["data"]}
        assert indicators["HH-MAX"]["current"] == 9.0
        assert indicators["HH-MIN"]["current"] == 2.0
        assert indicators["HH-MIN"]["observation_count"] == 3

    @pytest.mark.parametrize("raw", ["NaN", "sNaN", "Infinity"])
    async def test_non_finite_value_is_skipped(self, client, login_as, raw):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        indicator = (await client.post(INDICATORS, json={"code": "HH-SUM", "name": "People"}, headers=headers)).json()["data"]

        resp = await client.post(
            f"{FORMS}/{form['id']}/submissions",
            json={
                "data": {"household": {"size": raw}},
                "indicator_mappings": [{"indicator_id": indicator["id"], "field_key": "household.size"}],
            },
            headers=headers,
        )

        assert resp.status_code == 201
        assert resp.json()["indicators_updated"] == 0
        stored = (await client.get(INDICATORS, headers=headers)).json()["data"][0]
        assert stored["current"] is None
        assert stored["observation_count"] == 0

    async def test_rejected_indicator_write_keeps_submission(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        huge = (await client.post(INDICATORS, json={"code": "HH-HUGE", "name": "Overflow"}, headers=headers)).json()["data"]
        tally = (await client.post(INDICATORS, json={"code": "HH-COUNT", "name": "Visits"}, headers=headers)).json()["data"]

        def _numeric_overflow(session, flush_context, instances):
            for obj in session.dirty:
                if isinstance(obj, MealIndicator) and obj.current is not None and obj.current >= Decimal("1e12"):
                    raise DataError("UPDATE meal_indicators", {}, Exception("numeric field overflow"))

        event.listen(Session, "before_flush", _numeric_overflow)
        try:
            resp = await client.post(
                f"{FORMS}/{form['id']}/submissions",
                json={
                    "data": {"household": {"size": 1e12}},
                    "indicator_mappings": [
                        {"indicator_id": huge["id"], "field_key": "household.size"},
                        {"indicator_id": tally["id"], "field_key": "household.size", "calculation_type": "count"},
                    ],
                },
                headers=headers,
            )
        finally:
            event.remove(Session, "before_flush", _numeric_overflow)

        assert resp.status_code == 201
        assert resp.json()["indicators_updated"] == 1

        listing = (await client.get(f"{FORMS}/{form['id']}/submissions", headers=headers)).json()
        assert listing["meta"]["total"] == 1
        indicators = {i["code"]: i for i in (await client.get(INDICATORS, headers=headers)).json()["data"]}
        assert indicators["HH-HUGE"]["current"] is None
        assert indicators["HH-HUGE"]["observation_count"] == 0
        assert indicators["HH-COUNT"]["current"] == 1.0

    async def test_list_and_export(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        for payload in ({"household": {"size": 3}}, {"household": {"size": 5}, "village": "Chivi"}):
            await client.post(f"{FORMS}/{form['id']}/submissions", json={"data": payload}, headers=headers)

        listing = (await client.get(f"{FORMS}/{form['id']}/submissions", headers=headers)).json()
        assert listing["meta"]["total"] == 2

        export = (await client.get(f"{FORMS}/{form['id']}/export", headers=headers)).json()
        assert export["meta"]["total"] == 2
        assert export["columns"][-2:] == ["data.household.size", "data.village"]

        resp = await client.get(f"{FORMS}/{form['id']}/export", params={"format": "csv"}, headers=headers)
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=meal_" in resp.headers["content-disposition"]
        rows = list(csv.DictReader(io.StringIO(resp.text)))
        assert [r["data.household.size"] for r in rows] == ["3", "5"]
        assert rows[0]["data.village"] == ""

        detail = (await client.get(f"{FORMS}/{form['id']}", headers=headers)).json()["data"]
        assert detail["submission_count"] == 2


# ═════════════════════════════════════════════════════════════════════
# 4. INDICATORS / ANALYTICS
# ═════════════════════════════════════════════════════════════════════


class TestIndicatorsAndAnalytics:

    async def test_duplicate_code_is_409(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        await client.post(INDICATORS, json={"code": "IND-1", "name": "A"}, headers=headers)
        resp = await client.post(INDICATORS, json={"code": "IND-1", "name": "B"}, headers=headers)
        assert resp.status_code == 409

    async def test_progress_percentage(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        indicator = (
            await client.post(
                INDICATORS,
                json={"code": "IND-2", "name": "Reach", "baseline": 0, "target": 200, "current": 50},
                headers=headers,
            )
        ).json()["data"]
        assert indicator["progress_pct"] == 25.0

        resp = await client.put(f"{INDICATORS}/{indicator['id']}", json={"current": 150}, headers=headers)
        assert resp.json()["data"]["progress_pct"] == 75.0

    async def test_analytics(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        form = await _published_form(client, headers)
        await client.post(FORMS, json={"name": "Unused"}, headers=headers)
        await client.post(
            f"{FORMS}/{form['id']}/submissions", json={"data": {}, "region": "Midlands"}, headers=headers,
        )
        await client.post(
            f"{FORMS}/{form['id']}/submissions",
            json={"data": {}, "metadata": {"status": "partial"}},
            headers=headers,
        )

        data = (await client.get("/api/v1/meal/analytics", headers=headers)).json()["data"]

        assert data["total_submissions"] == 2
        assert data["total_forms"] == 2
        assert data["active_forms"] == 1
        assert data["completion_rate"] == 50.0
        assert data["submissions_by_region"] == {"Midlands": 1, "Unknown": 1}
        assert data["submissions_by_form"][0]["count"] == 2


# ═════════════════════════════════════════════════════════════════════
# Feedback
# ═════════════════════════════════════════════════════════════════════

FEEDBACK = "/api/v1/meal/feedback"


def _feedback(**overrides):
    body = {
        "type": "complaint",
        "title": "Late food distribution",
        "description": "The Gwanda distribution started three hours late.",
        "project": "Gwanda Food Security",
        "priority": "high",
    }
    body.update(overrides)
    return body


class TestFeedback:

    async def test_any_user_can_submit(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_1, first_name="Nomsa", last_name="Dube")

        resp = await client.post(FEEDBACK, json=_feedback(), headers=headers)

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["submitted_by"] == "Nomsa Dube"
        assert data["status"] == "open"
        assert data["responses"] == []

    async def test_anonymous_hides_submitter(self, client, db, login_as):
        _, headers = await login_as(UserRole.basic_user_1, first_name="Nomsa")
        resp = await client.post(FEEDBACK, json=_feedback(is_anonymous=True), headers=headers)

        assert resp.json()["data"]["submitted_by"] == "Anonymous"
        stored = await db.get(MealFeedback, uuid.UUID(resp.json()["data"]["id"]))
        assert stored.submitted_by_id is None

    async def test_list_filters_newest_first(self, client, login_as):
        _, officer = await login_as(UserRole.advance_user_1)
        await client.post(FEEDBACK, json=_feedback(), headers=officer)
        await client.post(
            FEEDBACK,
            json=_feedback(type="compliment", title="Friendly staff", priority="low", project="Lupane WASH"),
            headers=officer,
        )

        body = (await client.get(FEEDBACK, headers=officer)).json()
        assert [f["title"] for f in body["data"]] == ["Friendly staff", "Late food distribution"]
        assert body["meta"]["total"] == 2

        resp = await client.get(FEEDBACK, params={"type": "complaint"}, headers=officer)
        assert [f["title"] for f in resp.json()["data"]] == ["Late food distribution"]
        resp = await client.get(FEEDBACK, params={"project": "lupane"}, headers=officer)
        assert [f["title"] for f in resp.json()["data"]] == ["Friendly staff"]
        resp = await client.get(FEEDBACK, params={"search": "three hours"}, headers=officer)
        assert len(resp.json()["data"]) == 1

    async def test_list_needs_meal_access(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_1)
        assert (await client.get(FEEDBACK, headers=headers)).status_code == 403

    async def test_reply_then_resolve(self, client, login_as):
        _, officer = await login_as(UserRole.advance_user_1, first_name="Tendai", last_name="Ncube")
        feedback_id = (await client.post(FEEDBACK, json=_feedback(), headers=officer)).json()["data"]["id"]

        resp = await client.post(
            f"{FEEDBACK}/{feedback_id}/responses",
            json={"message": "Escalated to the logistics team."},
            headers=officer,
        )
        data = resp.json()["data"]
        assert resp.status_code == 201
        assert data["status"] == "in_progress"
        assert data["responses"][0]["responded_by"] == "Tendai Ncube"

        resp = await client.put(
            f"{FEEDBACK}/{feedback_id}",
            json={"status": "resolved", "resolution": "Schedule moved to 08:00."},
            headers=officer,
        )
        assert resp.json()["data"]["resolved_at"] is not None

        resp = await client.put(f"{FEEDBACK}/{feedback_id}", json={"status": "open"}, headers=officer)
        assert resp.json()["data"]["resolved_at"] is None

    async def test_viewer_cannot_update(self, client, login_as):
        _, viewer = await login_as(UserRole.basic_user_2)
        feedback_id = (await client.post(FEEDBACK, json=_feedback(), headers=viewer)).json()["data"]["id"]

        resp = await client.put(f"{FEEDBACK}/{feedback_id}", json={"status": "closed"}, headers=viewer)
        assert resp.status_code == 403

    async def test_unknown_type_is_422(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_1)
        resp = await client.post(FEEDBACK, json=_feedback(type="rumour"), headers=headers)
        assert resp.status_code == 422
