"""Programs tests — projects, activities, progress estimates and the portfolio dashboard."""

from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from sirtis.common.constants import UserRole
from sirtis.programs.service import project_overdue, project_progress

PROJECTS = "/api/v1/programs/projects"


def _project(status="active", start=None, end=None):
    return SimpleNamespace(status=status, start_date=start, end_date=end)


class TestProgress:

    def test_completed_is_100(self):
        assert project_progress(_project(status="completed")) == 100

    def test_no_dates_is_unknown(self):
        assert project_progress(_project()) is None

    @pytest.mark.parametrize(
        "today, expected",
        [(date(2024, 1, 1), 0), (date(2024, 1, 11), 10), (date(2024, 4, 10), 100), (date(2023, 6, 1), 0)],
    )
    def test_elapsed_share_is_clamped(self, today, expected):
        project = _project(start=date(2024, 1, 1), end=date(2024, 4, 10))
        assert project_progress(project, today) == expected

    def test_overdue_only_when_unfinished(self):
        past = date(2020, 1, 1)
        assert project_overdue(_project(end=past)) is True
        assert project_overdue(_project(status="completed", end=past)) is False
        assert project_overdue(_project(status="cancelled", end=past)) is False
        assert project_overdue(_project()) is False


class TestProjects:

    async def test_create_and_fetch(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)

        resp = await client.post(
            PROJECTS,
            json={"name": "Youth Outreach", "code": "YO-01", "status": "active", "budget": 5000},
            headers=headers,
        )
        assert resp.status_code == 201
        project = resp.json()["data"]
        assert project["status"] == "active"
        assert project["activities"] == []

        resp = await client.get(f"{PROJECTS}/{project['id']}", headers=headers)
        assert resp.json()["data"]["code"] == "YO-01"

    async def test_duplicate_code_is_409(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_2)
        body = {"name": "A", "code": "DUP"}
        await client.post(PROJECTS, json=body, headers=headers)
        resp = await client.post(PROJECTS, json={**body, "name": "B"}, headers=headers)
        assert resp.status_code == 409

    async def test_end_before_start_is_422(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_2)
        resp = await client.post(
            PROJECTS,
            json={"name": "Bad", "code": "BAD", "start_date": "2024-05-01", "end_date": "2024-04-01"},
            headers=headers,
        )
        assert resp.status_code == 422

    async def test_update_checks_date_order_against_stored_values(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_2)
        project = (
            await client.post(
                PROJECTS,
                json={"name": "P", "code": "P1", "start_date": "2024-05-01"},
                headers=headers,
            )
        ).json()["data"]

        resp = await client.put(f"{PROJECTS}/{project['id']}", json={"end_date": "2024-01-01"}, headers=headers)
        assert resp.status_code == 400

        resp = await client.put(f"{PROJECTS}/{project['id']}", json={"status": "on_hold"}, headers=headers)
        assert resp.json()["data"]["status"] == "on_hold"

    async def test_activities(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        project = (await client.post(PROJECTS, json={"name": "P", "code": "P2"}, headers=headers)).json()["data"]

        resp = await client.post(
            f"{PROJECTS}/{project['id']}/activities",
            json={"title": "Community meeting", "due_date": "2024-06-01"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "planned"

        detail = (await client.get(f"{PROJECTS}/{project['id']}", headers=headers)).json()["data"]
        assert [a["title"] for a in detail["activities"]] == ["Community meeting"]

    async def test_view_only_cannot_create(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_2)
        assert (await client.get(PROJECTS, headers=headers)).status_code == 200
        resp = await client.post(PROJECTS, json={"name": "X", "code": "X"}, headers=headers)
        assert resp.status_code == 403

    async def test_no_access_role(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_1)
        assert (await client.get(PROJECTS, headers=headers)).status_code == 403


class TestDashboard:

    async def test_portfolio_figures(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_2)
        overdue_end = (date.today() - timedelta(days=10)).isoformat()
        for body in (
            {"name": "Done", "code": "D1", "status": "completed", "budget": 1000, "actual_spent": 900},
            {"name": "Live", "code": "L1", "status": "active", "budget": 3000, "actual_spent": 600},
            {"name": "Late", "code": "L2", "status": "active", "start_date": "2020-01-01", "end_date": overdue_end},
        ):
            assert (await client.post(PROJECTS, json=body, headers=headers)).status_code == 201

        data = (await client.get("/api/v1/programs/dashboard", headers=headers)).json()["data"]

        assert data["total_projects"] == 3
        assert data["active_projects"] == 2
        assert data["completed_projects"] == 1
        assert data["total_budget"] == 4000.0
        assert data["budget_utilization"] == 37.5
        assert data["overdue_projects"] == 1
        assert data["delivery_success_rate"] == 33.3
        assert len(data["recent_projects"]) == 3
