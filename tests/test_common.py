"""Common utilities tests — pagination, filters, search, audit helpers,
RFC 7807 rendering, request ids and the health endpoint.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.common.audit import apply_changes, diff_values
from sirtis.common.constants import Priority
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.logging_config import JSONFormatter, set_request_id
from sirtis.common.pagination import PaginationParams, paginate
from sirtis.common.utils import as_utc, jsonable
from sirtis.hr.models import Department, Employee
from tests.conftest import make_department, make_employee


def _params(page: int = 1, page_size: int = 20, sort: str | None = None) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=sort)


# ═════════════════════════════════════════════════════════════════════
# 1. PAGINATION
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    async def test_meta_for_middle_page(self, db: AsyncSession):
        for i in range(7):
            await make_employee(db, first_name=f"Emp{i}")

        page = await paginate(db, select(Employee), _params(page=2, page_size=3))

        assert len(page.data) == 3
        assert page.meta.total == 7
        assert page.meta.total_pages == 3
        assert page.meta.has_next is True
        assert page.meta.has_prev is True

    async def test_empty_result(self, db: AsyncSession):
        page = await paginate(db, select(Employee), _params())
        assert page.data == []
        assert page.meta.total == 0
        assert page.meta.total_pages == 0
        assert page.meta.has_next is False

    async def test_sort_descending_by_model_column(self, db: AsyncSession):
        for name in ("Alpha", "Charlie", "Bravo"):
            await make_employee(db, first_name=name)

        page = await paginate(db, select(Employee), _params(sort="-first_name"), model=Employee)

        assert [e.first_name for e in page.data] == ["Charlie", "Bravo", "Alpha"]

    async def test_unknown_sort_column_is_ignored(self, db: AsyncSession):
        await make_employee(db)
        page = await paginate(db, select(Employee), _params(sort="no_such_column"), model=Employee)
        assert page.meta.total == 1

    async def test_page_size_bounds_enforced_by_api(self, client, admin_headers):
        resp = await client.get(
            "/api/v1/employees", params={"page_size": 1000}, headers=admin_headers,
        )
        assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# 2. FILTERS / SEARCH
# ═════════════════════════════════════════════════════════════════════


class TestFilters:

    async def test_equality_and_none_skipped(self, db: AsyncSession):
        await make_employee(db, status="active")
        await make_employee(db, status="archived")

        query = apply_filters(select(Employee), Employee, {"status": "archived", "phone": None})
        rows = (await db.execute(query)).scalars().all()

        assert [e.status for e in rows] == ["archived"]

    async def test_enum_values_are_unwrapped(self):
        query = apply_filters(select(Employee), Employee, {"status": Priority.high})
        assert "status" in str(query)

    async def test_range_and_in_suffixes(self, db: AsyncSession):
        low = await make_employee(db, base_salary=Decimal("500"))
        mid = await make_employee(db, base_salary=Decimal("1500"))
        await make_employee(db, base_salary=Decimal("5000"))

        query = apply_filters(
            select(Employee), Employee, {"base_salary__from": 400, "base_salary__to": 2000},
        )
        rows = (await db.execute(query)).scalars().all()
        assert {e.id for e in rows} == {low.id, mid.id}

        query = apply_filters(select(Employee), Employee, {"id__in": [low.id]})
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_unknown_filter_keys_ignored(self, db: AsyncSession):
        await make_employee(db)
        query = apply_filters(select(Employee), Employee, {"favourite_colour": "blue"})
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_search_is_case_insensitive_across_columns(self, db: AsyncSession):
        await make_employee(db, first_name="Nyasha", last_name="Dube")
        await make_employee(db, first_name="Chipo", last_name="Banda")

        query = apply_search(select(Employee), Employee, "  NYA ", ["first_name", "last_name"])
        rows = (await db.execute(query)).scalars().all()
        assert [e.first_name for e in rows] == ["Nyasha"]

        query = apply_search(select(Employee), Employee, "band", ["first_name", "last_name"])
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_blank_search_returns_everything(self, db: AsyncSession):
        await make_department(db)
        query = apply_search(select(Department), Department, "   ", ["name"])
        assert len((await db.execute(query)).scalars().all()) == 1


# ═════════════════════════════════════════════════════════════════════
# 3. AUDIT HELPERS / UTILS
# ═════════════════════════════════════════════════════════════════════


class TestAuditHelpers:

    def test_diff_values_lists_only_changed_fields(self):
        diff = diff_values({"status": "open", "priority": "low"}, {"status": "closed", "priority": "low"})
        assert diff == {"status": {"from": "open", "to": "closed"}}

    def test_diff_values_handles_missing_sides(self):
        assert diff_values(None, {"title": "New"}) == {"title": {"from": None, "to": "New"}}
        assert diff_values({"title": "Old"}, None) == {"title": {"from": "Old", "to": None}}

    def test_apply_changes_skips_unchanged_and_unwraps_enums(self):
        class Obj:
            status = "open"
            priority = "low"

        obj = Obj()
        old, new = apply_changes(obj, {"status": "open", "priority": Priority.high})

        assert old == {"priority": "low"}
        assert new == {"priority": "high"}
        assert obj.priority == "high"

    def test_jsonable(self):
        uid = uuid.uuid4()
        value = jsonable({
            "id": uid,
            "when": date(2024, 3, 1),
            "amount": Decimal("12.50"),
            "items": [Priority.low],
        })
        assert value == {"id": str(uid), "when": "2024-03-01", "amount": 12.5, "items": ["low"]}

    def test_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert as_utc(naive).tzinfo is timezone.utc
        assert as_utc(None) is None


# ═════════════════════════════════════════════════════════════════════
# 4. ERRORS / MIDDLEWARE / HEALTH
# ═════════════════════════════════════════════════════════════════════


class TestErrorsAndHealth:

    async def test_not_found_is_problem_json(self, client, admin_headers):
        missing = uuid.uuid4()
        resp = await client.get(f"/api/v1/departments/{missing}", headers=admin_headers)

        assert resp.status_code == 404
        body = resp.json()
        assert body["type"].endswith("/not-found")
        assert body["title"] == "Department Not Found"
        assert str(missing) in body["detail"]
        assert body["instance"] == f"/api/v1/departments/{missing}"

    async def test_forbidden_is_problem_json(self, client, login_as):
        from sirtis.common.constants import UserRole

        _, headers = await login_as(UserRole.basic_user_1)
        resp = await client.get("/api/v1/employees", headers=headers)

        assert resp.status_code == 403
        assert resp.json()["status"] == 403

    async def test_invalid_uuid_is_422_with_field_errors(self, client, admin_headers):
        resp = await client.get("/api/v1/departments/not-a-uuid", headers=admin_headers)
        assert resp.status_code == 422
        assert "department_id" in resp.json()["errors"]

    async def test_request_id_is_echoed(self, client):
        resp = await client.get("/api/v1/health", headers={"X-Request-ID": "abc12345"})
        assert resp.headers["X-Request-ID"] == "abc12345"

    async def test_request_id_is_generated(self, client):
        resp = await client.get("/api/v1/health")
        assert len(resp.headers["X-Request-ID"]) == 8

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["version"]
        assert body["environment"]


class TestLoggingFormat:

    def test_json_formatter_includes_request_id_and_extras(self):
        import json

        set_request_id("req-1")
        record = logging.LogRecord("sirtis.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.http_status = 200

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello world"
        assert payload["request_id"] == "req-1"
        assert payload["http_status"] == 200

    @pytest.mark.parametrize("level", ["INFO", "WARNING"])
    def test_level_name_is_reported(self, level):
        import json

        record = logging.LogRecord("sirtis.test", getattr(logging, level), __file__, 1, "x", (), None)
        assert json.loads(JSONFormatter().format(record))["level"] == level
