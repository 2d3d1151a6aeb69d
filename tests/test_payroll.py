"""Payroll tests — periods, generation from active employees, record edits,
approval and period close.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

from sirtis.common.constants import UserRole
from sirtis.payroll.service import compute_totals
from tests.conftest import make_employee

PAYROLL = "/api/v1/payroll"


async def _period(client, headers, name="March 2024", start="2024-03-01", end="2024-03-31"):
    resp = await client.post(
        f"{PAYROLL}/periods",
        json={"name": name, "start_date": start, "end_date": end, "pay_date": "2024-03-28"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestTotals:

    def test_gross_and_net(self):
        record = SimpleNamespace(
            basic_salary=Decimal("1000.00"),
            allowances=[{"name": "Transport", "amount": 50}, {"name": "Housing", "amount": 150.5}],
            deductions=[{"name": "PAYE", "amount": 120}],
        )
        compute_totals(record)
        assert record.gross_pay == Decimal("1200.50")
        assert record.total_deductions == Decimal("120.00")
        assert record.net_pay == Decimal("1080.50")

    def test_empty_items(self):
        record = SimpleNamespace(basic_salary=None, allowances=None, deductions=[])
        compute_totals(record)
        assert record.net_pay == Decimal("0.00")


class TestPeriods:

    async def test_create_and_list(self, client, login_as):
        _, headers = await login_as(UserRole.hr)
        period = await _period(client, headers)
        assert period["status"] == "open"

        listed = (await client.get(f"{PAYROLL}/periods", headers=headers)).json()["data"]
        assert [p["name"] for p in listed] == ["March 2024"]

    async def test_end_before_start_is_422(self, client, login_as):
        _, headers = await login_as(UserRole.hr)
        resp = await client.post(
            f"{PAYROLL}/periods",
            json={"name": "Bad", "start_date": "2024-03-31", "end_date": "2024-03-01"},
            headers=headers,
        )
        assert resp.status_code == 422

    async def test_overlapping_open_period_is_409(self, client, login_as):
        _, headers = await login_as(UserRole.hr)
        await _period(client, headers)
        resp = await client.post(
            f"{PAYROLL}/periods",
            json={"name": "Mid March", "start_date": "2024-03-15", "end_date": "2024-04-14"},
            headers=headers,
        )
        assert resp.status_code == 409
        assert "March 2024" in resp.json()["detail"]
        assert resp.json()["type"].endswith("/conflict")
        assert "period" in resp.json()["errors"]

    async def test_roles_without_payroll_access(self, client, login_as):
        _, headers = await login_as(UserRole.advance_user_1)
        assert (await client.get(f"{PAYROLL}/periods", headers=headers)).status_code == 403


class TestRecords:

    async def test_generate_for_active_employees_only(self, client, db, login_as):
        _, headers = await login_as(UserRole.hr)
        await make_employee(db, email="a@sirtis.org", base_salary=Decimal("1500.00"))
        await make_employee(db, email="b@sirtis.org", base_salary=Decimal("900.00"))
        await make_employee(db, email="c@sirtis.org", status="archived")
        period = await _period(client, headers)

        resp = await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        assert resp.json()["data"]["records_created"] == 2

        again = await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        assert again.json()["data"]["records_created"] == 0

        body = (await client.get(f"{PAYROLL}/periods/{period['id']}/records", headers=headers)).json()
        assert body["totals"]["records"] == 2
        assert body["totals"]["total_net"] == 2400.0
        assert {r["employee_name"] for r in body["data"]} == {"Tariro Moyo"}

        periods = (await client.get(f"{PAYROLL}/periods", headers=headers)).json()["data"]
        assert periods[0]["status"] == "processing"

    async def test_regenerate_only_adds_missing_employees(self, client, db, login_as):
        _, headers = await login_as(UserRole.hr)
        await make_employee(db, email="first@sirtis.org")
        period = await _period(client, headers)
        await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        first = (await client.get(f"{PAYROLL}/periods/{period['id']}/records", headers=headers)).json()["data"][0]
        await client.put(
            f"{PAYROLL}/records/{first['id']}",
            json={"deductions": [{"name": "PAYE", "amount": 100}]},
            headers=headers,
        )

        await make_employee(db, email="joined@sirtis.org", first_name="Chipo", base_salary=Decimal("800.00"))
        resp = await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)

        assert resp.json()["data"]["records_created"] == 1
        records = (await client.get(f"{PAYROLL}/periods/{period['id']}/records", headers=headers)).json()["data"]
        by_name = {r["employee_name"]: r for r in records}
        assert set(by_name) == {"Tariro Moyo", "Chipo Moyo"}
        assert by_name["Tariro Moyo"]["net_pay"] == 900.0
        assert by_name["Chipo Moyo"]["net_pay"] == 800.0

    async def test_edit_recomputes_totals(self, client, db, login_as):
        _, headers = await login_as(UserRole.hr)
        await make_employee(db)
        period = await _period(client, headers)
        await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        record = (await client.get(f"{PAYROLL}/periods/{period['id']}/records", headers=headers)).json()["data"][0]

        resp = await client.put(
            f"{PAYROLL}/records/{record['id']}",
            json={
                "allowances": [{"name": "Airtime", "amount": 25}],
                "deductions": [{"name": "NSSA", "amount": 45}],
            },
            headers=headers,
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["gross_pay"] == 1025.0
        assert data["total_deductions"] == 45.0
        assert data["net_pay"] == 980.0

    async def test_approve_then_close(self, client, db, login_as):
        _, headers = await login_as(UserRole.hr)
        await make_employee(db)
        period = await _period(client, headers)
        await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        record = (await client.get(f"{PAYROLL}/periods/{period['id']}/records", headers=headers)).json()["data"][0]

        resp = await client.post(f"{PAYROLL}/periods/{period['id']}/close", headers=headers)
        assert resp.status_code == 400
        assert "1 record(s)" in resp.json()["detail"]

        approved = (await client.post(f"{PAYROLL}/records/{record['id']}/approve", headers=headers)).json()["data"]
        assert approved["status"] == "approved"
        assert approved["approved_at"] is not None

        resp = await client.put(f"{PAYROLL}/records/{record['id']}", json={"basic_salary": 1}, headers=headers)
        assert resp.status_code == 400

        closed = (await client.post(f"{PAYROLL}/periods/{period['id']}/close", headers=headers)).json()["data"]
        assert closed["status"] == "closed"
        assert closed["closed_at"] is not None

        resp = await client.post(f"{PAYROLL}/periods/{period['id']}/generate", headers=headers)
        assert resp.status_code == 400

    async def test_closed_period_does_not_block_overlap(self, client, login_as):
        _, headers = await login_as(UserRole.hr)
        period = await _period(client, headers)
        await client.post(f"{PAYROLL}/periods/{period['id']}/close", headers=headers)

        await _period(client, headers, name="March 2024 (rerun)")
