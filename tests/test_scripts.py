"""Operational script tests — the pure planning/evaluation helpers behind
the psycopg2 maintenance scripts. No PostgreSQL connection is opened.
"""

from __future__ import annotations

from datetime import datetime

from scripts.check_admin_password import check_password
from scripts.healthcheck import CheckResult, evaluate_health_payload
from scripts.reconcile_documents import find_orphans, resolve_path
from scripts.repair_call_numbers import plan_repairs
from scripts.seed_data import risk_rows
from sirtis.auth.security import hash_password


# ═════════════════════════════════════════════════════════════════════
# 1. CALL NUMBER REPAIR
# ═════════════════════════════════════════════════════════════════════


class TestRepairCallNumbers:

    def test_well_formed_numbers_are_kept(self):
        rows = [("a", "CASE-2024-00000003", "0000003/2024", datetime(2024, 2, 1))]
        assert plan_repairs(rows) == []

    def test_missing_numbers_continue_after_year_maximum(self):
        rows = [
            ("late", None, "", datetime(2024, 6, 1)),
            ("ok", "CASE-2024-00000007", "0000007/2024", datetime(2024, 1, 1)),
            ("legacy", "CC-17", "17", datetime(2024, 3, 1)),
        ]

        repairs = {r.record_id: r for r in plan_repairs(rows)}

        assert set(repairs) == {"legacy", "late"}
        assert repairs["legacy"].new_case_number == "CASE-2024-00000008"
        assert repairs["legacy"].new_call_number == "0000008/2024"
        assert repairs["late"].new_case_number == "CASE-2024-00000009"
        assert repairs["late"].old_call_number == ""

    def test_counters_are_per_year(self):
        rows = [
            ("x", None, None, datetime(2023, 12, 31)),
            ("y", None, None, datetime(2024, 1, 1)),
        ]
        repairs = plan_repairs(rows)
        assert [r.new_case_number for r in repairs] == ["CASE-2023-00000001", "CASE-2024-00000001"]
        assert [r.new_call_number for r in repairs] == ["0000001/2023", "0000001/2024"]

    def test_only_the_broken_number_changes(self):
        rows = [("z", "CASE-2024-00000001", None, datetime(2024, 5, 5))]
        (repair,) = plan_repairs(rows)
        assert repair.new_case_number is None
        assert repair.new_call_number == "0000001/2024"


# ═════════════════════════════════════════════════════════════════════
# 2. DOCUMENT RECONCILIATION
# ═════════════════════════════════════════════════════════════════════


class TestReconcileDocuments:

    def test_resolve_path(self, tmp_path):
        assert resolve_path("documents/a.pdf", str(tmp_path)) == str(tmp_path / "documents" / "a.pdf")
        assert resolve_path("/srv/b.pdf", str(tmp_path)) == "/srv/b.pdf"

    def test_find_orphans(self, tmp_path):
        (tmp_path / "documents").mkdir()
        (tmp_path / "documents" / "present.pdf").write_bytes(b"x")
        absolute = tmp_path / "abs.txt"
        absolute.write_text("y")

        rows = [
            (1, "present.pdf", "documents/present.pdf"),
            (2, "abs.txt", str(absolute)),
            (3, "gone.pdf", "documents/gone.pdf"),
            (4, "blank", None),
        ]
        orphans = find_orphans(rows, str(tmp_path))

        assert [o.document_id for o in orphans] == ["3", "4"]
        assert orphans[1].path == ""


# ═════════════════════════════════════════════════════════════════════
# 3. PASSWORD CHECK / HEALTH / SEED
# ═════════════════════════════════════════════════════════════════════


class TestCheckPassword:

    def test_outcomes(self):
        stored = hash_password("Right-Pass-1")

        assert check_password(None, "x") == (False, "no user with that email")
        assert check_password((stored, "hr", True), "wrong")[0] is False
        ok, message = check_password((stored, "system_administrator", True), "Right-Pass-1")
        assert ok and "system_administrator" in message
        ok, message = check_password((stored, "hr", False), "Right-Pass-1")
        assert not ok and "suspended" in message


class TestHealthPayload:

    def test_healthy(self):
        result = evaluate_health_payload(
            200, {"status": "healthy", "version": "1.0.0", "environment": "test", "database": "connected"}, 12.4,
        )
        assert result.passed
        assert result.message == "healthy (v1.0.0, test)"
        assert result.detail == "database=connected in 12ms"

    def test_degraded(self):
        result = evaluate_health_payload(503, {"status": "degraded", "database": "unreachable"})
        assert not result.passed
        assert result.message == "HTTP 503, status=degraded"
        assert result.to_dict()["severity"] == "error"

    def test_str_marks_warnings(self):
        line = str(CheckResult("Disk", False, "low", severity="warning"))
        assert "Disk: low" in line
        assert "⚠️" in line


class TestSeedRisks:

    def test_risk_rows_are_numbered_and_scored(self):
        rows = risk_rows(2025)
        assert [r["risk_id"] for r in rows] == ["RISK-2025-000001", "RISK-2025-000002", "RISK-2025-000003"]
        assert [r["risk_score"] for r in rows] == [9, 6, 3]
