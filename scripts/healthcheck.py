#!/usr/bin/env python3
"""SIRTIS Health Check — verify the API, the database and the admin account.

Checks:
  1. Backend API responds on /api/v1/health (HTTP 200, valid JSON)
  2. PostgreSQL accepts connections on DATABASE_URL_SYNC
  3. At least one active system_administrator exists

Usage:
    python -m scripts.healthcheck                               # http://localhost:8000
    python -m scripts.healthcheck --url https://sirtis.example.org
    python -m scripts.healthcheck --skip-api                    # database checks only
    python -m scripts.healthcheck --json                        # machine-readable output

Exit codes:
    0 = all checks passed
    1 = one or more checks failed
    2 = critical failure (cannot reach the database)
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from datetime import datetime, timezone

import psycopg2
import requests

from scripts.db import EXIT_NO_CONNECTION, EXIT_OK, EXIT_PROBLEM, configure_logging, get_pg_conn, logger

# ══════════════════════════════════════════════════════════════════════
# Check result model
# ══════════════════════════════════════════════════════════════════════


class CheckResult:
    """Single health check result."""

    def __init__(self, name: str, passed: bool, message: str,
                 detail: str = "", severity: str = "error"):
        self.name = name
        self.passed = passed
        self.message = message
        self.detail = detail
        self.severity = severity  # "error", "warning", "info"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "detail": self.detail,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        icon = "✅" if self.passed else ("⚠️ " if self.severity == "warning" else "❌")
        line = f"  {icon} {self.name}: {self.message}"
        if self.detail:
            line += f"\n     {self.detail}"
        return line


# ══════════════════════════════════════════════════════════════════════
# Individual checks
# ══════════════════════════════════════════════════════════════════════


def check_api_health(base_url: str, timeout: int = 10) -> CheckResult:
    """GET /api/v1/health and expect ``status == "healthy"``."""
    health_url = f"{base_url.rstrip('/')}/api/v1/health"
    started = time.monotonic()
    try:
        resp = requests.get(health_url, timeout=timeout)
    except requests.exceptions.ConnectionError as e:
        return CheckResult("API health", False, f"Cannot connect to {health_url}", str(e))
    except requests.exceptions.Timeout:
        return CheckResult("API health", False, f"Timed out after {timeout}s", health_url)

    elapsed_ms = (time.monotonic() - started) * 1000
    try:
        body = resp.json()
    except ValueError:
        return CheckResult("API health", False, f"HTTP {resp.status_code}, body is not JSON")

    return evaluate_health_payload(resp.status_code, body, elapsed_ms)


def evaluate_health_payload(status_code: int, body: dict, elapsed_ms: float = 0.0) -> CheckResult:
    if status_code == 200 and body.get("status") == "healthy":
        return CheckResult(
            "API health",
            True,
            f"healthy (v{body.get('version', '?')}, {body.get('environment', '?')})",
            f"database={body.get('database', '?')} in {elapsed_ms:.0f}ms",
            severity="info",
        )
    return CheckResult(
        "API health",
        False,
        f"HTTP {status_code}, status={body.get('status', 'unknown')}",
        f"database={body.get('database', '?')}",
    )


def check_database(conn) -> CheckResult:
    with conn.cursor() as cur:
        cur.execute("SELECT 1")
        cur.fetchone()
        cur.execute("SELECT COUNT(*) FROM users")
        (users,) = cur.fetchone()
    return CheckResult("Database", True, "reachable", f"{users} user account(s)", severity="info")


def check_admin_exists(conn) -> CheckResult:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT COUNT(*) FROM users WHERE role = %s AND is_active = TRUE",
            ("system_administrator",),
        )
        (admins,) = cur.fetchone()
    if admins:
        return CheckResult("Administrator", True, f"{admins} active administrator(s)", severity="info")
    return CheckResult(
        "Administrator",
        False,
        "No active system_administrator account",
        "Run python -m scripts.seed_data or reactivate an administrator.",
    )


# ══════════════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════════════


def run_healthcheck(url: str, skip_api: bool = False, timeout: int = 10) -> tuple[list[CheckResult], int]:
    """Run every check; returns the results and the exit code."""
    results: list[CheckResult] = []

    if not skip_api:
        results.append(check_api_health(url, timeout=timeout))

    try:
        conn = get_pg_conn()
    except psycopg2.OperationalError as e:
        logger.error("Cannot connect to PostgreSQL: %s", e)
        results.append(CheckResult("Database", False, "Cannot connect", str(e)))
        return results, EXIT_NO_CONNECTION

    try:
        results.append(check_database(conn))
        results.append(check_admin_exists(conn))
    except psycopg2.Error as e:
        logger.error("Database check failed: %s", e)
        results.append(CheckResult("Database", False, "Query failed", str(e)))
    finally:
        conn.close()

    exit_code = EXIT_OK if all(r.passed for r in results) else EXIT_PROBLEM
    return results, exit_code


def main():
    parser = argparse.ArgumentParser(
        description="SIRTIS Health Check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m scripts.healthcheck                              # full check
  python -m scripts.healthcheck --url http://localhost:8000 --json
""",
    )
    parser.add_argument("--url", type=str, default="http://localhost:8000",
                        help="Base URL of the API (default: http://localhost:8000)")
    parser.add_argument("--skip-api", action="store_true",
                        help="Skip the HTTP health check")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")
    parser.add_argument("--timeout", type=int, default=10,
                        help="HTTP timeout in seconds (default: 10)")
    args = parser.parse_args()

    configure_logging()
    results, exit_code = run_healthcheck(args.url, skip_api=args.skip_api, timeout=args.timeout)

    if args.output_json:
        print(json.dumps({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "target": args.url,
            "checks": [r.to_dict() for r in results],
            "all_passed": exit_code == EXIT_OK,
        }, indent=2))
    else:
        print(f"\n{'=' * 60}\n  SIRTIS — HEALTH CHECK\n  Target : {args.url}\n{'=' * 60}\n")
        for result in results:
            print(result)
        failed = sum(1 for r in results if not r.passed)
        print(f"\n{'=' * 60}")
        print(f"  ✅ ALL {len(results)} CHECKS PASSED" if not failed
              else f"  ❌ {failed}/{len(results)} CHECKS FAILED")
        print(f"{'=' * 60}")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
