#!/usr/bin/env python3
"""Seed a fresh SIRTIS database: departments, an administrator, sample employees and risks.

Idempotent: rows whose natural key (department code, user email, employee
number, risk id) already exists are skipped.

Usage:
    python -m scripts.seed_data                          # seed everything
    python -m scripts.seed_data --dry-run                # report what would be inserted
    python -m scripts.seed_data --admin-email ops@sirtis.org --admin-password '...'
    python -m scripts.seed_data --skip-samples           # departments + admin only

Exit codes:
    0 = seeded (or nothing to do)
    1 = a write failed and the transaction was rolled back
    2 = cannot connect to the database
"""

import argparse
import sys
import uuid
from datetime import date
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2.extras import Json

from scripts.db import EXIT_NO_CONNECTION, EXIT_OK, EXIT_PROBLEM, configure_logging, get_pg_conn, logger
from sirtis.auth.security import generate_temporary_password, hash_password
from sirtis.common.constants import RiskCategory, UserRole
from sirtis.risks.service import risk_score

# ══════════════════════════════════════════════════════════════════════
# Seed definitions
# ══════════════════════════════════════════════════════════════════════

DEPARTMENTS: list[dict[str, Any]] = [
    {"code": "EXECUTIVE_DIRECTORS_OFFICE", "name": "Executive Director's Office", "location": "Harare"},
    {"code": "HUMAN_RESOURCE_MANAGEMENT", "name": "Human Resource Management", "location": "Harare"},
    {"code": "PROGRAMS", "name": "Programs", "location": "Harare"},
    {"code": "CALL_CENTER", "name": "Call Center", "location": "Harare"},
    {"code": "FINANCE_AND_ADMINISTRATION", "name": "Finance and Administration", "location": "Harare"},
]

SAMPLE_EMPLOYEES: list[dict[str, Any]] = [
    {
        "employee_number": "EMP-00001", "first_name": "Tariro", "last_name": "Moyo",
        "email": "tariro.moyo@sirtis.org", "position": "HR Officer",
        "department": "HUMAN_RESOURCE_MANAGEMENT", "base_salary": Decimal("1450.00"),
    },
    {
        "employee_number": "EMP-00002", "first_name": "Farai", "last_name": "Ncube",
        "email": "farai.ncube@sirtis.org", "position": "Programme Manager",
        "department": "PROGRAMS", "base_salary": Decimal("1800.00"),
    },
    {
        "employee_number": "EMP-00003", "first_name": "Rudo", "last_name": "Chikore",
        "email": "rudo.chikore@sirtis.org", "position": "Call Centre Agent",
        "department": "CALL_CENTER", "base_salary": Decimal("900.00"),
    },
    {
        "employee_number": "EMP-00004", "first_name": "Tendai", "last_name": "Mutasa",
        "email": "tendai.mutasa@sirtis.org", "position": "Finance Officer",
        "department": "FINANCE_AND_ADMINISTRATION", "base_salary": Decimal("1500.00"),
    },
]

SAMPLE_RISKS: list[dict[str, Any]] = [
    {
        "title": "Staff turnover in Programs",
        "description": "High turnover is affecting programme continuity and knowledge retention.",
        "category": RiskCategory.hr_personnel.value, "department": "Programs",
        "probability": "high", "impact": "high", "tags": ["HR-Priority"],
    },
    {
        "title": "Donor funding shortfall",
        "description": "Possible reduction in donor funding for the next fiscal year.",
        "category": RiskCategory.financial.value, "department": "Finance and Administration",
        "probability": "medium", "impact": "high", "tags": ["Donor-Critical"],
    },
    {
        "title": "Beneficiary data breach",
        "description": "Unpatched systems could expose beneficiary records.",
        "category": RiskCategory.cybersecurity.value, "department": "Executive Director's Office",
        "probability": "low", "impact": "high", "tags": ["Data-Protection"],
    },
]


def risk_rows(year: int) -> list[dict[str, Any]]:
    """Sample risks with their ``RISK-{year}-{n:06d}`` ids and scores filled in."""
    rows = []
    for n, risk in enumerate(SAMPLE_RISKS, start=1):
        row = dict(risk)
        row["risk_id"] = f"RISK-{year}-{n:06d}"
        row["risk_score"] = risk_score(risk["probability"], risk["impact"])
        rows.append(row)
    return rows


# ══════════════════════════════════════════════════════════════════════
# Writers
# ══════════════════════════════════════════════════════════════════════


def seed_departments(cur, dry_run: bool) -> dict[str, uuid.UUID]:
    ids: dict[str, uuid.UUID] = {}
    for dept in DEPARTMENTS:
        cur.execute("SELECT id FROM departments WHERE code = %s", (dept["code"],))
        row = cur.fetchone()
        if row:
            ids[dept["code"]] = row[0]
            continue
        new_id = uuid.uuid4()
        logger.info("Department %s: insert%s", dept["code"], " (dry run)" if dry_run else "")
        if not dry_run:
            cur.execute(
                "INSERT INTO departments (id, code, name, location) VALUES (%s, %s, %s, %s)",
                (str(new_id), dept["code"], dept["name"], dept["location"]),
            )
        ids[dept["code"]] = new_id
    return ids


def seed_admin(cur, email: str, password: str | None, dry_run: bool) -> tuple[uuid.UUID | None, str | None]:
    """Create the administrator; returns (user id, generated password or None)."""
    cur.execute("SELECT id FROM users WHERE lower(email) = lower(%s)", (email,))
    row = cur.fetchone()
    if row:
        logger.info("Administrator %s already exists", email)
        return row[0], None

    generated = None
    if password is None:
        password = generated = generate_temporary_password()
    new_id = uuid.uuid4()
    logger.info("Administrator %s: insert%s", email, " (dry run)" if dry_run else "")
    if not dry_run:
        cur.execute(
            """INSERT INTO users
               (id, email, password_hash, first_name, last_name, role, department,
                is_active, must_change_password)
               VALUES (%s, %s, %s, %s, %s, %s, %s, TRUE, %s)""",
            (
                str(new_id), email.lower(), hash_password(password), "System", "Administrator",
                UserRole.system_administrator.value, "EXECUTIVE_DIRECTORS_OFFICE",
                generated is not None,
            ),
        )
    return new_id, generated


def seed_employees(cur, department_ids: dict[str, uuid.UUID], dry_run: bool) -> int:
    inserted = 0
    for emp in SAMPLE_EMPLOYEES:
        cur.execute(
            "SELECT 1 FROM employees WHERE employee_number = %s OR lower(email) = lower(%s)",
            (emp["employee_number"], emp["email"]),
        )
        if cur.fetchone():
            continue
        inserted += 1
        if dry_run:
            continue
        cur.execute(
            """INSERT INTO employees
               (id, employee_number, first_name, last_name, email, position,
                department_id, start_date, base_salary, currency, status)
               VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, 'USD', 'active')""",
            (
                str(uuid.uuid4()), emp["employee_number"], emp["first_name"], emp["last_name"],
                emp["email"], emp["position"], str(department_ids[emp["department"]]),
                date.today(), emp["base_salary"],
            ),
        )
    logger.info("Employees: %d to insert%s", inserted, " (dry run)" if dry_run else "")
    return inserted


def seed_risks(cur, owner_id: uuid.UUID | None, dry_run: bool) -> int:
    inserted = 0
    for risk in risk_rows(date.today().year):
        cur.execute("SELECT 1 FROM risks WHERE risk_id = %s", (risk["risk_id"],))
        if cur.fetchone():
            continue
        inserted += 1
        if dry_run:
            continue
        owner = str(owner_id) if owner_id else None
        cur.execute(
            """INSERT INTO risks
               (id, risk_id, title, description, category, department, probability,
                impact, risk_score, status, owner_id, created_by_id, tags)
               VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, 'open', %s, %s, %s)""",
            (
                str(uuid.uuid4()), risk["risk_id"], risk["title"], risk["description"],
                risk["category"], risk["department"], risk["probability"], risk["impact"],
                risk["risk_score"], owner, owner, Json(risk["tags"]),
            ),
        )
    logger.info("Risks: %d to insert%s", inserted, " (dry run)" if dry_run else "")
    return inserted


def main():
    parser = argparse.ArgumentParser(description="Seed SIRTIS reference and sample data")
    parser.add_argument("--admin-email", default="admin@sirtis.org")
    parser.add_argument("--admin-password", help="Generated and printed when omitted")
    parser.add_argument("--skip-samples", action="store_true",
                        help="Only departments and the administrator")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    args = parser.parse_args()

    configure_logging()
    try:
        conn = get_pg_conn()
    except psycopg2.OperationalError as e:
        logger.error("Cannot connect to PostgreSQL: %s", e)
        sys.exit(EXIT_NO_CONNECTION)

    try:
        with conn.cursor() as cur:
            department_ids = seed_departments(cur, args.dry_run)
            admin_id, generated = seed_admin(cur, args.admin_email, args.admin_password, args.dry_run)
            if not args.skip_samples:
                seed_employees(cur, department_ids, args.dry_run)
                seed_risks(cur, admin_id, args.dry_run)
        if args.dry_run:
            conn.rollback()
        else:
            conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error("Seeding failed, rolled back: %s", e)
        sys.exit(EXIT_PROBLEM)
    finally:
        conn.close()

    if generated and not args.dry_run:
        print(f"\nAdministrator {args.admin_email} temporary password: {generated}\n"
              "It must be changed at first login.")
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
