#!/usr/bin/env python3
"""Assign systematic case and call numbers to call records that lack them.

Well-formed numbers are ``CASE-{year}-{n:08d}`` and ``{n:07d}/{year}``.
Records with an empty or legacy-format number get the next free number for
the year they were created in, in creation order. Well-formed numbers are
never changed.

Usage:
    python -m scripts.repair_call_numbers --dry-run    # list the planned changes
    python -m scripts.repair_call_numbers              # apply them

Exit codes:
    0 = nothing to repair, or repairs applied
    1 = records need repair (dry run) or the update failed
    2 = cannot connect to the database
"""

import argparse
import re
import sys
from collections import defaultdict
from datetime import datetime
from typing import Iterable, NamedTuple, Optional

import psycopg2

from scripts.db import EXIT_NO_CONNECTION, EXIT_OK, EXIT_PROBLEM, configure_logging, get_pg_conn, logger

CASE_NUMBER_RE = re.compile(r"^CASE-(\d{4})-(\d{8})$")
CALL_NUMBER_RE = re.compile(r"^(\d{7})/(\d{4})$")


class Repair(NamedTuple):
    record_id: str
    old_case_number: Optional[str]
    new_case_number: Optional[str]
    old_call_number: Optional[str]
    new_call_number: Optional[str]


def plan_repairs(rows: Iterable[tuple[str, Optional[str], Optional[str], datetime]]) -> list[Repair]:
    """Compute replacement numbers for ``(id, case_number, call_number, created_at)`` rows."""
    rows = sorted(rows, key=lambda r: r[3])
    case_max: dict[int, int] = defaultdict(int)
    call_max: dict[int, int] = defaultdict(int)

    for _, case_number, call_number, _ in rows:
        if case_number and (m := CASE_NUMBER_RE.match(case_number)):
            year = int(m.group(1))
            case_max[year] = max(case_max[year], int(m.group(2)))
        if call_number and (m := CALL_NUMBER_RE.match(call_number)):
            year = int(m.group(2))
            call_max[year] = max(call_max[year], int(m.group(1)))

    repairs: list[Repair] = []
    for record_id, case_number, call_number, created_at in rows:
        year = created_at.year
        new_case = new_call = None
        if not (case_number and CASE_NUMBER_RE.match(case_number)):
            case_max[year] += 1
            new_case = f"CASE-{year}-{case_max[year]:08d}"
        if not (call_number and CALL_NUMBER_RE.match(call_number)):
            call_max[year] += 1
            new_call = f"{call_max[year]:07d}/{year}"
        if new_case or new_call:
            repairs.append(Repair(str(record_id), case_number, new_case, call_number, new_call))
    return repairs


def apply_repairs(cur, repairs: list[Repair]) -> None:
    for r in repairs:
        cur.execute(
            """UPDATE call_records
               SET case_number = COALESCE(%s, case_number),
                   call_number = COALESCE(%s, call_number),
                   updated_at  = NOW()
               WHERE id = %s""",
            (r.new_case_number, r.new_call_number, r.record_id),
        )


def main():
    parser = argparse.ArgumentParser(description="Repair call record numbering")
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
            cur.execute("SELECT id, case_number, call_number, created_at FROM call_records")
            repairs = plan_repairs(cur.fetchall())
            for r in repairs:
                logger.info(
                    "%s: case %r -> %r, call %r -> %r",
                    r.record_id, r.old_case_number, r.new_case_number or r.old_case_number,
                    r.old_call_number, r.new_call_number or r.old_call_number,
                )
            if not repairs:
                logger.info("All call records are numbered correctly")
                sys.exit(EXIT_OK)
            if args.dry_run:
                logger.info("%d record(s) need repair (dry run, nothing written)", len(repairs))
                sys.exit(EXIT_PROBLEM)
            apply_repairs(cur, repairs)
        conn.commit()
        logger.info("Repaired %d record(s)", len(repairs))
    except psycopg2.Error as e:
        conn.rollback()
        logger.error("Repair failed, rolled back: %s", e)
        sys.exit(EXIT_PROBLEM)
    finally:
        conn.close()

    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
