#!/usr/bin/env python3
"""Report document rows whose stored file is missing from disk.

Relative paths are resolved against UPLOAD_DIR. With ``--delete-orphans`` the
rows whose file is gone are deleted (audited in audit_logs).

Usage:
    python -m scripts.reconcile_documents                       # report only
    python -m scripts.reconcile_documents --delete-orphans --dry-run
    python -m scripts.reconcile_documents --delete-orphans

Exit codes:
    0 = every document has its file, or orphans were deleted
    1 = orphans found (report mode / dry run) or the delete failed
    2 = cannot connect to the database
"""

import argparse
import os
import sys
from typing import Iterable, NamedTuple

import psycopg2
from psycopg2.extras import Json

from scripts.db import EXIT_NO_CONNECTION, EXIT_OK, EXIT_PROBLEM, configure_logging, get_pg_conn, logger
from sirtis.config import settings


class Orphan(NamedTuple):
    document_id: str
    original_name: str
    path: str


def resolve_path(path: str, upload_dir: str) -> str:
    return path if os.path.isabs(path) else os.path.join(upload_dir, path)


def find_orphans(rows: Iterable[tuple[str, str, str]], upload_dir: str) -> list[Orphan]:
    """``(id, original_name, path)`` rows whose file does not exist."""
    orphans = []
    for document_id, original_name, path in rows:
        if not path or not os.path.isfile(resolve_path(path, upload_dir)):
            orphans.append(Orphan(str(document_id), original_name, path or ""))
    return orphans


def delete_orphans(cur, orphans: list[Orphan]) -> None:
    for o in orphans:
        cur.execute("DELETE FROM documents WHERE id = %s", (o.document_id,))
        cur.execute(
            """INSERT INTO audit_logs (id, action, resource, resource_id, details, severity, outcome)
               VALUES (uuid_generate_v4(), 'DELETE', 'document', %s, %s, 'warning', 'success')""",
            (o.document_id, Json({"reason": "file missing", "path": o.path, "source": "reconcile_documents"})),
        )


def main():
    parser = argparse.ArgumentParser(description="Reconcile document rows with stored files")
    parser.add_argument("--upload-dir", default=settings.UPLOAD_DIR,
                        help=f"Upload root (default: {settings.UPLOAD_DIR})")
    parser.add_argument("--delete-orphans", action="store_true",
                        help="Delete rows whose file is missing")
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
            cur.execute("SELECT id, original_name, path FROM documents ORDER BY created_at")
            rows = cur.fetchall()
            orphans = find_orphans(rows, args.upload_dir)
            for o in orphans:
                logger.warning("Missing file for %s (%s): %s", o.document_id, o.original_name, o.path)
            logger.info("%d document(s) checked, %d missing file(s)", len(rows), len(orphans))

            if not orphans:
                sys.exit(EXIT_OK)
            if not args.delete_orphans or args.dry_run:
                sys.exit(EXIT_PROBLEM)
            delete_orphans(cur, orphans)
        conn.commit()
        logger.info("Deleted %d orphaned document row(s)", len(orphans))
    except psycopg2.Error as e:
        conn.rollback()
        logger.error("Reconcile failed, rolled back: %s", e)
        sys.exit(EXIT_PROBLEM)
    finally:
        conn.close()

    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
