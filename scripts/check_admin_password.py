#!/usr/bin/env python3
"""Verify a user's stored bcrypt hash against a password.

Usage:
    python -m scripts.check_admin_password --email admin@sirtis.org           # prompts
    python -m scripts.check_admin_password --email admin@sirtis.org --password 's3cret!'

Exit codes:
    0 = password matches and the account is active
    1 = no such user, inactive account or mismatch
    2 = cannot connect to the database
"""

import argparse
import getpass
import sys

import psycopg2

from scripts.db import EXIT_NO_CONNECTION, EXIT_OK, EXIT_PROBLEM, configure_logging, get_pg_conn, logger
from sirtis.auth.security import verify_password


def fetch_user(conn, email: str):
    """Return ``(password_hash, role, is_active)`` or None."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT password_hash, role, is_active FROM users WHERE lower(email) = lower(%s)",
            (email,),
        )
        return cur.fetchone()


def check_password(row, password: str) -> tuple[bool, str]:
    if row is None:
        return False, "no user with that email"
    password_hash, role, is_active = row
    if not verify_password(password, password_hash):
        return False, "password does not match"
    if not is_active:
        return False, f"password matches but the {role} account is suspended"
    return True, f"password matches ({role})"


def main():
    parser = argparse.ArgumentParser(description="Check a stored password hash")
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--password", help="Password to verify (prompted when omitted)")
    args = parser.parse_args()

    configure_logging()
    password = args.password if args.password is not None else getpass.getpass("Password: ")

    try:
        conn = get_pg_conn()
    except psycopg2.OperationalError as e:
        logger.error("Cannot connect to PostgreSQL: %s", e)
        sys.exit(EXIT_NO_CONNECTION)

    try:
        row = fetch_user(conn, args.email)
    finally:
        conn.close()

    ok, message = check_password(row, password)
    if ok:
        logger.info("%s: %s", args.email, message)
        sys.exit(EXIT_OK)
    logger.warning("%s: %s", args.email, message)
    sys.exit(EXIT_PROBLEM)


if __name__ == "__main__":
    main()
