"""Shared PostgreSQL connection for the operational scripts (psycopg2, sync driver)."""

import logging
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

from sirtis.config import settings  # noqa: E402

DATABASE_URL_SYNC = settings.DATABASE_URL_SYNC

EXIT_OK = 0
EXIT_PROBLEM = 1
EXIT_NO_CONNECTION = 2

logger = logging.getLogger("sirtis.scripts")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_pg_conn(dsn: str | None = None):
    """Open a psycopg2 connection; raises ``psycopg2.OperationalError`` when unreachable."""
    return psycopg2.connect(dsn or DATABASE_URL_SYNC)
