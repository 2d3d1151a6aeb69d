"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, hr, call centre, meal, risks, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from sirtis.auth.models import User, UserSession
from sirtis.auth.security import create_access_token, hash_password, hash_token
from sirtis.common.constants import UserRole
from sirtis.config import settings
from sirtis.database import Base, get_db
from sirtis.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import sirtis.common.audit  # noqa: F401
import sirtis.common.models  # noqa: F401
import sirtis.hr.models  # noqa: F401
import sirtis.call_centre.models  # noqa: F401
import sirtis.performance.models  # noqa: F401
import sirtis.documents.models  # noqa: F401
import sirtis.programs.models  # noqa: F401
import sirtis.meal.models  # noqa: F401
import sirtis.risks.models  # noqa: F401
import sirtis.payroll.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from sirtis.common.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def _upload_dir(tmp_path, monkeypatch):
    """Keep uploaded files inside the test's temporary directory."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(upload_dir))
    return upload_dir


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

DEFAULT_PASSWORD = "Sirtis!2024"


async def make_user(
    db: AsyncSession,
    *,
    role: UserRole = UserRole.basic_user_1,
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
    department: str | None = None,
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email or f"{role.value}.{uuid.uuid4().hex[:6]}@sirtis.org",
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        department=department,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


async def make_headers(db: AsyncSession, user: User) -> dict[str, str]:
    """Bearer headers backed by a persisted session for *user*."""
    token, _ = create_access_token(user.id, UserRole(user.role))
    db.add(
        UserSession(
            id=uuid.uuid4(),
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
            is_revoked=False,
        )
    )
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_as(db):
    """``await login_as(UserRole.hr, department="PROGRAMS")`` → (user, headers)."""

    async def _login(role: UserRole, **kwargs) -> tuple[User, dict[str, str]]:
        user = await make_user(db, role=role, **kwargs)
        return user, await make_headers(db, user)

    return _login


@pytest.fixture
async def admin(login_as) -> tuple[User, dict[str, str]]:
    return await login_as(UserRole.system_administrator, first_name="Ada", last_name="Admin")


@pytest.fixture
async def admin_headers(admin) -> dict[str, str]:
    return admin[1]


async def make_department(db: AsyncSession, *, name: str = "Programs", code: str = "PROGRAMS"):
    from sirtis.hr.models import Department

    department = Department(id=uuid.uuid4(), name=name, code=code, is_active=True)
    db.add(department)
    await db.commit()
    return department


async def make_employee(
    db: AsyncSession,
    *,
    first_name: str = "Tariro",
    last_name: str = "Moyo",
    email: str | None = None,
    department_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    base_salary: Decimal | None = Decimal("1000.00"),
    status: str = "active",
    number: str | None = None,
):
    from sirtis.hr.models import Employee

    employee = Employee(
        id=uuid.uuid4(),
        employee_number=number or f"EMP-{uuid.uuid4().int % 100000:05d}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@sirtis.org",
        position="Officer",
        department_id=department_id,
        user_id=user_id,
        start_date=date(2024, 1, 15),
        base_salary=base_salary,
        currency="USD",
        status=status,
    )
    db.add(employee)
    await db.commit()
    return employee
