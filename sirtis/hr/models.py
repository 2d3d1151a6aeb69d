"""HR ORM models: Department, Employee, JobDescription, Qualification.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the PostgreSQL schema in alembic/versions/001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sirtis.common.constants import EmployeeStatus, VerificationStatus
from sirtis.common.utils import utcnow
from sirtis.database import Base


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    budget: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    location: Mapped[Optional[str]] = mapped_column(sa.String(150))
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    employees: Mapped[list[Employee]] = relationship(back_populates="department")

    def __repr__(self) -> str:
        return f"<Department {self.name!r} ({self.code})>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Core employee record."""

    __tablename__ = "employees"

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Identifiers ─────────────────────────────────────────────────
    employee_number: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
    )

    # ── Name / contact ──────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    personal_email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30))

    # ── Demographics ────────────────────────────────────────────────
    gender: Mapped[Optional[str]] = mapped_column(sa.String(20))
    date_of_birth: Mapped[Optional[date]] = mapped_column(sa.Date)
    address: Mapped[Optional[str]] = mapped_column(sa.Text)
    emergency_contact: Mapped[Optional[dict]] = mapped_column(JSONB)

    # ── Org ─────────────────────────────────────────────────────────
    position: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    employment_type: Mapped[Optional[str]] = mapped_column(sa.String(30))
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )

    # ── Employment lifecycle ────────────────────────────────────────
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    base_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    currency: Mapped[str] = mapped_column(
        sa.String(3), default="USD", server_default="USD",
    )
    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        default=EmployeeStatus.active.value,
        server_default=EmployeeStatus.active.value,
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    archive_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Timestamps ──────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Optional[Department]] = relationship(
        back_populates="employees", foreign_keys=[department_id],
    )
    supervisor: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], foreign_keys=[supervisor_id],
    )

    # ── Helpers ─────────────────────────────────────────────────────

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_archived(self) -> bool:
        return self.status == EmployeeStatus.archived.value

    def __repr__(self) -> str:
        return (
            f"<Employee {self.employee_number} "
            f"{self.first_name} {self.last_name}>"
        )


# ═════════════════════════════════════════════════════════════════════
# Job descriptions / qualifications
# ═════════════════════════════════════════════════════════════════════


class JobDescription(Base):
    """Current job description of one employee; each save bumps ``version``."""

    __tablename__ = "job_descriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    job_title: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    location: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    job_summary: Mapped[Optional[str]] = mapped_column(sa.Text)
    # [{"description", "weight", "tasks": [...]}]
    key_responsibilities: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    essential_experience: Mapped[Optional[str]] = mapped_column(sa.Text)
    essential_skills: Mapped[Optional[str]] = mapped_column(sa.Text)
    acknowledgment: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    version: Mapped[int] = mapped_column(sa.Integer, default=1, server_default="1")
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<JobDescription {self.job_title!r} v{self.version}>"


class Qualification(Base):
    __tablename__ = "employee_qualifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    institution: Mapped[Optional[str]] = mapped_column(sa.String(200))
    issuer: Mapped[Optional[str]] = mapped_column(sa.String(200))
    date_obtained: Mapped[date] = mapped_column(sa.Date, nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    level: Mapped[Optional[str]] = mapped_column(sa.String(100))
    grade: Mapped[Optional[str]] = mapped_column(sa.String(50))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    verification_status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        default=VerificationStatus.pending.value,
        server_default=VerificationStatus.pending.value,
    )
    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    @property
    def status(self) -> str:
        """``expired`` once the expiry date has passed, else ``active``."""
        if self.expiry_date is not None and self.expiry_date < date.today():
            return "expired"
        return "active"
