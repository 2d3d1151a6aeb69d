"""Payroll ORM models: PayrollPeriod, PayrollRecord."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sirtis.common.constants import PayrollPeriodStatus, PayrollRecordStatus
from sirtis.common.utils import utcnow
from sirtis.database import Base


class PayrollPeriod(Base):
    __tablename__ = "payroll_periods"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    pay_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=PayrollPeriodStatus.open.value,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_payroll_periods_dates"),
    )

    def __repr__(self) -> str:
        return f"<PayrollPeriod {self.name} {self.status}>"


class PayrollRecord(Base):
    __tablename__ = "payroll_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    basic_salary: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=0)
    allowances: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    deductions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    gross_pay: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=0)
    total_deductions: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=0)
    net_pay: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(sa.String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=PayrollRecordStatus.draft.value,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    employee = relationship("Employee", foreign_keys=[employee_id], lazy="raise")

    __table_args__ = (
        sa.UniqueConstraint("period_id", "employee_id", name="uq_payroll_records_period_employee"),
    )

    def __repr__(self) -> str:
        return f"<PayrollRecord period={self.period_id} employee={self.employee_id} net={self.net_pay}>"
