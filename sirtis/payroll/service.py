"""Payroll service — periods, record generation, approval and close."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sirtis.auth.models import User
from sirtis.common.audit import create_audit_entry
from sirtis.common.constants import EmployeeStatus, PayrollPeriodStatus, PayrollRecordStatus
from sirtis.common.exceptions import BadRequestException, ConflictError, NotFoundException
from sirtis.common.utils import jsonable, utcnow
from sirtis.hr.models import Employee
from sirtis.payroll.models import PayrollPeriod, PayrollRecord
from sirtis.payroll.schemas import PeriodCreate, RecordResponse

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_SETTLED = {PayrollRecordStatus.approved.value, PayrollRecordStatus.paid.value}


def _total(items: Iterable[dict[str, Any]]) -> Decimal:
    return sum((Decimal(str(i.get("amount") or 0)) for i in items), Decimal(0))


def compute_totals(record: PayrollRecord) -> None:
    """gross = basic + allowances; net = gross − deductions."""
    basic = Decimal(str(record.basic_salary or 0))
    gross = basic + _total(record.allowances or [])
    deductions = _total(record.deductions or [])
    record.gross_pay = gross.quantize(_CENT)
    record.total_deductions = deductions.quantize(_CENT)
    record.net_pay = (gross - deductions).quantize(_CENT)


def to_response(record: PayrollRecord) -> RecordResponse:
    item = RecordResponse.model_validate(record)
    employee = record.__dict__.get("employee")
    if employee is not None:
        item.employee_name = employee.full_name
        item.employee_number = employee.employee_number
    return item


class PayrollService:

    # ── Periods ─────────────────────────────────────────────────────

    @staticmethod
    async def list_periods(db: AsyncSession, status: Optional[str] = None) -> Sequence[PayrollPeriod]:
        query = select(PayrollPeriod).order_by(PayrollPeriod.start_date.desc())
        if status:
            query = query.where(PayrollPeriod.status == status)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_period(db: AsyncSession, period_id: uuid.UUID) -> PayrollPeriod:
        period = await db.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundException("PayrollPeriod", str(period_id))
        return period

    @staticmethod
    async def create_period(db: AsyncSession, data: PeriodCreate, user: User) -> PayrollPeriod:
        overlapping = (
            await db.execute(
                select(PayrollPeriod).where(
                    PayrollPeriod.status != PayrollPeriodStatus.closed.value,
                    PayrollPeriod.start_date <= data.end_date,
                    PayrollPeriod.end_date >= data.start_date,
                )
            )
        ).scalars().first()
        if overlapping is not None:
            raise ConflictError(
                "period", overlapping.name,
                detail=f"Period overlaps open payroll period '{overlapping.name}'.",
            )

        period = PayrollPeriod(
            name=data.name,
            start_date=data.start_date,
            end_date=data.end_date,
            pay_date=data.pay_date,
            status=PayrollPeriodStatus.open.value,
            created_by=user.id,
        )
        db.add(period)
        await db.flush()
        await create_audit_entry(
            db,
            action="CREATE",
            resource="payroll_period",
            resource_id=period.id,
            user_id=user.id,
            new_values=jsonable(data.model_dump()),
        )
        return period

    @staticmethod
    async def generate(db: AsyncSession, period_id: uuid.UUID, user: User) -> int:
        """Create draft records for active employees without one; returns how many.

        Runs inside the request transaction, so a failure part-way leaves no records.
        """
        period = await PayrollService.get_period(db, period_id)
        if period.status == PayrollPeriodStatus.closed.value:
            raise BadRequestException("Cannot generate records for a closed period.")

        existing = set(
            (
                await db.execute(
                    select(PayrollRecord.employee_id).where(PayrollRecord.period_id == period.id)
                )
            ).scalars().all()
        )
        employees = (
            await db.execute(
                select(Employee).where(Employee.status == EmployeeStatus.active.value)
            )
        ).scalars().all()

        created = 0
        for employee in employees:
            if employee.id in existing:
                continue
            record = PayrollRecord(
                period_id=period.id,
                employee_id=employee.id,
                basic_salary=employee.base_salary or Decimal(0),
                allowances=[],
                deductions=[],
                currency=employee.currency or "USD",
                status=PayrollRecordStatus.draft.value,
            )
            compute_totals(record)
            db.add(record)
            created += 1

        period.status = PayrollPeriodStatus.processing.value
        await db.flush()
        await create_audit_entry(
            db,
            action="GENERATE",
            resource="payroll_period",
            resource_id=period.id,
            user_id=user.id,
            details={"records_created": created},
        )
        logger.info("Payroll period %s: generated %d records", period.name, created)
        return created

    @staticmethod
    async def list_records(
        db: AsyncSession,
        period_id: uuid.UUID,
    ) -> tuple[Sequence[PayrollRecord], dict[str, Any]]:
        await PayrollService.get_period(db, period_id)
        records = (
            await db.execute(
                select(PayrollRecord)
                .where(PayrollRecord.period_id == period_id)
                .options(selectinload(PayrollRecord.employee))
                .order_by(PayrollRecord.created_at.asc())
            )
        ).scalars().all()
        totals = {
            "records": len(records),
            "total_gross": float(sum((r.gross_pay for r in records), Decimal(0))),
            "total_deductions": float(sum((r.total_deductions for r in records), Decimal(0))),
            "total_net": float(sum((r.net_pay for r in records), Decimal(0))),
            "approved": sum(1 for r in records if r.status in _SETTLED),
        }
        return records, totals

    @staticmethod
    async def close_period(db: AsyncSession, period_id: uuid.UUID, user: User) -> PayrollPeriod:
        period = await PayrollService.get_period(db, period_id)
        if period.status == PayrollPeriodStatus.closed.value:
            raise BadRequestException("Period is already closed.")
        statuses = (
            await db.execute(
                select(PayrollRecord.status).where(PayrollRecord.period_id == period.id)
            )
        ).scalars().all()
        pending = sum(1 for s in statuses if s not in _SETTLED)
        if pending:
            raise BadRequestException(
                f"Cannot close period: {pending} record(s) are not approved."
            )

        period.status = PayrollPeriodStatus.closed.value
        period.closed_at = utcnow()
        await db.flush()
        await create_audit_entry(
            db,
            action="CLOSE",
            resource="payroll_period",
            resource_id=period.id,
            user_id=user.id,
            new_values={"status": period.status},
        )
        return period

    # ── Records ─────────────────────────────────────────────────────

    @staticmethod
    async def get_record(db: AsyncSession, record_id: uuid.UUID) -> PayrollRecord:
        result = await db.execute(
            select(PayrollRecord)
            .where(PayrollRecord.id == record_id)
            .options(selectinload(PayrollRecord.employee))
            .execution_options(populate_existing=True)
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("PayrollRecord", str(record_id))
        return record

    @staticmethod
    async def update_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
    ) -> PayrollRecord:
        record = await PayrollService.get_record(db, record_id)
        if record.status != PayrollRecordStatus.draft.value:
            raise BadRequestException("Only draft payroll records can be edited.")

        old_values = {
            "gross_pay": record.gross_pay,
            "total_deductions": record.total_deductions,
            "net_pay": record.net_pay,
        }
        for field, value in changes.items():
            setattr(record, field, value)
        compute_totals(record)
        await db.flush()

        await create_audit_entry(
            db,
            action="UPDATE",
            resource="payroll_record",
            resource_id=record.id,
            user_id=user.id,
            old_values=old_values,
            new_values={
                "gross_pay": record.gross_pay,
                "total_deductions": record.total_deductions,
                "net_pay": record.net_pay,
            },
        )
        return await PayrollService.get_record(db, record_id)

    @staticmethod
    async def approve_record(db: AsyncSession, record_id: uuid.UUID, user: User) -> PayrollRecord:
        record = await PayrollService.get_record(db, record_id)
        if record.status != PayrollRecordStatus.draft.value:
            raise BadRequestException(f"Record is already {record.status}.")

        record.status = PayrollRecordStatus.approved.value
        record.approved_by = user.id
        record.approved_at = utcnow()
        await db.flush()
        await create_audit_entry(
            db,
            action="APPROVE",
            resource="payroll_record",
            resource_id=record.id,
            user_id=user.id,
            new_values={"status": record.status, "net_pay": record.net_pay},
        )
        return await PayrollService.get_record(db, record_id)
