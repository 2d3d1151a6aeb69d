"""Payroll router — periods, generation, record edits and approvals."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, Module, PayrollPeriodStatus
from sirtis.database import get_db
from sirtis.payroll.schemas import PeriodCreate, PeriodResponse, RecordUpdate
from sirtis.payroll.service import PayrollService, to_response

router = APIRouter(prefix="", tags=["payroll"])

_payroll_view = require_module_access(Module.payroll, AccessLevel.view)
_payroll_edit = require_module_access(Module.payroll, AccessLevel.edit)
_payroll_full = require_module_access(Module.payroll, AccessLevel.full)


# ── Periods ─────────────────────────────────────────────────────────

@router.get("/periods")
async def list_periods(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_view),
    status: Optional[PayrollPeriodStatus] = Query(None),
):
    periods = await PayrollService.list_periods(db, status.value if status else None)
    return {"data": [PeriodResponse.model_validate(p).model_dump(mode="json") for p in periods]}


@router.post("/periods", status_code=201)
async def create_period(
    body: PeriodCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_edit),
):
    period = await PayrollService.create_period(db, body, current_user)
    return {
        "data": PeriodResponse.model_validate(period).model_dump(mode="json"),
        "message": "Payroll period created.",
    }


@router.post("/periods/{period_id}/generate")
async def generate_records(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_edit),
):
    created = await PayrollService.generate(db, period_id, current_user)
    return {"data": {"records_created": created}, "message": f"{created} payroll record(s) generated."}


@router.get("/periods/{period_id}/records")
async def list_period_records(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_view),
):
    records, totals = await PayrollService.list_records(db, period_id)
    return {
        "data": [to_response(r).model_dump(mode="json") for r in records],
        "totals": totals,
    }


@router.post("/periods/{period_id}/close")
async def close_period(
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_full),
):
    period = await PayrollService.close_period(db, period_id, current_user)
    return {
        "data": PeriodResponse.model_validate(period).model_dump(mode="json"),
        "message": "Payroll period closed.",
    }


# ── Records ─────────────────────────────────────────────────────────

@router.put("/records/{record_id}")
async def update_record(
    record_id: uuid.UUID,
    body: RecordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_edit),
):
    record = await PayrollService.update_record(
        db, record_id, body.model_dump(exclude_unset=True), current_user,
    )
    return {"data": to_response(record).model_dump(mode="json"), "message": "Payroll record updated."}


@router.post("/records/{record_id}/approve")
async def approve_record(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_payroll_full),
):
    record = await PayrollService.approve_record(db, record_id, current_user)
    return {"data": to_response(record).model_dump(mode="json"), "message": "Payroll record approved."}
