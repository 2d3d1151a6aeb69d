"""Risk register router.

Routes:
    /risks                          — List, create risks
    /risks/mitigations/summary      — Mitigation plan figures
    /risks/mitigations/{id}         — Update a mitigation
    /risks/reports/summary          — Breakdown by category/status/level + matrix
    /risks/{id}                     — Get, update, delete a risk
    /risks/{id}/mitigations         — List, add mitigations
    /risks/{id}/audit               — The risk's change log
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, Module, RiskCategory, RiskStatus
from sirtis.common.pagination import PaginationParams
from sirtis.database import get_db
from sirtis.risks.schemas import (
    MitigationCreate,
    MitigationResponse,
    MitigationUpdate,
    RiskCreate,
    RiskLogResponse,
    RiskUpdate,
)
from sirtis.risks.service import MitigationService, RiskService, to_response

router = APIRouter(prefix="", tags=["risks"])

_risks_view = require_module_access(Module.risks, AccessLevel.view)
_risks_edit = require_module_access(Module.risks, AccessLevel.edit)
_risks_full = require_module_access(Module.risks, AccessLevel.full)


# ── Fixed paths first: they would otherwise parse as /{risk_id} ────

@router.get("/mitigations/summary")
async def mitigation_summary(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
):
    return {"data": await MitigationService.summary(db, current_user, request.state.user_role)}


@router.put("/mitigations/{mitigation_id}")
async def update_mitigation(
    mitigation_id: uuid.UUID,
    body: MitigationUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_edit),
):
    mitigation = await MitigationService.update(
        db,
        mitigation_id,
        body.model_dump(exclude_unset=True),
        current_user,
        request.state.user_role,
    )
    return {
        "data": MitigationResponse.model_validate(mitigation).model_dump(mode="json"),
        "message": "Mitigation updated successfully.",
    }


@router.get("/reports/summary")
async def risk_report(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
):
    return {"data": await RiskService.report(db, current_user, request.state.user_role)}


# ── Risks ───────────────────────────────────────────────────────────

@router.get("")
async def list_risks(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
    pagination: PaginationParams = Depends(),
    category: Optional[RiskCategory] = Query(None),
    status: Optional[RiskStatus] = Query(None),
    department: Optional[str] = Query(None),
):
    result = await RiskService.list_risks(
        db,
        current_user,
        request.state.user_role,
        pagination,
        category=category,
        status=status,
        department=department,
    )
    return {
        "data": [to_response(r).model_dump(mode="json") for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("", status_code=201)
async def create_risk(
    body: RiskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_edit),
):
    risk = await RiskService.create_risk(db, body, current_user)
    return {"data": to_response(risk).model_dump(mode="json"), "message": "Risk created successfully."}


@router.get("/{risk_id}")
async def get_risk(
    risk_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
):
    risk = await RiskService.get_risk(db, risk_id, current_user, request.state.user_role)
    return {"data": to_response(risk).model_dump(mode="json")}


@router.put("/{risk_id}")
async def update_risk(
    risk_id: uuid.UUID,
    body: RiskUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_edit),
):
    risk = await RiskService.update_risk(
        db, risk_id, body.model_dump(exclude_unset=True), current_user, request.state.user_role,
    )
    return {"data": to_response(risk).model_dump(mode="json"), "message": "Risk updated successfully."}


@router.delete("/{risk_id}")
async def delete_risk(
    risk_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_full),
):
    await RiskService.delete_risk(db, risk_id, current_user, request.state.user_role)
    return {"data": None, "message": "Risk deleted successfully."}


@router.get("/{risk_id}/mitigations")
async def list_mitigations(
    risk_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
):
    plans = await MitigationService.list_for_risk(db, risk_id, current_user, request.state.user_role)
    return {"data": [MitigationResponse.model_validate(p).model_dump(mode="json") for p in plans]}


@router.post("/{risk_id}/mitigations", status_code=201)
async def add_mitigation(
    risk_id: uuid.UUID,
    body: MitigationCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_edit),
):
    mitigation = await MitigationService.create(
        db, risk_id, body, current_user, request.state.user_role,
    )
    return {
        "data": MitigationResponse.model_validate(mitigation).model_dump(mode="json"),
        "message": "Mitigation added successfully.",
    }


@router.get("/{risk_id}/audit")
async def risk_audit_trail(
    risk_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_risks_view),
):
    entries = await RiskService.audit_trail(db, risk_id, current_user, request.state.user_role)
    return {"data": [RiskLogResponse.model_validate(e).model_dump(mode="json") for e in entries]}
