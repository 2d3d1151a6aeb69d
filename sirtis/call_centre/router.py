"""Call centre router — calls, cases, officers and summary figures.

Routes:
    /calls                  — List, log calls
    /calls/{id}             — Get, update a call
    /cases                  — Calls flagged as cases, with due dates
    /cases/{id}             — Get, update a case
    /cases/{id}/history     — Field-level change history
    /officers               — Users who can be assigned cases
    /summary                — Headline counts
"""


import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User
from sirtis.auth.dependencies import require_module_access
from sirtis.call_centre.schemas import CallCreate, CallUpdate, CaseUpdate
from sirtis.call_centre.service import CallService, to_call_response
from sirtis.common.constants import AccessLevel, Module
from sirtis.common.pagination import PaginationParams
from sirtis.common.utils import request_meta
from sirtis.database import get_db

router = APIRouter(prefix="", tags=["call-centre"])

_cc_view = require_module_access(Module.call_centre, AccessLevel.view)
_cc_edit = require_module_access(Module.call_centre, AccessLevel.edit)


# ═════════════════════════════════════════════════════════════════════
# Calls
# ═════════════════════════════════════════════════════════════════════


@router.get("/calls")
async def list_calls(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search numbers, caller or client"),
    status: Optional[str] = Query(None),
    mode: Optional[str] = Query(None, description="inbound | outbound | whatsapp | walk | text"),
    is_case: Optional[bool] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
):
    result = await CallService.list_calls(
        db,
        pagination,
        search=search,
        status=status,
        mode=mode,
        is_case=is_case,
        date_from=date_from,
        date_to=date_to,
    )
    return {
        "data": [to_call_response(r).model_dump(mode="json") for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/calls", status_code=201)
async def create_call(
    body: CallCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_edit),
):
    record = await CallService.create_call(
        db, body, actor_id=current_user.id, **request_meta(request),
    )
    return {
        "data": to_call_response(record).model_dump(mode="json"),
        "message": f"Call {record.call_number} logged successfully.",
    }


@router.get("/calls/{call_id}")
async def get_call(
    call_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
):
    record = await CallService.get_call(db, call_id)
    return {"data": to_call_response(record).model_dump(mode="json")}


@router.put("/calls/{call_id}")
async def update_call(
    call_id: uuid.UUID,
    body: CallUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_edit),
):
    record = await CallService.update_call(
        db,
        call_id,
        body.model_dump(exclude_unset=True),
        actor_id=current_user.id,
        **request_meta(request),
    )
    return {
        "data": to_call_response(record).model_dump(mode="json"),
        "message": "Call updated successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Cases
# ═════════════════════════════════════════════════════════════════════


@router.get("/cases")
async def list_cases(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
    status: Optional[str] = Query(None),
    officer_id: Optional[uuid.UUID] = Query(None),
    overdue: bool = Query(False, description="Only overdue cases"),
):
    cases = await CallService.list_cases(
        db, status=status, officer_id=officer_id, overdue_only=overdue,
    )
    return {
        "data": [c.model_dump(mode="json") for c in cases],
        "meta": {
            "total": len(cases),
            "overdue": sum(1 for c in cases if c.is_overdue),
        },
    }


@router.get("/cases/{case_id}")
async def get_case(
    case_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
):
    case = await CallService.get_case(db, case_id)
    return {"data": case.model_dump(mode="json")}


@router.put("/cases/{case_id}")
async def update_case(
    case_id: uuid.UUID,
    body: CaseUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_edit),
):
    await CallService.get_case(db, case_id)
    await CallService.update_call(
        db,
        case_id,
        body.model_dump(exclude_unset=True),
        actor_id=current_user.id,
        **request_meta(request),
    )
    case = await CallService.get_case(db, case_id)
    return {"data": case.model_dump(mode="json"), "message": "Case updated successfully."}


@router.get("/cases/{case_id}/history")
async def get_case_history(
    case_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
):
    return {"data": await CallService.case_history(db, case_id)}


# ═════════════════════════════════════════════════════════════════════
# Officers / summary
# ═════════════════════════════════════════════════════════════════════


@router.get("/officers")
async def list_officers(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
):
    officers = await CallService.list_officers(db)
    return {"data": [o.model_dump(mode="json") for o in officers]}


@router.get("/summary")
async def call_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_cc_view),
):
    return {"data": await CallService.summary(db)}
