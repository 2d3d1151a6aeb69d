"""Performance router — plans and their workflow, deliverables and
activities, appraisals with workflow, bulk moves and analytics."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import get_current_user, require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, Module
from sirtis.database import get_db
from sirtis.performance.schemas import (
    ActivityCreate,
    ActivityResponse,
    AppraisalBulkRequest,
    AppraisalCreate,
    AppraisalUpdate,
    AppraisalWorkflowRequest,
    DeliverableProgress,
    PlanCreate,
    PlanSummary,
    PlanUpdate,
    WorkflowRequest,
)
from sirtis.performance.service import AppraisalService, DeliverableService, PerformancePlanService

router = APIRouter(prefix="", tags=["performance"])


# ── GET /plans — Own plans ──────────────────────────────────────────

@router.get("/plans")
async def list_my_plans(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    year: Optional[int] = Query(None, description="Filter by plan year"),
):
    plans = await PerformancePlanService.list_own(db, current_user, year)
    return {"data": [PlanSummary.model_validate(p).model_dump(mode="json") for p in plans]}


# ── GET /plans/review — Plans awaiting the caller ──────────────────

@router.get("/plans/review")
async def list_review_plans(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = Query(None, description="Filter by plan status"),
):
    plans = await PerformancePlanService.list_for_review(
        db, current_user, request.state.user_role, status,
    )
    return {"data": [PlanSummary.model_validate(p).model_dump(mode="json") for p in plans]}


# ── POST /plans — Create (or reopen draft of) own plan ─────────────

@router.post("/plans", status_code=201)
async def create_plan(
    body: PlanCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    plan, existing = await PerformancePlanService.create_plan(
        db, current_user, body.plan_year, body.plan_period,
    )
    detail = await PerformancePlanService.get_plan(
        db, plan.id, current_user, request.state.user_role,
    )
    return {
        "data": detail.model_dump(mode="json"),
        "existing": existing,
        "message": "Existing draft returned." if existing else "Performance plan created.",
    }


# ── GET /plans/{id} ─────────────────────────────────────────────────

@router.get("/plans/{plan_id}")
async def get_plan(
    plan_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await PerformancePlanService.get_plan(
        db, plan_id, current_user, request.state.user_role,
    )
    return {"data": detail.model_dump(mode="json")}


# ── PUT /plans/{id} — Replace responsibilities (draft only) ────────

@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: uuid.UUID,
    body: PlanUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = request.state.user_role
    await PerformancePlanService.replace_responsibilities(
        db, plan_id, current_user, role, body.responsibilities,
    )
    detail = await PerformancePlanService.get_plan(db, plan_id, current_user, role)
    return {"data": detail.model_dump(mode="json"), "message": "Performance plan updated."}


# ── POST /plans/{id}/workflow — Status transition ──────────────────

@router.post("/plans/{plan_id}/workflow")
async def run_workflow_action(
    plan_id: uuid.UUID,
    body: WorkflowRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await PerformancePlanService.apply_action(
        db,
        plan_id,
        current_user,
        request.state.user_role,
        body.action,
        comment=body.comment,
        reviewer_id=body.reviewer_id,
    )
    return {
        "data": detail.model_dump(mode="json"),
        "message": f"Action '{body.action}' applied.",
    }


# ═════════════════════════════════════════════════════════════════════
# Deliverables / activities
# ═════════════════════════════════════════════════════════════════════

@router.get("/deliverables/{responsibility_id}")
async def get_deliverable(
    responsibility_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await DeliverableService.get_deliverable(
        db, responsibility_id, current_user, request.state.user_role,
    )
    return {"data": detail.model_dump(mode="json")}


@router.put("/deliverables/{responsibility_id}")
async def update_deliverable_progress(
    responsibility_id: uuid.UUID,
    body: DeliverableProgress,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await DeliverableService.update_progress(
        db, responsibility_id, current_user, request.state.user_role, body.progress, body.comment,
    )
    return {"data": detail.model_dump(mode="json"), "message": "Progress updated."}


@router.get("/activities")
async def list_activities(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    plan_id: Optional[uuid.UUID] = Query(None, description="Limit to one plan"),
):
    activities = await DeliverableService.list_activities(
        db, current_user, request.state.user_role, plan_id,
    )
    return {"data": [ActivityResponse.model_validate(a).model_dump(mode="json") for a in activities]}


@router.post("/activities", status_code=201)
async def create_activity(
    body: ActivityCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    activity = await DeliverableService.create_activity(
        db, current_user, request.state.user_role, body,
    )
    return {
        "data": ActivityResponse.model_validate(activity).model_dump(mode="json"),
        "message": "Activity added.",
    }


# ═════════════════════════════════════════════════════════════════════
# Appraisals
# ═════════════════════════════════════════════════════════════════════

_hr_view = require_module_access(Module.hr, AccessLevel.view)
_hr_full = require_module_access(Module.hr, AccessLevel.full)


@router.get("/appraisals")
async def list_appraisals(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = Query(None),
    review_period: Optional[str] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
):
    items = await AppraisalService.list_appraisals(
        db,
        current_user,
        request.state.user_role,
        status=status,
        review_period=review_period,
        department_id=department_id,
    )
    return {"data": [i.model_dump(mode="json") for i in items], "meta": {"total": len(items)}}


@router.post("/appraisals", status_code=201)
async def create_appraisal(
    body: AppraisalCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await AppraisalService.create_appraisal(
        db, current_user, request.state.user_role, body,
    )
    return {"data": detail.model_dump(mode="json"), "message": "Appraisal created."}


# ── Fixed paths before /appraisals/{id} ─────────────────────────────

@router.get("/appraisals/analytics")
async def appraisal_analytics(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_hr_view),
    review_period: Optional[str] = Query(None),
):
    return {"data": await AppraisalService.analytics(db, review_period)}


@router.post("/appraisals/bulk")
async def bulk_appraisals(
    body: AppraisalBulkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_full),
):
    result = await AppraisalService.bulk(db, current_user, body)
    return {
        "data": result,
        "message": f"{len(result['succeeded'])} appraisal(s) processed, {len(result['failed'])} failed.",
    }


@router.get("/appraisals/{appraisal_id}")
async def get_appraisal(
    appraisal_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await AppraisalService.get_appraisal(
        db, appraisal_id, current_user, request.state.user_role,
    )
    return {"data": detail.model_dump(mode="json")}


@router.put("/appraisals/{appraisal_id}")
async def update_appraisal(
    appraisal_id: uuid.UUID,
    body: AppraisalUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await AppraisalService.update_appraisal(
        db, appraisal_id, current_user, request.state.user_role, body,
    )
    return {"data": detail.model_dump(mode="json"), "message": "Appraisal updated."}


@router.get("/appraisals/{appraisal_id}/workflow")
async def get_appraisal_workflow(
    appraisal_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    history = await AppraisalService.workflow_history(
        db, appraisal_id, current_user, request.state.user_role,
    )
    return {"data": history}


@router.post("/appraisals/{appraisal_id}/workflow")
async def run_appraisal_action(
    appraisal_id: uuid.UUID,
    body: AppraisalWorkflowRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = await AppraisalService.apply_action(
        db, appraisal_id, current_user, request.state.user_role, body.action, body.comment,
    )
    return {
        "data": detail.model_dump(mode="json"),
        "message": f"Action '{body.action}' applied.",
    }
