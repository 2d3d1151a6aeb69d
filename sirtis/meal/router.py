"""MEAL router — forms, submissions, indicators, analytics, export and feedback.

Routes:
    /forms                      — List, create forms
    /forms/{id}                 — Get, update a form
    /forms/{id}/publish         — Open a form for submissions
    /forms/{id}/archive         — Retire a form
    /forms/{id}/submissions     — List, submit
    /forms/{id}/export          — JSON or CSV export
    /indicators                 — List, create indicators
    /indicators/{id}            — Update an indicator
    /analytics                  — Submission headline figures
    /feedback                   — List feedback, submit (any signed-in user)
    /feedback/{id}              — Triage, assign, resolve
    /feedback/{id}/responses    — Reply to feedback
"""


import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import get_current_user, require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, FeedbackStatus, FeedbackType, FormStatus, Module, Priority
from sirtis.common.pagination import PaginationParams
from sirtis.database import get_db
from sirtis.meal.schemas import (
    FeedbackCreate,
    FeedbackReply,
    FeedbackResponse,
    FeedbackUpdate,
    FormCreate,
    FormUpdate,
    IndicatorCreate,
    IndicatorUpdate,
    SubmissionCreate,
    SubmissionResponse,
)
from sirtis.meal.service import (
    FeedbackService,
    FormService,
    IndicatorService,
    SubmissionService,
    form_response,
    indicator_response,
)

router = APIRouter(prefix="", tags=["meal"])

_meal_view = require_module_access(Module.meal, AccessLevel.view)
_meal_edit = require_module_access(Module.meal, AccessLevel.edit)


def _form_json(form, count: int = 0) -> dict:
    return form_response(form, count).model_dump(mode="json", by_alias=True)


# ═════════════════════════════════════════════════════════════════════
# Forms
# ═════════════════════════════════════════════════════════════════════


@router.get("/forms")
async def list_forms(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
    status: Optional[FormStatus] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
):
    forms = await FormService.list_forms(db, status=status, project_id=project_id, search=search)
    return {"data": [f.model_dump(mode="json", by_alias=True) for f in forms]}


@router.post("/forms", status_code=201)
async def create_form(
    body: FormCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    form = await FormService.create_form(db, body, current_user)
    return {"data": _form_json(form), "message": "Form created successfully."}


@router.get("/forms/{form_id}")
async def get_form(
    form_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # Readable by any signed-in user so published forms can be filled in.
    form = await FormService.get_form(db, form_id)
    counts = await FormService.submission_counts(db)
    return {"data": _form_json(form, counts.get(form.id, 0))}


@router.put("/forms/{form_id}")
async def update_form(
    form_id: uuid.UUID,
    body: FormUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    form = await FormService.update_form(
        db, form_id, body.model_dump(exclude_unset=True), current_user,
    )
    return {"data": _form_json(form), "message": "Form updated successfully."}


@router.post("/forms/{form_id}/publish")
async def publish_form(
    form_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    form = await FormService.set_status(db, form_id, FormStatus.published, current_user)
    return {"data": _form_json(form), "message": "Form published."}


@router.post("/forms/{form_id}/archive")
async def archive_form(
    form_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    form = await FormService.set_status(db, form_id, FormStatus.archived, current_user)
    return {"data": _form_json(form), "message": "Form archived."}


# ═════════════════════════════════════════════════════════════════════
# Submissions
# ═════════════════════════════════════════════════════════════════════


@router.post("/forms/{form_id}/submissions", status_code=201)
async def submit_form(
    form_id: uuid.UUID,
    body: SubmissionCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    submission, updated = await SubmissionService.submit(db, form_id, body, current_user, request)
    return {
        "data": SubmissionResponse.model_validate(submission).model_dump(mode="json"),
        "indicators_updated": updated,
        "message": "Submission recorded.",
    }


@router.get("/forms/{form_id}/submissions")
async def list_submissions(
    form_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
    pagination: PaginationParams = Depends(),
):
    result = await SubmissionService.list_submissions(db, form_id, pagination)
    return {
        "data": [SubmissionResponse.model_validate(s).model_dump(mode="json") for s in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/forms/{form_id}/export")
async def export_submissions(
    form_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
    format: Literal["json", "csv"] = Query("json"),
):
    columns, rows = await SubmissionService.export_rows(db, form_id)
    if format == "json":
        return {"data": rows, "columns": columns, "meta": {"total": len(rows)}}

    filename = f"meal_{form_id}_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.csv"
    return StreamingResponse(
        iter([SubmissionService.to_csv(columns, rows)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# ═════════════════════════════════════════════════════════════════════
# Indicators / analytics
# ═════════════════════════════════════════════════════════════════════


@router.get("/indicators")
async def list_indicators(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
    project_id: Optional[uuid.UUID] = Query(None),
):
    indicators = await IndicatorService.list_indicators(db, project_id)
    return {"data": [indicator_response(i).model_dump(mode="json") for i in indicators]}


@router.post("/indicators", status_code=201)
async def create_indicator(
    body: IndicatorCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    indicator = await IndicatorService.create_indicator(db, body, current_user)
    return {
        "data": indicator_response(indicator).model_dump(mode="json"),
        "message": "Indicator created successfully.",
    }


@router.put("/indicators/{indicator_id}")
async def update_indicator(
    indicator_id: uuid.UUID,
    body: IndicatorUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    indicator = await IndicatorService.update_indicator(
        db, indicator_id, body.model_dump(exclude_unset=True), current_user,
    )
    return {
        "data": indicator_response(indicator).model_dump(mode="json"),
        "message": "Indicator updated successfully.",
    }


@router.get("/analytics")
async def meal_analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
):
    return {"data": await SubmissionService.analytics(db)}


# ═════════════════════════════════════════════════════════════════════
# Feedback
# ═════════════════════════════════════════════════════════════════════


@router.get("/feedback")
async def list_feedback(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_view),
    pagination: PaginationParams = Depends(),
    type: Optional[FeedbackType] = Query(None),
    status: Optional[FeedbackStatus] = Query(None),
    priority: Optional[Priority] = Query(None),
    project: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search title, description or submitter"),
):
    result = await FeedbackService.list_feedback(
        db,
        pagination,
        type=type,
        status=status,
        priority=priority,
        project=project,
        search=search,
    )
    return {
        "data": [FeedbackResponse.model_validate(f).model_dump(mode="json") for f in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/feedback", status_code=201)
async def submit_feedback(
    body: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Open to every signed-in user."""
    feedback = await FeedbackService.submit(db, body, current_user)
    return {
        "data": FeedbackResponse.model_validate(feedback).model_dump(mode="json"),
        "message": "Feedback submitted. Thank you.",
    }


@router.put("/feedback/{feedback_id}")
async def update_feedback(
    feedback_id: uuid.UUID,
    body: FeedbackUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    feedback = await FeedbackService.update(
        db, feedback_id, body.model_dump(exclude_unset=True), current_user,
    )
    return {
        "data": FeedbackResponse.model_validate(feedback).model_dump(mode="json"),
        "message": "Feedback updated.",
    }


@router.post("/feedback/{feedback_id}/responses", status_code=201)
async def reply_to_feedback(
    feedback_id: uuid.UUID,
    body: FeedbackReply,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_meal_edit),
):
    feedback = await FeedbackService.reply(db, feedback_id, body, current_user)
    return {
        "data": FeedbackResponse.model_validate(feedback).model_dump(mode="json"),
        "message": "Response added.",
    }
