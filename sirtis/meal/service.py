"""MEAL service — form lifecycle, submissions with server-side metadata,
indicators and community feedback.
"""

from __future__ import annotations

import csv
import io
import logging
import uuid
from collections import Counter
from decimal import Decimal
from typing import Any, Optional, Sequence

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sirtis.auth.models import User
from sirtis.common.audit import apply_changes, create_audit_entry
from sirtis.common.constants import CalculationType, FeedbackStatus, FormStatus
from sirtis.common.exceptions import BadRequestException, ConflictError, NotFoundException
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.pagination import PaginatedResponse, PaginationParams, paginate
from sirtis.common.utils import client_ip, utcnow
from sirtis.meal.device import parse_device_info
from sirtis.meal.models import (
    MealFeedback,
    MealFeedbackResponse,
    MealForm,
    MealIndicator,
    MealSubmission,
)
from sirtis.meal.schemas import (
    FeedbackCreate,
    FeedbackReply,
    FormCreate,
    FormResponse,
    IndicatorCreate,
    IndicatorMapping,
    IndicatorResponse,
    SubmissionCreate,
)
from sirtis.programs.models import Project

logger = logging.getLogger(__name__)

EXPORT_BASE_COLUMNS = [
    "id",
    "form_id",
    "project_id",
    "submitted_by",
    "user_email",
    "submitted_at",
    "latitude",
    "longitude",
]


# ── Helpers ─────────────────────────────────────────────────────────

def flatten(data: Any, prefix: str = "data") -> dict[str, Any]:
    """``{"a": {"b": 1}}`` → ``{"data.a.b": 1}``; lists are kept as values."""
    flat: dict[str, Any] = {}
    if isinstance(data, dict):
        for key, value in data.items():
            flat.update(flatten(value, f"{prefix}.{key}"))
    else:
        flat[prefix] = data
    return flat


def lookup(data: dict[str, Any], field_key: str) -> Any:
    """Resolve a dotted *field_key* in submission data."""
    value: Any = data
    for part in field_key.split("."):
        if not isinstance(value, dict) or part not in value:
            raise KeyError(field_key)
        value = value[part]
    return value


def next_indicator_value(
    current: Optional[Decimal],
    observations: int,
    calculation: CalculationType,
    raw: Any,
) -> Decimal:
    """New indicator value after one observation of *raw*."""
    if calculation == CalculationType.count:
        return (current or Decimal(0)) + 1

    if isinstance(raw, bool) or raw is None or raw == "":
        raise ValueError(f"Non-numeric value {raw!r}")
    value = Decimal(str(raw))
    if not value.is_finite():
        raise ValueError(f"Non-finite value {raw!r}")

    if calculation == CalculationType.sum:
        return (current or Decimal(0)) + value
    if calculation == CalculationType.average:
        if current is None or observations <= 0:
            return value
        return (current * observations + value) / (observations + 1)
    if calculation == CalculationType.max:
        return value if current is None else max(current, value)
    if calculation == CalculationType.min:
        return value if current is None else min(current, value)
    raise ValueError(f"Unknown calculation type {calculation!r}")


def collect_metadata(request: Request, body: SubmissionCreate, form: MealForm) -> dict[str, Any]:
    """Server-side submission context, with client metadata merged over it."""
    metadata = {
        "ip_address": client_ip(request) or "Unknown",
        "location": body.location or "Unknown Location",
        "country": body.country or "Unknown",
        "region": body.region or "Unknown",
        "city": body.city or "Unknown",
        "timezone": body.timezone or "Unknown",
        "submission_source": body.submission_source or "Web Form",
        "completion_time": body.completion_time if body.completion_time is not None else "Unknown",
        "form_version": body.form_version or form.version,
        "status": "completed",
        "referer": request.headers.get("referer") or "Unknown",
        "origin": request.headers.get("origin") or "Unknown",
        "timestamp": utcnow().isoformat(),
    }
    metadata.update(body.metadata or {})
    return metadata


def form_response(form: MealForm, submission_count: int = 0) -> FormResponse:
    item = FormResponse.model_validate(form)
    if "projects" in form.__dict__:
        item.project_ids = [p.id for p in form.projects]
    item.submission_count = submission_count
    return item


def indicator_response(indicator: MealIndicator) -> IndicatorResponse:
    item = IndicatorResponse.model_validate(indicator)
    if indicator.target and indicator.current is not None:
        baseline = indicator.baseline or Decimal(0)
        span = indicator.target - baseline
        if span:
            item.progress_pct = round(float((indicator.current - baseline) / span * 100), 1)
    return item


# ═════════════════════════════════════════════════════════════════════
# FormService
# ═════════════════════════════════════════════════════════════════════


class FormService:

    @staticmethod
    async def _projects(db: AsyncSession, ids: Sequence[uuid.UUID]) -> list[Project]:
        if not ids:
            return []
        projects = (
            await db.execute(select(Project).where(Project.id.in_(set(ids))))
        ).scalars().all()
        if len(projects) != len(set(ids)):
            raise BadRequestException("One or more assigned projects do not exist.")
        return list(projects)

    @staticmethod
    async def get_form(db: AsyncSession, form_id: uuid.UUID) -> MealForm:
        result = await db.execute(
            select(MealForm)
            .where(MealForm.id == form_id)
            .options(selectinload(MealForm.projects))
            .execution_options(populate_existing=True)
        )
        form = result.scalars().first()
        if form is None:
            raise NotFoundException("MealForm", str(form_id))
        return form

    @staticmethod
    async def submission_counts(db: AsyncSession) -> dict[uuid.UUID, int]:
        rows = await db.execute(
            select(MealSubmission.form_id, func.count()).group_by(MealSubmission.form_id)
        )
        return {form_id: count for form_id, count in rows.all()}

    @staticmethod
    async def list_forms(
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        project_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> list[FormResponse]:
        query = (
            select(MealForm)
            .options(selectinload(MealForm.projects))
            .order_by(MealForm.created_at.desc())
        )
        query = apply_filters(query, MealForm, {"status": status, "project_id": project_id})
        query = apply_search(query, MealForm, search, ["name", "description"])
        forms = (await db.execute(query)).scalars().all()
        counts = await FormService.submission_counts(db)
        return [form_response(f, counts.get(f.id, 0)) for f in forms]

    @staticmethod
    async def create_form(db: AsyncSession, data: FormCreate, user: User) -> MealForm:
        form = MealForm(
            name=data.name,
            description=data.description,
            project_id=data.project_id,
            version=data.version,
            language=data.language,
            schema=data.schema_,
            status=FormStatus.draft.value,
            created_by=user.id,
        )
        form.projects = await FormService._projects(db, data.project_ids)
        db.add(form)
        await db.flush()
        await create_audit_entry(
            db,
            action="CREATE",
            resource="meal_form",
            resource_id=form.id,
            user_id=user.id,
            new_values={"name": form.name, "version": form.version},
        )
        return await FormService.get_form(db, form.id)

    @staticmethod
    async def update_form(
        db: AsyncSession,
        form_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
    ) -> MealForm:
        form = await FormService.get_form(db, form_id)
        if form.status == FormStatus.archived.value:
            raise BadRequestException("Archived forms cannot be edited.")

        project_ids = changes.pop("project_ids", None)
        if "schema_" in changes:
            changes["schema"] = changes.pop("schema_")
        if project_ids is not None:
            form.projects = await FormService._projects(db, project_ids)

        old_values, new_values = apply_changes(form, changes)
        await db.flush()
        if new_values or project_ids is not None:
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="meal_form",
                resource_id=form.id,
                user_id=user.id,
                old_values=old_values,
                new_values=new_values,
            )
        return await FormService.get_form(db, form_id)

    @staticmethod
    async def set_status(
        db: AsyncSession,
        form_id: uuid.UUID,
        target: FormStatus,
        user: User,
    ) -> MealForm:
        form = await FormService.get_form(db, form_id)
        if form.status == target.value:
            raise BadRequestException(f"Form is already {target.value}.")

        previous = form.status
        form.status = target.value
        if target == FormStatus.published:
            form.published_at = utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action=target.value.upper(),
            resource="meal_form",
            resource_id=form.id,
            user_id=user.id,
            old_values={"status": previous},
            new_values={"status": form.status},
        )
        logger.info("MEAL form %s: %s -> %s", form.id, previous, form.status)
        return await FormService.get_form(db, form_id)


# ═════════════════════════════════════════════════════════════════════
# SubmissionService
# ═════════════════════════════════════════════════════════════════════


class SubmissionService:

    @staticmethod
    async def submit(
        db: AsyncSession,
        form_id: uuid.UUID,
        body: SubmissionCreate,
        user: User,
        request: Request,
    ) -> tuple[MealSubmission, int]:
        """Store a submission; returns it with the number of indicators updated."""
        form = await FormService.get_form(db, form_id)
        if form.status != FormStatus.published.value:
            raise BadRequestException("Submissions are only accepted for published forms.")

        device_info = parse_device_info(
            request.headers.get("user-agent"),
            request.headers.get("accept-language"),
            {
                "screen_resolution": body.screen_resolution,
                "timezone": body.timezone,
                "connection_type": body.connection_type,
            },
        )
        submission = MealSubmission(
            form_id=form.id,
            project_id=body.project_id or form.project_id,
            user_id=user.id,
            user_email=user.email,
            submitted_by=user.full_name or "Anonymous",
            latitude=body.latitude,
            longitude=body.longitude,
            attachments=body.attachments,
            data=body.data,
            metadata_=collect_metadata(request, body, form),
            device_info=device_info,
        )
        db.add(submission)
        await db.flush()

        updated = 0
        for mapping in body.indicator_mappings:
            if await SubmissionService._apply_mapping(db, mapping, body.data):
                updated += 1
        return submission, updated

    @staticmethod
    async def _apply_mapping(
        db: AsyncSession,
        mapping: IndicatorMapping,
        data: dict[str, Any],
    ) -> bool:
        """Fold one mapped field into its indicator; failures are logged and skipped."""
        indicator = await db.get(MealIndicator, mapping.indicator_id)
        if indicator is None:
            logger.warning("Indicator mapping skipped: indicator %s not found", mapping.indicator_id)
            return False
        try:
            raw = lookup(data, mapping.field_key) if mapping.calculation_type != CalculationType.count else None
            new_value = next_indicator_value(
                indicator.current,
                indicator.observation_count or 0,
                mapping.calculation_type,
                raw,
            )
        except (KeyError, ValueError, ArithmeticError) as exc:
            logger.warning(
                "Indicator mapping skipped for %s (%s): %s",
                indicator.code, mapping.field_key, exc,
            )
            return False

        code = indicator.code
        try:
            # Savepoint: a rejected write rolls back this mapping only.
            async with db.begin_nested():
                indicator.current = new_value
                indicator.observation_count = (indicator.observation_count or 0) + 1
                await db.flush()
        except SQLAlchemyError as exc:
            logger.warning(
                "Indicator mapping skipped for %s (%s): write failed: %s",
                code, mapping.field_key, exc,
            )
            return False
        return True

    @staticmethod
    async def list_submissions(
        db: AsyncSession,
        form_id: uuid.UUID,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        await FormService.get_form(db, form_id)
        query = (
            select(MealSubmission)
            .where(MealSubmission.form_id == form_id)
            .order_by(MealSubmission.submitted_at.desc())
        )
        return await paginate(db, query, pagination, model=MealSubmission)

    @staticmethod
    async def export_rows(db: AsyncSession, form_id: uuid.UUID) -> tuple[list[str], list[dict[str, Any]]]:
        """Submissions flattened to one dict per row, plus the column order."""
        await FormService.get_form(db, form_id)
        submissions = (
            await db.execute(
                select(MealSubmission)
                .where(MealSubmission.form_id == form_id)
                .order_by(MealSubmission.submitted_at.asc())
            )
        ).scalars().all()

        rows: list[dict[str, Any]] = []
        data_keys: set[str] = set()
        for s in submissions:
            flat = flatten(s.data or {})
            data_keys.update(flat)
            rows.append(
                {
                    "id": str(s.id),
                    "form_id": str(s.form_id),
                    "project_id": str(s.project_id) if s.project_id else None,
                    "submitted_by": s.submitted_by,
                    "user_email": s.user_email,
                    "submitted_at": s.submitted_at.isoformat() if s.submitted_at else None,
                    "latitude": s.latitude,
                    "longitude": s.longitude,
                    **flat,
                }
            )
        return EXPORT_BASE_COLUMNS + sorted(data_keys), rows

    @staticmethod
    def to_csv(columns: list[str], rows: list[dict[str, Any]]) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
        return output.getvalue()

    @staticmethod
    async def analytics(db: AsyncSession) -> dict[str, Any]:
        forms = (await db.execute(select(MealForm))).scalars().all()
        submissions = (await db.execute(select(MealSubmission))).scalars().all()

        total = len(submissions)
        completed = sum(1 for s in submissions if (s.metadata_ or {}).get("status") == "completed")
        by_region = Counter((s.metadata_ or {}).get("region") or "Unknown" for s in submissions)
        per_form = Counter(s.form_id for s in submissions)

        return {
            "total_submissions": total,
            "total_forms": len(forms),
            "active_forms": sum(1 for f in forms if f.status == FormStatus.published.value),
            "completion_rate": round(completed / total * 100, 1) if total else 0.0,
            "submissions_by_region": dict(by_region),
            "submissions_by_form": [
                {"form_id": str(f.id), "name": f.name, "count": per_form.get(f.id, 0)}
                for f in sorted(forms, key=lambda f: per_form.get(f.id, 0), reverse=True)
            ],
        }


# ═════════════════════════════════════════════════════════════════════
# IndicatorService
# ═════════════════════════════════════════════════════════════════════


class IndicatorService:

    @staticmethod
    async def list_indicators(
        db: AsyncSession,
        project_id: Optional[uuid.UUID] = None,
    ) -> Sequence[MealIndicator]:
        query = select(MealIndicator).order_by(MealIndicator.code)
        query = apply_filters(query, MealIndicator, {"project_id": project_id})
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def create_indicator(db: AsyncSession, data: IndicatorCreate, user: User) -> MealIndicator:
        existing = await db.execute(select(MealIndicator.id).where(MealIndicator.code == data.code))
        if existing.scalar() is not None:
            raise ConflictError("code", data.code)
        values = data.model_dump()
        for field in ("baseline", "target", "current"):
            if values[field] is not None:
                values[field] = Decimal(str(values[field]))
        indicator = MealIndicator(**values)
        db.add(indicator)
        await db.flush()
        await create_audit_entry(
            db,
            action="CREATE",
            resource="meal_indicator",
            resource_id=indicator.id,
            user_id=user.id,
            new_values=data.model_dump(),
        )
        return indicator

    @staticmethod
    async def update_indicator(
        db: AsyncSession,
        indicator_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
    ) -> MealIndicator:
        indicator = await db.get(MealIndicator, indicator_id)
        if indicator is None:
            raise NotFoundException("MealIndicator", str(indicator_id))
        for field in ("baseline", "target", "current"):
            if changes.get(field) is not None:
                changes[field] = Decimal(str(changes[field]))
        old_values, new_values = apply_changes(indicator, changes)
        if new_values:
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="meal_indicator",
                resource_id=indicator.id,
                user_id=user.id,
                old_values=old_values,
                new_values=new_values,
            )
        return indicator


# ═════════════════════════════════════════════════════════════════════
# FeedbackService
# ═════════════════════════════════════════════════════════════════════

ANONYMOUS = "Anonymous"
_CLOSED_FEEDBACK = {FeedbackStatus.resolved.value, FeedbackStatus.closed.value}


class FeedbackService:

    @staticmethod
    async def get_feedback(db: AsyncSession, feedback_id: uuid.UUID) -> MealFeedback:
        result = await db.execute(
            select(MealFeedback)
            .where(MealFeedback.id == feedback_id)
            .options(selectinload(MealFeedback.responses))
            .execution_options(populate_existing=True)
        )
        feedback = result.scalars().first()
        if feedback is None:
            raise NotFoundException("MealFeedback", str(feedback_id))
        return feedback

    @staticmethod
    async def list_feedback(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        type: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        project: Optional[str] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = (
            select(MealFeedback)
            .options(selectinload(MealFeedback.responses))
            .order_by(MealFeedback.created_at.desc())
        )
        query = apply_filters(
            query,
            MealFeedback,
            {"type": type, "status": status, "priority": priority, "project__ilike": project},
        )
        query = apply_search(query, MealFeedback, search, ["title", "description", "submitted_by"])
        return await paginate(db, query, pagination, model=MealFeedback)

    @staticmethod
    async def submit(db: AsyncSession, data: FeedbackCreate, user: User) -> MealFeedback:
        """Record feedback; anonymous submissions keep no link to the account."""
        feedback = MealFeedback(
            **data.model_dump(mode="json"),
            submitted_by=ANONYMOUS if data.is_anonymous else user.full_name,
            submitted_by_id=None if data.is_anonymous else user.id,
        )
        db.add(feedback)
        await db.flush()
        logger.info("MEAL feedback %s received (%s, %s)", feedback.id, feedback.type, feedback.priority)
        return await FeedbackService.get_feedback(db, feedback.id)

    @staticmethod
    async def update(
        db: AsyncSession,
        feedback_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
    ) -> MealFeedback:
        feedback = await FeedbackService.get_feedback(db, feedback_id)
        old_values, new_values = apply_changes(feedback, changes)
        if "status" in new_values:
            if feedback.status in _CLOSED_FEEDBACK:
                feedback.resolved_at = feedback.resolved_at or utcnow()
            else:
                feedback.resolved_at = None
        if new_values:
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="meal_feedback",
                resource_id=feedback.id,
                user_id=user.id,
                old_values=old_values,
                new_values=new_values,
            )
        return await FeedbackService.get_feedback(db, feedback_id)

    @staticmethod
    async def reply(
        db: AsyncSession,
        feedback_id: uuid.UUID,
        data: FeedbackReply,
        user: User,
    ) -> MealFeedback:
        """Add a response; the first one moves open feedback to in_progress."""
        feedback = await FeedbackService.get_feedback(db, feedback_id)
        db.add(
            MealFeedbackResponse(
                feedback_id=feedback.id,
                responded_by_id=user.id,
                responded_by=user.full_name,
                message=data.message,
                is_internal=data.is_internal,
            )
        )
        if feedback.status == FeedbackStatus.open.value:
            feedback.status = FeedbackStatus.in_progress.value
        await db.flush()
        return await FeedbackService.get_feedback(db, feedback_id)
