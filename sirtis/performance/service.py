"""Performance services — plans and their workflow, deliverables and
activities, appraisals with their own workflow, bulk moves and analytics.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sirtis.auth.models import User
from sirtis.common.audit import create_audit_entry
from sirtis.common.constants import (
    RATING_LABELS,
    AccessLevel,
    AppraisalStatus,
    Module,
    PlanActivityStatus,
    PlanStatus,
    UserRole,
    has_access,
)
from sirtis.common.exceptions import (
    BadRequestException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from sirtis.common.utils import as_utc, utcnow
from sirtis.config import settings
from sirtis.hr.models import Department, Employee
from sirtis.performance import workflow
from sirtis.performance.models import (
    PerformanceAppraisal,
    PerformancePlan,
    PlanActivity,
    PlanComment,
    PlanResponsibility,
)
from sirtis.performance.schemas import (
    ActivityCreate,
    AppraisalBulkAction,
    AppraisalBulkRequest,
    AppraisalCreate,
    AppraisalResponse,
    AppraisalUpdate,
    DeliverableResponse,
    PlanDetail,
    ResponsibilityIn,
)
from sirtis.performance.workflow import Actor

logger = logging.getLogger(__name__)

# (description, weight) pairs; each set adds up to 100.
_LEADERSHIP_RESPONSIBILITIES = [
    ("Lead and develop team members effectively", 30),
    ("Achieve departmental goals and objectives", 25),
    ("Manage resources efficiently and effectively", 20),
    ("Foster positive team culture and collaboration", 15),
    ("Drive continuous improvement initiatives", 10),
]
_SENIOR_RESPONSIBILITIES = [
    ("Deliver complex technical/professional solutions", 30),
    ("Mentor junior staff and share knowledge", 20),
    ("Lead project initiatives and deliverables", 25),
    ("Maintain expert-level competency in field", 15),
    ("Support strategic decision-making processes", 10),
]
_COMMON_RESPONSIBILITIES = [
    ("Deliver high-quality work outputs within agreed timelines", 25),
    ("Collaborate effectively with team members and stakeholders", 20),
    ("Maintain professional standards and organizational values", 15),
    ("Continuously develop skills and knowledge relevant to role", 15),
    ("Support organizational objectives and initiatives", 25),
]


def default_responsibilities(position: Optional[str]) -> list[tuple[str, int]]:
    """Pick the starting responsibility set from the job title."""
    title = (position or "").lower()
    if "manager" in title or "supervisor" in title:
        return _LEADERSHIP_RESPONSIBILITIES
    if "senior" in title:
        return _SENIOR_RESPONSIBILITIES
    return _COMMON_RESPONSIBILITIES


def _is_hr(role: UserRole) -> bool:
    return has_access(role, Module.hr, AccessLevel.full)


class PerformancePlanService:

    # ── Loading / access ────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, plan_id: uuid.UUID) -> PerformancePlan:
        result = await db.execute(
            select(PerformancePlan)
            .where(PerformancePlan.id == plan_id)
            .options(
                selectinload(PerformancePlan.responsibilities),
                selectinload(PerformancePlan.comments),
            )
            .execution_options(populate_existing=True)
        )
        plan = result.scalars().first()
        if plan is None:
            raise NotFoundException("PerformancePlan", str(plan_id))
        return plan

    @staticmethod
    async def actors_for(
        db: AsyncSession,
        plan: PerformancePlan,
        user: User,
        role: UserRole,
    ) -> tuple[set[Actor], Employee]:
        employee = await db.get(Employee, plan.employee_id)
        actors: set[Actor] = set()
        if employee is not None and employee.user_id == user.id:
            actors.add(Actor.owner)
        if plan.supervisor_id == user.id:
            actors.add(Actor.supervisor)
        if plan.reviewer_id == user.id:
            actors.add(Actor.reviewer)
        if _is_hr(role):
            actors.add(Actor.hr)
        return actors, employee

    @staticmethod
    async def get_plan(
        db: AsyncSession,
        plan_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> PlanDetail:
        plan = await PerformancePlanService._load(db, plan_id)
        actors, employee = await PerformancePlanService.actors_for(db, plan, user, role)
        if not actors:
            raise ForbiddenException(detail="You are not a party to this performance plan.")
        return PerformancePlanService._detail(plan, employee, actors)

    @staticmethod
    def _detail(plan: PerformancePlan, employee: Optional[Employee], actors: set[Actor]) -> PlanDetail:
        detail = PlanDetail.model_validate(plan)
        detail.employee_name = employee.full_name if employee else None
        detail.next_actions = workflow.next_actions(PlanStatus(plan.status), actors)
        return detail

    # ── Listing ─────────────────────────────────────────────────────

    @staticmethod
    async def list_own(
        db: AsyncSession,
        user: User,
        year: Optional[int] = None,
    ) -> Sequence[PerformancePlan]:
        query = (
            select(PerformancePlan)
            .join(Employee, Employee.id == PerformancePlan.employee_id)
            .where(Employee.user_id == user.id)
            .order_by(PerformancePlan.plan_year.desc(), PerformancePlan.created_at.desc())
        )
        if year is not None:
            query = query.where(PerformancePlan.plan_year == year)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def list_for_review(
        db: AsyncSession,
        user: User,
        role: UserRole,
        status: Optional[str] = None,
    ) -> Sequence[PerformancePlan]:
        """Plans the caller supervises or reviews; HR sees every plan."""
        query = select(PerformancePlan).order_by(PerformancePlan.updated_at.desc())
        if not _is_hr(role):
            query = query.where(
                or_(
                    PerformancePlan.supervisor_id == user.id,
                    PerformancePlan.reviewer_id == user.id,
                )
            )
        if status:
            query = query.where(PerformancePlan.status == status)
        return (await db.execute(query)).scalars().all()

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_plan(
        db: AsyncSession,
        user: User,
        plan_year: int,
        plan_period: str,
    ) -> tuple[PerformancePlan, bool]:
        """Create (or return the existing draft of) the caller's plan.

        Returns ``(plan, existing)``.
        """
        employee = (
            await db.execute(select(Employee).where(Employee.user_id == user.id))
        ).scalars().first()
        if employee is None:
            raise BadRequestException("No employee record is linked to your account.")
        if employee.supervisor_id is None:
            raise BadRequestException("You must have a supervisor before creating a performance plan.")
        supervisor = await db.get(Employee, employee.supervisor_id)
        if supervisor is None or supervisor.user_id is None:
            raise BadRequestException("Your supervisor does not have a user account.")

        existing = (
            await db.execute(
                select(PerformancePlan).where(
                    PerformancePlan.employee_id == employee.id,
                    PerformancePlan.plan_year == plan_year,
                    PerformancePlan.plan_period == plan_period,
                )
            )
        ).scalars().first()
        if existing is not None:
            if existing.status == PlanStatus.draft.value:
                return existing, True
            raise BadRequestException(
                f"A {plan_period} plan for {plan_year} has already been submitted."
            )

        plan = PerformancePlan(
            employee_id=employee.id,
            supervisor_id=supervisor.user_id,
            plan_year=plan_year,
            plan_period=plan_period,
            status=PlanStatus.draft.value,
        )
        db.add(plan)
        await db.flush()

        for i, (description, weight) in enumerate(default_responsibilities(employee.position)):
            db.add(
                PlanResponsibility(
                    plan_id=plan.id,
                    position=i,
                    title=f"Key Responsibility {i + 1}",
                    description=description,
                    weight=weight,
                )
            )
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE",
            resource="performance_plan",
            resource_id=plan.id,
            user_id=user.id,
            new_values={"plan_year": plan_year, "plan_period": plan_period},
        )
        logger.info("Performance plan %s created for employee %s", plan.id, employee.id)
        return plan, False

    # ── Edit responsibilities ───────────────────────────────────────

    @staticmethod
    async def replace_responsibilities(
        db: AsyncSession,
        plan_id: uuid.UUID,
        user: User,
        role: UserRole,
        items: list[ResponsibilityIn],
    ) -> PerformancePlan:
        plan = await PerformancePlanService._load(db, plan_id)
        actors, _ = await PerformancePlanService.actors_for(db, plan, user, role)
        if Actor.owner not in actors:
            raise ForbiddenException(detail="Only the plan owner may edit responsibilities.")
        if plan.status != PlanStatus.draft.value:
            raise BadRequestException("Responsibilities can only be edited while the plan is a draft.")

        total = sum(item.weight for item in items)
        if total != 100:
            raise ValidationException(
                {"responsibilities": [f"Weights must add up to 100 (got {total})."]}
            )

        plan.responsibilities.clear()
        await db.flush()
        for i, item in enumerate(items):
            plan.responsibilities.append(
                PlanResponsibility(
                    position=i,
                    title=item.title,
                    description=item.description,
                    weight=item.weight,
                )
            )
        await db.flush()
        return plan

    # ── Workflow ────────────────────────────────────────────────────

    @staticmethod
    async def apply_action(
        db: AsyncSession,
        plan_id: uuid.UUID,
        user: User,
        role: UserRole,
        action: str,
        *,
        comment: Optional[str] = None,
        reviewer_id: Optional[uuid.UUID] = None,
    ) -> PlanDetail:
        """Run one workflow action; the status change and its comment share the request transaction."""
        plan = await PerformancePlanService._load(db, plan_id)
        actors, employee = await PerformancePlanService.actors_for(db, plan, user, role)
        previous = PlanStatus(plan.status)
        transition = workflow.resolve(action, previous, actors)

        if transition.needs_reviewer:
            if reviewer_id is None:
                raise ValidationException({"reviewer_id": ["A reviewer is required."]})
            reviewer = await db.get(User, reviewer_id)
            if reviewer is None or not reviewer.is_active:
                raise BadRequestException("Selected reviewer is not a valid active user.")
            if employee is not None and reviewer.id == employee.user_id:
                raise BadRequestException("An employee cannot review their own plan.")
            plan.reviewer_id = reviewer.id

        if transition.target is not None:
            plan.status = transition.target.value
        if transition.stamp:
            setattr(plan, transition.stamp, utcnow())
        if transition.comment_field and comment:
            setattr(plan, transition.comment_field, comment)

        db.add(
            PlanComment(
                plan_id=plan.id,
                user_id=user.id,
                comment=comment or f"{action.replace('_', ' ')} by {user.full_name}",
                comment_type=transition.comment_type,
            )
        )
        await db.flush()

        if transition.target is not None:
            await create_audit_entry(
                db,
                action=action.upper(),
                resource="performance_plan",
                resource_id=plan.id,
                user_id=user.id,
                old_values={"status": previous.value},
                new_values={"status": plan.status},
            )
        logger.info("Plan %s: %s by %s (%s -> %s)", plan.id, action, user.id, previous.value, plan.status)

        plan = await PerformancePlanService._load(db, plan_id)
        # Parties may have changed (reviewer assignment).
        actors, employee = await PerformancePlanService.actors_for(db, plan, user, role)
        return PerformancePlanService._detail(plan, employee, actors)


# ═════════════════════════════════════════════════════════════════════
# Deliverables and activities
# ═════════════════════════════════════════════════════════════════════

# Parties who may log work against a plan; reviewers only read it.
_CONTRIBUTORS = {Actor.owner, Actor.supervisor, Actor.hr}


def activity_status_for(progress: int) -> PlanActivityStatus:
    if progress >= 100:
        return PlanActivityStatus.completed
    if progress > 0:
        return PlanActivityStatus.in_progress
    return PlanActivityStatus.pending


class DeliverableService:

    @staticmethod
    async def _load(db: AsyncSession, responsibility_id: uuid.UUID) -> PlanResponsibility:
        result = await db.execute(
            select(PlanResponsibility)
            .where(PlanResponsibility.id == responsibility_id)
            .options(selectinload(PlanResponsibility.activities))
            .execution_options(populate_existing=True)
        )
        responsibility = result.scalars().first()
        if responsibility is None:
            raise NotFoundException("Deliverable", str(responsibility_id))
        return responsibility

    @staticmethod
    async def _actors(
        db: AsyncSession,
        plan_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> set[Actor]:
        plan = await db.get(PerformancePlan, plan_id)
        if plan is None:
            raise NotFoundException("PerformancePlan", str(plan_id))
        actors, _ = await PerformancePlanService.actors_for(db, plan, user, role)
        if not actors:
            raise ForbiddenException(detail="You are not a party to this performance plan.")
        return actors

    @staticmethod
    def _detail(responsibility: PlanResponsibility) -> DeliverableResponse:
        detail = DeliverableResponse.model_validate(responsibility)
        activities = responsibility.activities
        if activities:
            done = sum(1 for a in activities if a.status == PlanActivityStatus.completed.value)
            detail.progress = round(100 * done / len(activities))
            detail.current_update = activities[0].description
        return detail

    @staticmethod
    async def get_deliverable(
        db: AsyncSession,
        responsibility_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> DeliverableResponse:
        responsibility = await DeliverableService._load(db, responsibility_id)
        await DeliverableService._actors(db, responsibility.plan_id, user, role)
        return DeliverableService._detail(responsibility)

    @staticmethod
    async def update_progress(
        db: AsyncSession,
        responsibility_id: uuid.UUID,
        user: User,
        role: UserRole,
        progress: int,
        comment: Optional[str] = None,
    ) -> DeliverableResponse:
        """Record a progress update as a new activity on the deliverable."""
        responsibility = await DeliverableService._load(db, responsibility_id)
        actors = await DeliverableService._actors(db, responsibility.plan_id, user, role)
        if not actors & _CONTRIBUTORS:
            raise ForbiddenException(detail="Reviewers cannot update deliverables.")

        status = activity_status_for(progress)
        db.add(
            PlanActivity(
                responsibility_id=responsibility.id,
                title=f"Progress Update - {progress}%",
                description=comment,
                status=status.value,
                progress=progress,
                completed_at=utcnow() if status == PlanActivityStatus.completed else None,
                created_by=user.id,
            )
        )
        await db.flush()
        logger.info("Deliverable %s at %d%% (by %s)", responsibility.id, progress, user.id)
        return DeliverableService._detail(await DeliverableService._load(db, responsibility_id))

    @staticmethod
    async def list_activities(
        db: AsyncSession,
        user: User,
        role: UserRole,
        plan_id: Optional[uuid.UUID] = None,
    ) -> Sequence[PlanActivity]:
        """Activities of one plan, or of all the caller's own plans."""
        query = (
            select(PlanActivity)
            .join(PlanResponsibility, PlanResponsibility.id == PlanActivity.responsibility_id)
            .order_by(PlanActivity.created_at.desc())
        )
        if plan_id is not None:
            await DeliverableService._actors(db, plan_id, user, role)
            query = query.where(PlanResponsibility.plan_id == plan_id)
        else:
            query = (
                query.join(PerformancePlan, PerformancePlan.id == PlanResponsibility.plan_id)
                .join(Employee, Employee.id == PerformancePlan.employee_id)
                .where(Employee.user_id == user.id)
            )
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def create_activity(
        db: AsyncSession,
        user: User,
        role: UserRole,
        data: ActivityCreate,
    ) -> PlanActivity:
        responsibility = await DeliverableService._load(db, data.responsibility_id)
        actors = await DeliverableService._actors(db, responsibility.plan_id, user, role)
        if not actors & _CONTRIBUTORS:
            raise ForbiddenException(detail="Reviewers cannot add activities.")

        activity = PlanActivity(
            responsibility_id=responsibility.id,
            title=data.title,
            description=data.description,
            status=data.status.value,
            due_date=data.due_date,
            completed_at=utcnow() if data.status == PlanActivityStatus.completed else None,
            created_by=user.id,
        )
        db.add(activity)
        await db.flush()
        return activity


# ═════════════════════════════════════════════════════════════════════
# Appraisals
# ═════════════════════════════════════════════════════════════════════

_OWNER_FIELDS = {"self_assessment", "achievements", "goals", "development_plan"}
_RATER_FIELDS = {"performance_areas", "strengths", "areas_for_improvement", "reviewer_id", "due_date"}
_OWNER_EDITABLE = {AppraisalStatus.draft.value, AppraisalStatus.revision_requested.value}
_IN_REVIEW = {AppraisalStatus.submitted.value, AppraisalStatus.reviewer_assessment.value}


def overall_rating(areas: Optional[list[dict]]) -> Optional[Decimal]:
    """Weight-averaged rating of the rated areas, to two places.

    Falls back to a plain mean when every rated area has weight 0.
    """
    rated = [a for a in areas or [] if a.get("rating")]
    if not rated:
        return None
    total_weight = sum(a.get("weight") or 0 for a in rated)
    if total_weight:
        value = Decimal(sum(a["rating"] * (a.get("weight") or 0) for a in rated)) / total_weight
    else:
        value = Decimal(sum(a["rating"] for a in rated)) / len(rated)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def rating_band(rating: Decimal) -> int:
    band = int(Decimal(rating).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(5, max(1, band))


def rating_label(rating: Optional[Decimal]) -> Optional[str]:
    if rating is None:
        return None
    return RATING_LABELS[rating_band(rating)]


def completion_percentage(appraisal: PerformanceAppraisal) -> int:
    """Five checkpoints, 20% each."""
    comments = appraisal.comments or []
    checks = (
        bool(appraisal.self_assessment),
        any(c.get("role") == Actor.supervisor.value for c in comments),
        bool(appraisal.goals),
        appraisal.overall_rating is not None,
        appraisal.status != AppraisalStatus.draft.value,
    )
    return 20 * sum(checks)


class AppraisalService:

    @staticmethod
    async def _load(db: AsyncSession, appraisal_id: uuid.UUID) -> PerformanceAppraisal:
        result = await db.execute(
            select(PerformanceAppraisal)
            .where(PerformanceAppraisal.id == appraisal_id)
            .execution_options(populate_existing=True)
        )
        appraisal = result.scalars().first()
        if appraisal is None:
            raise NotFoundException("PerformanceAppraisal", str(appraisal_id))
        return appraisal

    @staticmethod
    async def actors_for(
        db: AsyncSession,
        appraisal: PerformanceAppraisal,
        user: User,
        role: UserRole,
    ) -> tuple[set[Actor], Optional[Employee]]:
        employee = await db.get(Employee, appraisal.employee_id)
        actors: set[Actor] = set()
        if employee is not None and employee.user_id == user.id:
            actors.add(Actor.owner)
        if appraisal.supervisor_id == user.id:
            actors.add(Actor.supervisor)
        if appraisal.reviewer_id == user.id:
            actors.add(Actor.reviewer)
        if _is_hr(role):
            actors.add(Actor.hr)
        return actors, employee

    @staticmethod
    def _detail(
        appraisal: PerformanceAppraisal,
        employee: Optional[Employee],
        actors: set[Actor],
    ) -> AppraisalResponse:
        detail = AppraisalResponse.model_validate(appraisal)
        detail.employee_name = employee.full_name if employee else None
        detail.rating_label = rating_label(appraisal.overall_rating)
        detail.completion_percentage = completion_percentage(appraisal)
        detail.next_actions = workflow.next_actions(
            AppraisalStatus(appraisal.status), actors, workflow.APPRAISAL_TRANSITIONS,
        )
        return detail

    @staticmethod
    async def _party_view(
        db: AsyncSession,
        appraisal_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> tuple[PerformanceAppraisal, set[Actor], Optional[Employee]]:
        appraisal = await AppraisalService._load(db, appraisal_id)
        actors, employee = await AppraisalService.actors_for(db, appraisal, user, role)
        if not actors:
            raise ForbiddenException(detail="You are not a party to this appraisal.")
        return appraisal, actors, employee

    @staticmethod
    async def get_appraisal(
        db: AsyncSession,
        appraisal_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> AppraisalResponse:
        appraisal, actors, employee = await AppraisalService._party_view(db, appraisal_id, user, role)
        return AppraisalService._detail(appraisal, employee, actors)

    # ── Listing ─────────────────────────────────────────────────────

    @staticmethod
    async def list_appraisals(
        db: AsyncSession,
        user: User,
        role: UserRole,
        *,
        status: Optional[str] = None,
        review_period: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[AppraisalResponse]:
        """HR sees every appraisal; everyone else those they own, supervise or review."""
        query = (
            select(PerformanceAppraisal, Employee)
            .join(Employee, Employee.id == PerformanceAppraisal.employee_id)
            .order_by(PerformanceAppraisal.created_at.desc())
        )
        if not _is_hr(role):
            query = query.where(
                or_(
                    Employee.user_id == user.id,
                    PerformanceAppraisal.supervisor_id == user.id,
                    PerformanceAppraisal.reviewer_id == user.id,
                )
            )
        if status:
            query = query.where(PerformanceAppraisal.status == status)
        if review_period:
            query = query.where(PerformanceAppraisal.review_period == review_period)
        if department_id:
            query = query.where(Employee.department_id == department_id)

        items = []
        for appraisal, employee in (await db.execute(query)).all():
            actors, _ = await AppraisalService.actors_for(db, appraisal, user, role)
            items.append(AppraisalService._detail(appraisal, employee, actors))
        return items

    # ── Create / update ─────────────────────────────────────────────

    @staticmethod
    async def create_appraisal(
        db: AsyncSession,
        user: User,
        role: UserRole,
        data: AppraisalCreate,
    ) -> AppraisalResponse:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(data.employee_id))

        supervisor_user_id = None
        if employee.supervisor_id is not None:
            supervisor = await db.get(Employee, employee.supervisor_id)
            supervisor_user_id = supervisor.user_id if supervisor else None
        if not has_access(role, Module.hr, AccessLevel.edit) and user.id != supervisor_user_id:
            raise ForbiddenException(detail="Only HR or the employee's supervisor may start an appraisal.")
        if data.reviewer_id is not None and data.reviewer_id == employee.user_id:
            raise BadRequestException("An employee cannot review their own appraisal.")

        existing = (
            await db.execute(
                select(PerformanceAppraisal.id).where(
                    PerformanceAppraisal.employee_id == employee.id,
                    PerformanceAppraisal.review_period == data.review_period,
                )
            )
        ).scalar()
        if existing is not None:
            raise ConflictError(
                "review_period",
                data.review_period,
                detail=f"{employee.full_name} already has a {data.review_period} appraisal.",
            )

        areas = [a.model_dump() for a in data.performance_areas]
        appraisal = PerformanceAppraisal(
            employee_id=employee.id,
            plan_id=data.plan_id,
            supervisor_id=data.supervisor_id or supervisor_user_id,
            reviewer_id=data.reviewer_id,
            review_period=data.review_period,
            due_date=data.due_date,
            status=AppraisalStatus.draft.value,
            performance_areas=areas,
            overall_rating=overall_rating(areas),
            achievements=[],
            goals=[],
            development_plan=[],
            comments=[],
            created_by=user.id,
        )
        db.add(appraisal)
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE",
            resource="performance_appraisal",
            resource_id=appraisal.id,
            user_id=user.id,
            new_values={"employee_id": str(employee.id), "review_period": data.review_period},
        )
        logger.info("Appraisal %s created for employee %s", appraisal.id, employee.id)
        actors, _ = await AppraisalService.actors_for(db, appraisal, user, role)
        return AppraisalService._detail(appraisal, employee, actors)

    @staticmethod
    async def update_appraisal(
        db: AsyncSession,
        appraisal_id: uuid.UUID,
        user: User,
        role: UserRole,
        data: AppraisalUpdate,
    ) -> AppraisalResponse:
        appraisal, actors, employee = await AppraisalService._party_view(db, appraisal_id, user, role)
        if appraisal.status == AppraisalStatus.approved.value:
            raise BadRequestException("Approved appraisals can no longer be edited.")

        changes = data.model_dump(exclude_unset=True)
        denied = set()
        if changes.keys() & _OWNER_FIELDS:
            if not actors & {Actor.owner, Actor.hr}:
                denied |= changes.keys() & _OWNER_FIELDS
            elif Actor.hr not in actors and appraisal.status not in _OWNER_EDITABLE:
                raise BadRequestException(
                    "The self-assessment can only be edited while the appraisal is with the employee."
                )
        if changes.keys() & _RATER_FIELDS and not actors & {Actor.supervisor, Actor.reviewer, Actor.hr}:
            denied |= changes.keys() & _RATER_FIELDS
        if denied:
            raise ForbiddenException(detail=f"You may not change: {', '.join(sorted(denied))}.")

        reviewer_id = changes.get("reviewer_id")
        if reviewer_id is not None and employee is not None and reviewer_id == employee.user_id:
            raise BadRequestException("An employee cannot review their own appraisal.")

        for field, value in changes.items():
            if field in ("achievements", "goals", "development_plan"):
                value = list(value or [])
            setattr(appraisal, field, value)
        if "performance_areas" in changes:
            areas = [a.model_dump() for a in data.performance_areas or []]
            appraisal.performance_areas = areas
            appraisal.overall_rating = overall_rating(areas)
        await db.flush()
        return await AppraisalService.get_appraisal(db, appraisal_id, user, role)

    # ── Workflow ────────────────────────────────────────────────────

    @staticmethod
    def _comment_entry(actor: Actor, user: User, action: str, comment: str) -> dict:
        return {
            "id": str(uuid.uuid4()),
            "role": actor.value,
            "name": user.full_name,
            "user_id": str(user.id),
            "comment": comment,
            "action": action,
            "timestamp": utcnow().isoformat(),
        }

    @staticmethod
    async def apply_action(
        db: AsyncSession,
        appraisal_id: uuid.UUID,
        user: User,
        role: UserRole,
        action: str,
        comment: Optional[str] = None,
    ) -> AppraisalResponse:
        appraisal, actors, _ = await AppraisalService._party_view(db, appraisal_id, user, role)
        previous = AppraisalStatus(appraisal.status)
        transition = workflow.resolve(
            action, previous, actors, workflow.APPRAISAL_TRANSITIONS, noun="appraisal",
        )
        if action == "comment" and not comment:
            raise ValidationException({"comment": ["A comment is required."]})

        target = transition.target
        if transition.target_without_reviewer is not None and appraisal.reviewer_id is None:
            target = transition.target_without_reviewer
        if target is not None:
            appraisal.status = target.value
        now = utcnow()
        if transition.stamp:
            setattr(appraisal, transition.stamp, now)
        if transition.clears:
            setattr(appraisal, transition.clears, None)
        if target == AppraisalStatus.approved:
            appraisal.approved_at = now

        actor = workflow.acting_as(transition, actors)
        entry = AppraisalService._comment_entry(
            actor, user, action, comment or f"{action.replace('_', ' ')} by {user.full_name}",
        )
        appraisal.comments = [*(appraisal.comments or []), entry]
        await db.flush()

        if target is not None:
            await create_audit_entry(
                db,
                action=f"APPRAISAL_{action.upper()}",
                resource="performance_appraisal",
                resource_id=appraisal.id,
                user_id=user.id,
                old_values={"status": previous.value},
                new_values={"status": appraisal.status},
            )
        logger.info(
            "Appraisal %s: %s by %s (%s -> %s)",
            appraisal.id, action, user.id, previous.value, appraisal.status,
        )
        return await AppraisalService.get_appraisal(db, appraisal_id, user, role)

    @staticmethod
    async def workflow_history(
        db: AsyncSession,
        appraisal_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> dict:
        appraisal, actors, _ = await AppraisalService._party_view(db, appraisal_id, user, role)
        comments = list(appraisal.comments or [])
        return {
            "status": appraisal.status,
            "next_actions": workflow.next_actions(
                AppraisalStatus(appraisal.status), actors, workflow.APPRAISAL_TRANSITIONS,
            ),
            "comments": comments,
            "supervisor_comments": [c for c in comments if c.get("role") == Actor.supervisor.value],
            "reviewer_comments": [c for c in comments if c.get("role") == Actor.reviewer.value],
            "submitted_at": appraisal.submitted_at,
            "supervisor_approved_at": appraisal.supervisor_approved_at,
            "reviewer_approved_at": appraisal.reviewer_approved_at,
            "approved_at": appraisal.approved_at,
        }

    @staticmethod
    async def bulk(
        db: AsyncSession,
        user: User,
        request: AppraisalBulkRequest,
    ) -> dict:
        """HR bulk approval or status change; per-appraisal failures are reported, not raised."""
        if request.action == AppraisalBulkAction.set_status and request.status is None:
            raise ValidationException({"status": ["A status is required for set_status."]})

        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for appraisal_id in dict.fromkeys(request.appraisal_ids):
            try:
                async with db.begin_nested():
                    appraisal = await AppraisalService._load(db, appraisal_id)
                    previous = appraisal.status
                    now = utcnow()
                    if request.action == AppraisalBulkAction.approve:
                        if previous not in _IN_REVIEW:
                            raise BadRequestException(
                                f"Cannot approve an appraisal in status '{previous}'."
                            )
                        appraisal.supervisor_approved_at = appraisal.supervisor_approved_at or now
                        if previous == AppraisalStatus.reviewer_assessment.value:
                            appraisal.reviewer_approved_at = now
                        target = AppraisalStatus.approved
                    else:
                        target = request.status
                    appraisal.status = target.value
                    if target == AppraisalStatus.approved:
                        appraisal.approved_at = now
                    entry = AppraisalService._comment_entry(
                        Actor.hr, user, f"bulk_{request.action.value}",
                        f"Status set to {target.value} in bulk by {user.full_name}",
                    )
                    appraisal.comments = [*(appraisal.comments or []), entry]
                    await db.flush()
                    await create_audit_entry(
                        db,
                        action=f"APPRAISAL_BULK_{request.action.value.upper()}",
                        resource="performance_appraisal",
                        resource_id=appraisal.id,
                        user_id=user.id,
                        old_values={"status": previous},
                        new_values={"status": target.value},
                    )
            except (BadRequestException, NotFoundException) as exc:
                failed.append({"appraisal_id": str(appraisal_id), "error": exc.detail})
                continue
            succeeded.append(str(appraisal_id))
        logger.info("Bulk %s on appraisals: %d ok, %d failed", request.action.value, len(succeeded), len(failed))
        return {"action": request.action.value, "succeeded": succeeded, "failed": failed}

    # ── Analytics ───────────────────────────────────────────────────

    @staticmethod
    async def analytics(
        db: AsyncSession,
        review_period: Optional[str] = None,
    ) -> dict:
        query = (
            select(PerformanceAppraisal, Employee, Department.name)
            .join(Employee, Employee.id == PerformanceAppraisal.employee_id)
            .outerjoin(Department, Department.id == Employee.department_id)
        )
        if review_period:
            query = query.where(PerformanceAppraisal.review_period == review_period)
        rows = (await db.execute(query)).all()

        overdue_before = utcnow() - timedelta(days=settings.APPRAISAL_OVERDUE_DAYS)
        approved = [a for a, _, _ in rows if a.status == AppraisalStatus.approved.value]
        overdue = [
            a for a, _, _ in rows
            if a.status in _IN_REVIEW and a.submitted_at and as_utc(a.submitted_at) < overdue_before
        ]
        ratings = [a.overall_rating for a, _, _ in rows if a.overall_rating is not None]

        with_due = [a for a in approved if a.due_date and a.approved_at]
        on_time = sum(1 for a in with_due if as_utc(a.approved_at).date() <= a.due_date)

        departments: dict[str, dict] = {}
        for appraisal, _, department in rows:
            stats = departments.setdefault(
                department or "Unassigned",
                {"department": department or "Unassigned", "total": 0, "completed": 0, "_ratings": []},
            )
            stats["total"] += 1
            if appraisal.status == AppraisalStatus.approved.value:
                stats["completed"] += 1
            if appraisal.overall_rating is not None:
                stats["_ratings"].append(appraisal.overall_rating)
        for stats in departments.values():
            found = stats.pop("_ratings")
            stats["average_rating"] = _mean(found)

        distribution = {band: 0 for band in range(5, 0, -1)}
        for rating in ratings:
            distribution[rating_band(rating)] += 1

        ranked = sorted(
            ((a, e) for a, e, _ in rows if a.status == AppraisalStatus.approved.value and a.overall_rating is not None),
            key=lambda pair: pair[0].overall_rating,
            reverse=True,
        )
        return {
            "total": len(rows),
            "completed": len(approved),
            "pending": len(rows) - len(approved),
            "overdue": len(overdue),
            "average_rating": _mean(ratings),
            "on_time_completion": round(100 * on_time / len(with_due), 1) if with_due else None,
            "department_stats": sorted(departments.values(), key=lambda s: s["department"]),
            "rating_distribution": [
                {"rating": band, "label": RATING_LABELS[band], "count": count}
                for band, count in distribution.items()
            ],
            "top_performers": [
                {
                    "appraisal_id": str(a.id),
                    "employee_id": str(e.id),
                    "employee_name": e.full_name,
                    "overall_rating": float(a.overall_rating),
                    "rating_label": rating_label(a.overall_rating),
                }
                for a, e in ranked[:5]
            ],
        }


def _mean(values: list[Decimal]) -> Optional[float]:
    if not values:
        return None
    return round(float(sum(Decimal(v) for v in values) / len(values)), 2)
