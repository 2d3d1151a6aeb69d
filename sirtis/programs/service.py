"""Programs service — projects, activities, portfolio dashboard."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sirtis.auth.models import User
from sirtis.common.audit import apply_changes, create_audit_entry
from sirtis.common.constants import ProjectStatus
from sirtis.common.exceptions import BadRequestException, ConflictError, NotFoundException
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.utils import utcnow
from sirtis.programs.models import Activity, Project
from sirtis.programs.schemas import (
    ActivityCreate,
    ActivityResponse,
    ProjectCreate,
    ProjectDetail,
    ProjectResponse,
)

logger = logging.getLogger(__name__)

_FINISHED = {ProjectStatus.completed.value, ProjectStatus.cancelled.value}


def project_progress(project: Project, today: Optional[date] = None) -> Optional[int]:
    """Percent complete; ``None`` when it cannot be estimated."""
    if project.status == ProjectStatus.completed.value:
        return 100
    if not (project.start_date and project.end_date):
        return None
    today = today or utcnow().date()
    total = (project.end_date - project.start_date).days
    if total <= 0:
        return 100 if today >= project.end_date else 0
    elapsed = (today - project.start_date).days
    return max(0, min(100, round(elapsed / total * 100)))


def project_overdue(project: Project, today: Optional[date] = None) -> bool:
    today = today or utcnow().date()
    return bool(project.end_date and project.end_date < today and project.status not in _FINISHED)


def to_response(project: Project, today: Optional[date] = None) -> ProjectResponse:
    item = ProjectResponse.model_validate(project)
    item.progress = project_progress(project, today) or 0
    item.is_overdue = project_overdue(project, today)
    return item


class ProjectService:

    @staticmethod
    async def list_projects(
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Sequence[Project]:
        query = select(Project).order_by(Project.created_at.desc())
        query = apply_filters(query, Project, {"status": status})
        query = apply_search(query, Project, search, ["name", "code", "description"])
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_project(db: AsyncSession, project_id: uuid.UUID) -> Project:
        result = await db.execute(
            select(Project)
            .where(Project.id == project_id)
            .options(selectinload(Project.activities))
            .execution_options(populate_existing=True)
        )
        project = result.scalars().first()
        if project is None:
            raise NotFoundException("Project", str(project_id))
        return project

    @staticmethod
    def detail(project: Project) -> ProjectDetail:
        base = to_response(project)
        return ProjectDetail(
            **base.model_dump(),
            activities=[ActivityResponse.model_validate(a) for a in project.activities],
        )

    @staticmethod
    async def create_project(db: AsyncSession, data: ProjectCreate, user: User) -> Project:
        existing = await db.execute(select(Project.id).where(Project.code == data.code))
        if existing.scalar() is not None:
            raise ConflictError("code", data.code)

        project = Project(
            **data.model_dump(exclude={"status"}),
            status=data.status.value,
            created_by=user.id,
        )
        db.add(project)
        await db.flush()
        await create_audit_entry(
            db,
            action="CREATE",
            resource="project",
            resource_id=project.id,
            user_id=user.id,
            new_values={"code": project.code, "name": project.name},
        )
        logger.info("Project %s created", project.code)
        return await ProjectService.get_project(db, project.id)

    @staticmethod
    async def update_project(
        db: AsyncSession,
        project_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
    ) -> Project:
        project = await ProjectService.get_project(db, project_id)
        start = changes.get("start_date", project.start_date)
        end = changes.get("end_date", project.end_date)
        if start and end and end < start:
            raise BadRequestException("end_date must not be before start_date.")

        old_values, new_values = apply_changes(project, changes)
        if new_values:
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="project",
                resource_id=project.id,
                user_id=user.id,
                old_values=old_values,
                new_values=new_values,
            )
        return await ProjectService.get_project(db, project_id)

    @staticmethod
    async def add_activity(
        db: AsyncSession,
        project_id: uuid.UUID,
        data: ActivityCreate,
        user: User,
    ) -> Activity:
        project = await ProjectService.get_project(db, project_id)
        activity = Activity(
            project_id=project.id,
            title=data.title,
            description=data.description,
            status=data.status.value,
            due_date=data.due_date,
            created_by=user.id,
        )
        db.add(activity)
        await db.flush()
        return activity

    @staticmethod
    async def dashboard(db: AsyncSession) -> dict[str, Any]:
        today = utcnow().date()
        projects = (
            await db.execute(select(Project).order_by(Project.created_at.desc()))
        ).scalars().all()
        recent_activities = (
            await db.execute(
                select(Activity, Project.name)
                .join(Project, Project.id == Activity.project_id)
                .order_by(Activity.created_at.desc())
                .limit(10)
            )
        ).all()

        total = len(projects)
        completed = sum(1 for p in projects if p.status == ProjectStatus.completed.value)
        total_budget = float(sum((p.budget or 0) for p in projects))
        total_spent = float(sum((p.actual_spent or 0) for p in projects))
        progresses = [
            pct for pct in (project_progress(p, today) for p in projects) if pct is not None
        ]

        return {
            "total_projects": total,
            "active_projects": sum(1 for p in projects if p.status == ProjectStatus.active.value),
            "completed_projects": completed,
            "on_hold_projects": sum(1 for p in projects if p.status == ProjectStatus.on_hold.value),
            "total_budget": total_budget,
            "total_spent": total_spent,
            "budget_utilization": round(total_spent / total_budget * 100, 1) if total_budget else 0.0,
            "average_progress": round(sum(progresses) / len(progresses), 1) if progresses else 0.0,
            "overdue_projects": sum(1 for p in projects if project_overdue(p, today)),
            "delivery_success_rate": round(completed / total * 100, 1) if total else 0.0,
            "recent_projects": [
                to_response(p, today).model_dump(mode="json") for p in projects[:6]
            ],
            "recent_activities": [
                {**ActivityResponse.model_validate(a).model_dump(mode="json"), "project_name": name}
                for a, name in recent_activities
            ],
        }
