"""Programs router — projects, activities and the portfolio dashboard."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, Module, ProjectStatus
from sirtis.database import get_db
from sirtis.programs.schemas import ActivityCreate, ActivityResponse, ProjectCreate, ProjectUpdate
from sirtis.programs.service import ProjectService, to_response

router = APIRouter(prefix="", tags=["programs"])

_programs_view = require_module_access(Module.programs, AccessLevel.view)
_programs_edit = require_module_access(Module.programs, AccessLevel.edit)


@router.get("/dashboard")
async def programs_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_view),
):
    return {"data": await ProjectService.dashboard(db)}


@router.get("/projects")
async def list_projects(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_view),
    status: Optional[ProjectStatus] = Query(None),
    search: Optional[str] = Query(None),
):
    projects = await ProjectService.list_projects(db, status=status, search=search)
    return {"data": [to_response(p).model_dump(mode="json") for p in projects]}


@router.post("/projects", status_code=201)
async def create_project(
    body: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_edit),
):
    project = await ProjectService.create_project(db, body, current_user)
    return {
        "data": ProjectService.detail(project).model_dump(mode="json"),
        "message": "Project created successfully.",
    }


@router.get("/projects/{project_id}")
async def get_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_view),
):
    project = await ProjectService.get_project(db, project_id)
    return {"data": ProjectService.detail(project).model_dump(mode="json")}


@router.put("/projects/{project_id}")
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_edit),
):
    project = await ProjectService.update_project(
        db, project_id, body.model_dump(exclude_unset=True), current_user,
    )
    return {
        "data": ProjectService.detail(project).model_dump(mode="json"),
        "message": "Project updated successfully.",
    }


@router.post("/projects/{project_id}/activities", status_code=201)
async def add_activity(
    project_id: uuid.UUID,
    body: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_programs_edit),
):
    activity = await ProjectService.add_activity(db, project_id, body, current_user)
    return {
        "data": ActivityResponse.model_validate(activity).model_dump(mode="json"),
        "message": "Activity added.",
    }
