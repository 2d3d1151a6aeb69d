"""Admin router — users, roles, audit log, settings and system status.

All endpoints require system_administrator, except the audit log which hr may read.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.admin.schemas import (
    AdminUserResponse,
    BulkUserAction,
    SettingsSection,
    SettingsUpdate,
    UserCreate,
    UserUpdate,
)
from sirtis.admin.service import (
    AuditQueryService,
    SettingsService,
    UserAdminService,
    role_matrix,
    system_status,
)
from sirtis.auth.dependencies import require_role
from sirtis.auth.models import User
from sirtis.common.audit import AuditLog
from sirtis.common.constants import AuditSeverity, UserRole
from sirtis.common.pagination import PaginationParams
from sirtis.common.utils import jsonable, request_meta
from sirtis.database import get_db

router = APIRouter(prefix="", tags=["admin"])

_admin_dep = require_role(UserRole.system_administrator)
_audit_dep = require_role(UserRole.system_administrator, UserRole.hr)


def _user_json(user: User) -> dict:
    return AdminUserResponse.model_validate(user).model_dump(mode="json")


def _audit_json(entry: AuditLog) -> dict:
    return {
        "id": str(entry.id),
        "user_id": str(entry.user_id) if entry.user_id else None,
        "action": entry.action,
        "resource": entry.resource,
        "resource_id": entry.resource_id,
        "details": entry.details,
        "old_values": entry.old_values,
        "new_values": entry.new_values,
        "ip_address": jsonable(entry.ip_address),
        "user_agent": entry.user_agent,
        "severity": entry.severity,
        "outcome": entry.outcome,
        "created_at": jsonable(entry.created_at),
    }


# ═══════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════

@router.get("/users")
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(_admin_dep),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    status: Optional[str] = Query(None, pattern="^(active|suspended)$"),
    department: Optional[str] = Query(None),
):
    page, departments, roles = await UserAdminService.list_users(
        db, pagination, search=search, role=role, status=status, department=department,
    )
    return {
        "data": [_user_json(u) for u in page.data],
        "meta": page.meta.model_dump(),
        "departments": departments,
        "roles": roles,
    }


@router.post("/users", status_code=201)
async def create_user(
    body: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    user, temporary = await UserAdminService.create_user(db, body, actor, **request_meta(request))
    response = {"data": _user_json(user), "message": "User created successfully."}
    if temporary:
        response["temporary_password"] = temporary
    return response


# NOTE: /users/bulk is declared before /users/{user_id}.
@router.post("/users/bulk")
async def bulk_user_action(
    body: BulkUserAction,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    result = await UserAdminService.bulk(
        db, body.user_ids, body.action, actor, **request_meta(request),
    )
    return {
        "data": result,
        "message": f"{len(result['succeeded'])} user(s) processed, {len(result['failed'])} failed.",
    }


@router.put("/users/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    user = await UserAdminService.update_user(
        db, user_id, body.model_dump(exclude_unset=True), actor, **request_meta(request),
    )
    return {"data": _user_json(user), "message": "User updated successfully."}


@router.post("/users/{user_id}/toggle-status")
async def toggle_user_status(
    user_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    user = await UserAdminService.toggle_status(db, user_id, actor, **request_meta(request))
    return {
        "data": _user_json(user),
        "message": "User activated." if user.is_active else "User suspended.",
    }


@router.post("/users/{user_id}/reset-password")
async def reset_user_password(
    user_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    user, temporary = await UserAdminService.reset_password(db, user_id, actor, **request_meta(request))
    return {
        "data": _user_json(user),
        "temporary_password": temporary,
        "message": "Password reset. Share the temporary password securely; it is shown only once.",
    }


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    await UserAdminService.delete_user(db, user_id, actor, **request_meta(request))
    return {"data": None, "message": "User deleted successfully."}


# ═══════════════════════════════════════════════════════════════════
# ROLES / AUDIT
# ═══════════════════════════════════════════════════════════════════

@router.get("/roles")
async def list_roles(_: User = Depends(_admin_dep)):
    return {"data": role_matrix()}


@router.get("/audit")
async def list_audit_entries(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(_audit_dep),
    pagination: PaginationParams = Depends(),
    action: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    resource: Optional[str] = Query(None),
    severity: Optional[AuditSeverity] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
):
    page, stats = await AuditQueryService.search(
        db,
        pagination,
        action=action,
        user_id=user_id,
        resource=resource,
        severity=severity,
        date_from=date_from,
        date_to=date_to,
    )
    return {
        "data": [_audit_json(e) for e in page.data],
        "meta": page.meta.model_dump(),
        "stats": stats,
    }


# ═══════════════════════════════════════════════════════════════════
# SETTINGS / STATUS
# ═══════════════════════════════════════════════════════════════════

@router.get("/settings")
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(_admin_dep),
):
    return {"data": await SettingsService.get_all(db)}


@router.put("/settings/{section}")
async def update_settings(
    section: SettingsSection,
    body: SettingsUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(_admin_dep),
):
    values = await SettingsService.update_section(
        db, section, body.values, actor, **request_meta(request),
    )
    return {"data": values, "message": f"{section.capitalize()} settings saved."}


@router.get("/system-status")
async def get_system_status(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(_admin_dep),
):
    return {"data": await system_status(db)}
