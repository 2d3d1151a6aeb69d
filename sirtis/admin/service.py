"""Admin service — user management, role matrix, audit queries, settings, status."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.admin.schemas import UserCreate
from sirtis.auth.models import User
from sirtis.auth.security import generate_temporary_password, hash_password
from sirtis.auth.service import revoke_all_user_sessions
from sirtis.call_centre.models import CallRecord
from sirtis.common.audit import AuditLog, apply_changes, create_audit_entry
from sirtis.common.constants import (
    DEPARTMENT_DEFAULT_ROLES,
    ROLE_DOCUMENT_LEVEL,
    ROLE_FLAGS,
    ROLE_MODULE_ACCESS,
    AuditSeverity,
    Module,
    SessionRevokeReason,
    UserRole,
    default_role_for_department,
)
from sirtis.common.exceptions import BadRequestException, ConflictError, NotFoundException
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.models import AppSetting
from sirtis.common.pagination import PaginatedResponse, PaginationParams, paginate
from sirtis.config import settings
from sirtis.database import ping_database
from sirtis.documents.models import Document
from sirtis.hr.models import Employee
from sirtis.meal.models import MealSubmission
from sirtis.performance.models import PerformancePlan, PlanComment
from sirtis.risks.models import Risk

logger = logging.getLogger(__name__)

MASK = "********"
_SECRET_MARKERS = ("password", "secret", "token", "api_key", "encryption_key")

DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "system": {
        "app_name": "SIRTIS",
        "timezone": "Africa/Harare",
        "language": "en",
        "currency": "USD",
        "date_format": "DD/MM/YYYY",
        "time_format": "24h",
        "maintenance_mode": False,
        "allow_registration": False,
    },
    "email": {
        "smtp_host": "",
        "smtp_port": 587,
        "smtp_secure": True,
        "smtp_user": "",
        "smtp_password": "",
        "from_email": "",
        "from_name": "SIRTIS",
    },
    "security": {
        "session_timeout_hours": 24,
        "max_login_attempts": 5,
        "password_min_length": 8,
        "password_expiry_days": 90,
        "two_factor_required": False,
        "audit_log_retention_days": 365,
        "allowed_ips": [],
        "blocked_ips": [],
    },
    "backup": {
        "enabled": True,
        "schedule": "daily",
        "retention_days": 30,
        "location": "local",
        "encrypt_backups": True,
    },
    "notifications": {
        "system_alerts": True,
        "email_notifications": True,
        "sms_notifications": False,
        "security_alerts": True,
        "case_overdue_alerts": True,
    },
}

_STATUS_TABLES = {
    "users": User,
    "employees": Employee,
    "call_records": CallRecord,
    "documents": Document,
    "risks": Risk,
    "meal_submissions": MealSubmission,
    "audit_logs": AuditLog,
}


def is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def mask_secrets(values: dict[str, Any]) -> dict[str, Any]:
    return {
        k: (MASK if is_secret(k) and v else v)
        for k, v in values.items()
    }


# ═════════════════════════════════════════════════════════════════════
# UserAdminService
# ═════════════════════════════════════════════════════════════════════


class UserAdminService:

    @staticmethod
    async def list_users(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        department: Optional[str] = None,
    ) -> tuple[PaginatedResponse, list[str], list[str]]:
        query = select(User).order_by(User.last_name, User.first_name)
        filters: dict[str, Any] = {"role": role, "department": department}
        if status:
            filters["is_active"] = status == "active"
        query = apply_filters(query, User, filters)
        query = apply_search(query, User, search, ["email", "first_name", "last_name", "position"])
        page = await paginate(db, query, pagination, model=User)

        departments = (
            await db.execute(
                select(User.department)
                .where(User.department.is_not(None))
                .distinct()
                .order_by(User.department)
            )
        ).scalars().all()
        roles = (
            await db.execute(select(User.role).distinct().order_by(User.role))
        ).scalars().all()
        return page, list(departments), list(roles)

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def create_user(
        db: AsyncSession,
        data: UserCreate,
        actor: User,
        **meta: Any,
    ) -> tuple[User, Optional[str]]:
        """Create an account; returns the temporary password when one was generated."""
        email = data.email.lower()
        existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
        if existing.scalar() is not None:
            raise ConflictError("email", email)

        temporary = None if data.password else generate_temporary_password()
        role = data.role or default_role_for_department(data.department)
        user = User(
            email=email,
            password_hash=hash_password(data.password or temporary),
            first_name=data.first_name,
            last_name=data.last_name,
            role=role.value,
            department=data.department,
            position=data.position,
            phone=data.phone,
            is_active=True,
            must_change_password=temporary is not None,
        )
        db.add(user)
        await db.flush()

        await create_audit_entry(
            db,
            action="USER_CREATE",
            resource="user",
            resource_id=user.id,
            user_id=actor.id,
            new_values={"email": user.email, "role": user.role},
            **meta,
        )
        logger.info("User %s created by %s", user.email, actor.id)
        return user, temporary

    @staticmethod
    async def update_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        changes: dict[str, Any],
        actor: User,
        **meta: Any,
    ) -> User:
        user = await UserAdminService.get_user(db, user_id)
        if changes.get("email"):
            email = changes["email"].lower()
            clash = await db.execute(
                select(User.id).where(func.lower(User.email) == email, User.id != user.id)
            )
            if clash.scalar() is not None:
                raise ConflictError("email", email)
            changes["email"] = email
        if user.id == actor.id and changes.get("role") not in (None, UserRole.system_administrator):
            raise BadRequestException("You cannot remove your own administrator role.")

        old_values, new_values = apply_changes(user, changes)
        if new_values:
            await db.flush()
            if "role" in new_values:
                # Role changes force a fresh login.
                await revoke_all_user_sessions(db, user.id, SessionRevokeReason.role_change)
            await create_audit_entry(
                db,
                action="USER_UPDATE",
                resource="user",
                resource_id=user.id,
                user_id=actor.id,
                old_values=old_values,
                new_values=new_values,
                severity=AuditSeverity.warning if "role" in new_values else AuditSeverity.info,
                **meta,
            )
        return user

    @staticmethod
    async def set_active(
        db: AsyncSession,
        user: User,
        active: bool,
        actor: User,
        **meta: Any,
    ) -> User:
        if user.id == actor.id and not active:
            raise BadRequestException("You cannot suspend your own account.")
        if user.is_active == active:
            return user
        user.is_active = active
        await db.flush()
        if not active:
            await revoke_all_user_sessions(db, user.id, SessionRevokeReason.suspended)
        await create_audit_entry(
            db,
            action="USER_ACTIVATE" if active else "USER_SUSPEND",
            resource="user",
            resource_id=user.id,
            user_id=actor.id,
            new_values={"is_active": active},
            severity=AuditSeverity.info if active else AuditSeverity.warning,
            **meta,
        )
        return user

    @staticmethod
    async def toggle_status(db: AsyncSession, user_id: uuid.UUID, actor: User, **meta: Any) -> User:
        user = await UserAdminService.get_user(db, user_id)
        return await UserAdminService.set_active(db, user, not user.is_active, actor, **meta)

    @staticmethod
    async def reset_password(
        db: AsyncSession,
        user_id: uuid.UUID,
        actor: User,
        **meta: Any,
    ) -> tuple[User, str]:
        user = await UserAdminService.get_user(db, user_id)
        temporary = generate_temporary_password()
        user.password_hash = hash_password(temporary)
        user.must_change_password = True
        await db.flush()
        await revoke_all_user_sessions(db, user.id, SessionRevokeReason.password_reset)
        await create_audit_entry(
            db,
            action="PASSWORD_RESET",
            resource="user",
            resource_id=user.id,
            user_id=actor.id,
            severity=AuditSeverity.warning,
            **meta,
        )
        return user, temporary

    @staticmethod
    async def performance_references(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Count performance rows that keep a hard reference to *user_id*."""
        plans = await db.scalar(
            select(func.count()).select_from(PerformancePlan).where(
                or_(PerformancePlan.supervisor_id == user_id, PerformancePlan.reviewer_id == user_id)
            )
        )
        comments = await db.scalar(
            select(func.count()).select_from(PlanComment).where(PlanComment.user_id == user_id)
        )
        return (plans or 0) + (comments or 0)

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: uuid.UUID, actor: User, **meta: Any) -> None:
        if user_id == actor.id:
            raise BadRequestException("You cannot delete your own account.")
        user = await UserAdminService.get_user(db, user_id)
        if await UserAdminService.performance_references(db, user_id):
            raise BadRequestException(
                "User is referenced by performance plans or comments; "
                "reassign them or suspend the account instead."
            )
        email = user.email
        await db.delete(user)
        await db.flush()
        await create_audit_entry(
            db,
            action="USER_DELETE",
            resource="user",
            resource_id=user_id,
            user_id=actor.id,
            old_values={"email": email},
            severity=AuditSeverity.warning,
            **meta,
        )

    @staticmethod
    async def bulk(
        db: AsyncSession,
        user_ids: list[uuid.UUID],
        action: str,
        actor: User,
        **meta: Any,
    ) -> dict[str, Any]:
        """Apply *action* to each user; per-user failures are reported, not raised."""
        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for user_id in dict.fromkeys(user_ids):
            try:
                # Savepoint per user: one failed row leaves the others applied.
                async with db.begin_nested():
                    if action == "delete":
                        await UserAdminService.delete_user(db, user_id, actor, **meta)
                    else:
                        user = await UserAdminService.get_user(db, user_id)
                        await UserAdminService.set_active(db, user, action == "activate", actor, **meta)
            except (BadRequestException, NotFoundException) as exc:
                failed.append({"user_id": str(user_id), "error": exc.detail})
                continue
            except IntegrityError as exc:
                logger.warning("Bulk %s failed for user %s: %s", action, user_id, exc.orig)
                failed.append({"user_id": str(user_id), "error": "User is still referenced by other records."})
                continue
            succeeded.append(str(user_id))
        return {"action": action, "succeeded": succeeded, "failed": failed}


# ═════════════════════════════════════════════════════════════════════
# Roles / audit / settings / status
# ═════════════════════════════════════════════════════════════════════


def role_matrix() -> dict[str, Any]:
    return {
        "roles": [
            {
                "role": role.value,
                "modules": {m.value: ROLE_MODULE_ACCESS[role][m].value for m in Module},
                "document_clearance": ROLE_DOCUMENT_LEVEL[role].value,
                "flags": ROLE_FLAGS[role],
            }
            for role in UserRole
        ],
        "modules": [m.value for m in Module],
        "department_defaults": {code: role.value for code, role in DEPARTMENT_DEFAULT_ROLES.items()},
    }


class AuditQueryService:

    @staticmethod
    async def search(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        action: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        resource: Optional[str] = None,
        severity: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> tuple[PaginatedResponse, dict[str, int]]:
        filters = {
            "action": action,
            "user_id": user_id,
            "resource": resource,
            "severity": severity,
            "created_at__from": date_from,
            "created_at__to": date_to,
        }
        query = apply_filters(
            select(AuditLog).order_by(AuditLog.created_at.desc()), AuditLog, filters,
        )
        page = await paginate(db, query, pagination, model=AuditLog)

        stats_query = apply_filters(
            select(AuditLog.severity, func.count()).group_by(AuditLog.severity),
            AuditLog,
            {k: v for k, v in filters.items() if k != "severity"},
        )
        stats = {s.value: 0 for s in AuditSeverity}
        stats.update({sev: count for sev, count in (await db.execute(stats_query)).all()})
        return page, stats


class SettingsService:

    @staticmethod
    async def _stored(db: AsyncSession) -> dict[str, dict[str, Any]]:
        rows = (await db.execute(select(AppSetting))).scalars().all()
        return {row.key: row.value or {} for row in rows}

    @staticmethod
    async def get_all(db: AsyncSession) -> dict[str, dict[str, Any]]:
        stored = await SettingsService._stored(db)
        merged = {}
        for section, defaults in DEFAULT_SETTINGS.items():
            values = copy.deepcopy(defaults)
            values.update(stored.get(section, {}))
            merged[section] = mask_secrets(values)
        return merged

    @staticmethod
    async def update_section(
        db: AsyncSession,
        section: str,
        values: dict[str, Any],
        actor: User,
        **meta: Any,
    ) -> dict[str, Any]:
        defaults = DEFAULT_SETTINGS[section]
        unknown = sorted(set(values) - set(defaults))
        if unknown:
            raise BadRequestException(f"Unknown {section} setting(s): {', '.join(unknown)}")

        row = await db.get(AppSetting, section)
        current = dict(row.value) if row is not None else {}
        changed: dict[str, Any] = {}
        for key, value in values.items():
            # The mask comes back unchanged when a form re-submits a secret.
            if is_secret(key) and value == MASK:
                continue
            if current.get(key, defaults[key]) != value:
                changed[key] = value
        current.update(changed)

        if row is None:
            row = AppSetting(key=section, value=current, updated_by=actor.id)
            db.add(row)
        else:
            row.value = current
            row.updated_by = actor.id
        await db.flush()

        if changed:
            await create_audit_entry(
                db,
                action="SETTINGS_UPDATE",
                resource="app_settings",
                resource_id=section,
                user_id=actor.id,
                new_values=mask_secrets(changed),
                severity=AuditSeverity.warning,
                **meta,
            )
        merged = copy.deepcopy(defaults)
        merged.update(current)
        return mask_secrets(merged)


async def system_status(db: AsyncSession) -> dict[str, Any]:
    try:
        database_ok = await ping_database(db)
    except SQLAlchemyError:
        logger.exception("Database ping failed")
        database_ok = False
    counts: dict[str, Optional[int]] = {}
    if database_ok:
        for name, model in _STATUS_TABLES.items():
            counts[name] = (
                await db.execute(select(func.count()).select_from(model))
            ).scalar_one()
    return {
        "database": "connected" if database_ok else "unreachable",
        "environment": settings.ENVIRONMENT,
        "row_counts": counts,
    }
