"""Audit log model and async helpers for recording entity changes."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from sirtis.common.constants import AuditOutcome, AuditSeverity
from sirtis.common.utils import jsonable, utcnow
from sirtis.database import Base


# ── Immutable audit table ───────────────────────────────────────────

class AuditLog(Base):
    """Immutable log of every significant action or data change."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    resource: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(sa.String(64))
    details: Mapped[Optional[dict]] = mapped_column(JSONB)
    old_values: Mapped[Optional[dict]] = mapped_column(JSONB)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONB)
    ip_address: Mapped[Optional[str]] = mapped_column(INET)
    user_agent: Mapped[Optional[str]] = mapped_column(sa.Text)
    severity: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=AuditSeverity.info.value,
    )
    outcome: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=AuditOutcome.success.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        sa.Index("ix_audit_logs_user_id", "user_id"),
        sa.Index("ix_audit_logs_resource", "resource", "resource_id"),
        sa.Index("ix_audit_logs_created_at", "created_at"),
        sa.Index("ix_audit_logs_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog {self.action} {self.resource}"
            f"/{self.resource_id} by {self.user_id}>"
        )


# ── Helpers ─────────────────────────────────────────────────────────

async def create_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    resource: str,
    resource_id: Any = None,
    user_id: Optional[uuid.UUID] = None,
    details: Optional[dict[str, Any]] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    severity: AuditSeverity = AuditSeverity.info,
    outcome: AuditOutcome = AuditOutcome.success,
) -> AuditLog:
    """
    Create and flush an audit entry.

    Args:
        session: Async SQLAlchemy session.
        action: e.g. CREATE | UPDATE | DELETE | LOGIN | LOGIN_FAILED.
        resource: e.g. "employee", "call_record", "risk".
        resource_id: Primary key (any type, stored as text).
        user_id: The acting user, when known.
        details: Free-form context.
        old_values: Previous state (for updates/deletes).
        new_values: New state (for creates/updates).
        ip_address: Client IP.
        user_agent: Client user-agent string.
        severity: info | warning | critical.
        outcome: success | failure.
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=jsonable(details) if details else None,
        old_values=jsonable(old_values) if old_values else None,
        new_values=jsonable(new_values) if new_values else None,
        ip_address=ip_address,
        user_agent=user_agent,
        severity=severity.value,
        outcome=outcome.value,
    )
    session.add(entry)
    await session.flush()
    return entry


def apply_changes(obj: Any, changes: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Set *changes* on *obj*; return (old_values, new_values) for the fields that moved."""
    old_values: dict[str, Any] = {}
    new_values: dict[str, Any] = {}
    for field, value in changes.items():
        if hasattr(value, "value") and not isinstance(value, dict):
            value = value.value
        current = getattr(obj, field, None)
        if current == value:
            continue
        old_values[field] = jsonable(current)
        new_values[field] = jsonable(value)
        setattr(obj, field, value)
    return old_values, new_values


def diff_values(
    old_values: Optional[dict[str, Any]],
    new_values: Optional[dict[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Render a ``{field: {"from": old, "to": new}}`` change set."""
    old_values = old_values or {}
    new_values = new_values or {}
    return {
        field: {"from": old_values.get(field), "to": new_values.get(field)}
        for field in sorted(set(old_values) | set(new_values))
        if old_values.get(field) != new_values.get(field)
    }
