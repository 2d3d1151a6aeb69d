"""Risk register service — scoring, department visibility, mitigations, reports."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Any, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User
from sirtis.common.audit import apply_changes, create_audit_entry
from sirtis.common.constants import (
    AccessLevel,
    MitigationStatus,
    Module,
    RiskCategory,
    RiskRating,
    RiskStatus,
    UserRole,
    has_access,
)
from sirtis.common.exceptions import ForbiddenException, NotFoundException
from sirtis.common.filters import apply_filters
from sirtis.common.pagination import PaginatedResponse, PaginationParams, paginate
from sirtis.common.utils import utcnow
from sirtis.risks.models import Risk, RiskAuditLog, RiskMitigation
from sirtis.risks.schemas import MitigationCreate, RiskCreate, RiskResponse

logger = logging.getLogger(__name__)


# ── Scoring ─────────────────────────────────────────────────────────

def risk_score(probability: RiskRating | str, impact: RiskRating | str) -> int:
    return RiskRating(probability).score * RiskRating(impact).score


def risk_level(score: int) -> str:
    """1–2 low, 3–4 medium, 6–9 high."""
    if score >= 6:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


def to_response(risk: Risk) -> RiskResponse:
    item = RiskResponse.model_validate(risk)
    item.risk_level = risk_level(risk.risk_score)
    return item


async def next_risk_id(db: AsyncSession, year: int) -> str:
    """``RISK-{year}-{n:06d}``, one past the highest number issued this year."""
    prefix = f"RISK-{year}-"
    result = await db.execute(select(Risk.risk_id).where(Risk.risk_id.like(f"{prefix}%")))
    highest = 0
    for (risk_id,) in result.all():
        tail = risk_id[len(prefix):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{prefix}{highest + 1:06d}"


def _sees_everything(role: UserRole) -> bool:
    return has_access(role, Module.risks, AccessLevel.full)


def _visibility_clause(user: User):
    clauses = [Risk.owner_id == user.id, Risk.created_by_id == user.id]
    if user.department:
        clauses.append(Risk.department == user.department)
    return or_(*clauses)


async def _log(
    db: AsyncSession,
    risk_id: uuid.UUID,
    action: str,
    user: User,
    description: str,
    changes: Optional[dict[str, Any]] = None,
) -> None:
    db.add(
        RiskAuditLog(
            risk_id=risk_id,
            action=action,
            user_id=user.id,
            description=description,
            changes=changes,
        )
    )
    await db.flush()


# ═════════════════════════════════════════════════════════════════════
# RiskService
# ═════════════════════════════════════════════════════════════════════


class RiskService:

    @staticmethod
    async def list_risks(
        db: AsyncSession,
        user: User,
        role: UserRole,
        pagination: PaginationParams,
        *,
        category: Optional[str] = None,
        status: Optional[str] = None,
        department: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(Risk).order_by(Risk.risk_score.desc(), Risk.date_identified.desc())
        if not _sees_everything(role):
            query = query.where(_visibility_clause(user))
        query = apply_filters(
            query, Risk, {"category": category, "status": status, "department": department},
        )
        return await paginate(db, query, pagination, model=Risk)

    @staticmethod
    async def get_risk(
        db: AsyncSession,
        risk_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> Risk:
        risk = await db.get(Risk, risk_id)
        if risk is None:
            raise NotFoundException("Risk", str(risk_id))
        if not _sees_everything(role):
            visible = (
                risk.owner_id == user.id
                or risk.created_by_id == user.id
                or (user.department and risk.department == user.department)
            )
            if not visible:
                raise ForbiddenException(detail="This risk belongs to another department.")
        return risk

    @staticmethod
    async def create_risk(db: AsyncSession, data: RiskCreate, user: User) -> Risk:
        now = utcnow()
        risk = Risk(
            risk_id=await next_risk_id(db, now.year),
            title=data.title,
            description=data.description,
            category=data.category.value,
            department=data.department or user.department,
            probability=data.probability.value,
            impact=data.impact.value,
            risk_score=risk_score(data.probability, data.impact),
            status=data.status.value,
            owner_id=data.owner_id or user.id,
            created_by_id=user.id,
            date_identified=data.date_identified or now.date(),
            tags=data.tags,
        )
        db.add(risk)
        await db.flush()

        await _log(db, risk.id, "CREATE", user, f"Risk {risk.risk_id} created: {risk.title}")
        await create_audit_entry(
            db,
            action="CREATE",
            resource="risk",
            resource_id=risk.id,
            user_id=user.id,
            new_values={"risk_id": risk.risk_id, "risk_score": risk.risk_score},
        )
        logger.info("Risk %s created (score %d)", risk.risk_id, risk.risk_score)
        return risk

    @staticmethod
    async def update_risk(
        db: AsyncSession,
        risk_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
        role: UserRole,
    ) -> Risk:
        risk = await RiskService.get_risk(db, risk_id, user, role)
        probability = changes.get("probability") or risk.probability
        impact = changes.get("impact") or risk.impact
        changes["risk_score"] = risk_score(probability, impact)

        old_values, new_values = apply_changes(risk, changes)
        if not new_values:
            return risk
        await db.flush()

        await _log(
            db,
            risk.id,
            "UPDATE",
            user,
            f"Updated fields: {', '.join(sorted(new_values))}",
            {"old": old_values, "new": new_values},
        )
        await create_audit_entry(
            db,
            action="UPDATE",
            resource="risk",
            resource_id=risk.id,
            user_id=user.id,
            old_values=old_values,
            new_values=new_values,
        )
        return risk

    @staticmethod
    async def delete_risk(db: AsyncSession, risk_id: uuid.UUID, user: User, role: UserRole) -> None:
        risk = await RiskService.get_risk(db, risk_id, user, role)
        label = risk.risk_id
        await db.delete(risk)
        await db.flush()
        await create_audit_entry(
            db,
            action="DELETE",
            resource="risk",
            resource_id=risk_id,
            user_id=user.id,
            old_values={"risk_id": label},
        )

    @staticmethod
    async def audit_trail(
        db: AsyncSession,
        risk_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> Sequence[RiskAuditLog]:
        await RiskService.get_risk(db, risk_id, user, role)
        return (
            await db.execute(
                select(RiskAuditLog)
                .where(RiskAuditLog.risk_id == risk_id)
                .order_by(RiskAuditLog.created_at.desc())
            )
        ).scalars().all()

    @staticmethod
    async def report(db: AsyncSession, user: User, role: UserRole) -> dict[str, Any]:
        query = select(Risk)
        if not _sees_everything(role):
            query = query.where(_visibility_clause(user))
        risks = (await db.execute(query)).scalars().all()

        ratings = [r.value for r in RiskRating]
        matrix = {p: {i: 0 for i in ratings} for p in ratings}
        for r in risks:
            if r.probability in matrix and r.impact in matrix[r.probability]:
                matrix[r.probability][r.impact] += 1

        by_category = {c.value: 0 for c in RiskCategory}
        by_category.update(Counter(r.category for r in risks))
        by_status = {s.value: 0 for s in RiskStatus}
        by_status.update(Counter(r.status for r in risks))
        by_level = {"low": 0, "medium": 0, "high": 0}
        by_level.update(Counter(risk_level(r.risk_score) for r in risks))

        return {
            "total_risks": len(risks),
            "by_category": by_category,
            "by_status": by_status,
            "by_level": by_level,
            "matrix": matrix,
            "average_score": round(sum(r.risk_score for r in risks) / len(risks), 2) if risks else 0.0,
        }


# ═════════════════════════════════════════════════════════════════════
# MitigationService
# ═════════════════════════════════════════════════════════════════════


class MitigationService:

    @staticmethod
    async def list_for_risk(
        db: AsyncSession,
        risk_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> Sequence[RiskMitigation]:
        await RiskService.get_risk(db, risk_id, user, role)
        return (
            await db.execute(
                select(RiskMitigation)
                .where(RiskMitigation.risk_id == risk_id)
                .order_by(RiskMitigation.created_at.asc())
            )
        ).scalars().all()

    @staticmethod
    async def create(
        db: AsyncSession,
        risk_id: uuid.UUID,
        data: MitigationCreate,
        user: User,
        role: UserRole,
    ) -> RiskMitigation:
        risk = await RiskService.get_risk(db, risk_id, user, role)
        status = MitigationStatus.completed if data.progress == 100 else data.status
        mitigation = RiskMitigation(
            risk_id=risk.id,
            title=data.title,
            description=data.description,
            status=status.value,
            priority=data.priority.value,
            owner_id=data.owner_id or user.id,
            due_date=data.due_date,
            progress=data.progress,
            budget=data.budget,
        )
        db.add(mitigation)
        await db.flush()
        await _log(db, risk.id, "MITIGATION_ADDED", user, f"Mitigation added: {mitigation.title}")
        return mitigation

    @staticmethod
    async def update(
        db: AsyncSession,
        mitigation_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
        role: UserRole,
    ) -> RiskMitigation:
        mitigation = await db.get(RiskMitigation, mitigation_id)
        if mitigation is None:
            raise NotFoundException("RiskMitigation", str(mitigation_id))
        await RiskService.get_risk(db, mitigation.risk_id, user, role)

        if changes.get("progress") == 100:
            changes["status"] = MitigationStatus.completed.value
        old_values, new_values = apply_changes(mitigation, changes)
        if new_values:
            await db.flush()
            await _log(
                db,
                mitigation.risk_id,
                "MITIGATION_UPDATED",
                user,
                f"Mitigation '{mitigation.title}' updated: {', '.join(sorted(new_values))}",
                {"old": old_values, "new": new_values},
            )
        return mitigation

    @staticmethod
    async def summary(db: AsyncSession, user: User, role: UserRole) -> dict[str, Any]:
        query = select(RiskMitigation).join(Risk, Risk.id == RiskMitigation.risk_id)
        if not _sees_everything(role):
            query = query.where(_visibility_clause(user))
        plans = (await db.execute(query)).scalars().all()
        today = utcnow().date()

        completed = MitigationStatus.completed.value
        return {
            "total_plans": len(plans),
            "active_plans": sum(1 for p in plans if p.status == MitigationStatus.in_progress.value),
            "completed_plans": sum(1 for p in plans if p.status == completed),
            "overdue_plans": sum(
                1 for p in plans if p.due_date and p.due_date < today and p.status != completed
            ),
            "average_progress": round(sum(p.progress for p in plans) / len(plans)) if plans else 0,
            "total_budget": float(sum((p.budget or 0) for p in plans)),
            "status_breakdown": dict(Counter(p.status for p in plans)),
        }
