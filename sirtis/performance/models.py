"""Performance ORM models: plans with their responsibilities, comments and
activities, and appraisals."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sirtis.common.constants import AppraisalStatus, PlanActivityStatus, PlanStatus
from sirtis.common.utils import utcnow
from sirtis.database import Base


class PerformancePlan(Base):
    """Yearly objectives of one employee, reviewed by supervisor then reviewer."""

    __tablename__ = "performance_plans"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "plan_year", "plan_period", name="uq_plan_employee_period",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    supervisor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"),
    )
    plan_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    plan_period: Mapped[str] = mapped_column(
        sa.String(30), nullable=False, default="Annual", server_default="Annual",
    )
    status: Mapped[str] = mapped_column(
        sa.String(30),
        nullable=False,
        default=PlanStatus.draft.value,
        server_default=PlanStatus.draft.value,
    )
    supervisor_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    reviewer_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    supervisor_approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reviewer_approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    responsibilities: Mapped[list[PlanResponsibility]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanResponsibility.position",
    )
    comments: Mapped[list[PlanComment]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanComment.created_at",
    )

    def __repr__(self) -> str:
        return f"<PerformancePlan {self.plan_year}/{self.plan_period} {self.status}>"


class PlanResponsibility(Base):
    __tablename__ = "plan_responsibilities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("performance_plans.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    weight: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    plan: Mapped[PerformancePlan] = relationship(back_populates="responsibilities")
    activities: Mapped[list[PlanActivity]] = relationship(
        back_populates="responsibility",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PlanActivity.created_at.desc()",
    )


class PlanComment(Base):
    __tablename__ = "plan_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("performance_plans.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )
    comment: Mapped[str] = mapped_column(sa.Text, nullable=False)
    comment_type: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    plan: Mapped[PerformancePlan] = relationship(back_populates="comments")


class PlanActivity(Base):
    """Work logged against one responsibility (a "deliverable") of a plan."""

    __tablename__ = "plan_activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    responsibility_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("plan_responsibilities.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        default=PlanActivityStatus.pending.value,
        server_default=PlanActivityStatus.pending.value,
    )
    progress: Mapped[Optional[int]] = mapped_column(sa.Integer)
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    responsibility: Mapped[PlanResponsibility] = relationship(back_populates="activities")


# ── Appraisals ──────────────────────────────────────────────────────

class PerformanceAppraisal(Base):
    """End-of-period assessment of one employee.

    ``performance_areas`` holds ``{area, weight, rating, comments}`` items;
    ``comments`` is the workflow trail, one entry per action.
    """

    __tablename__ = "performance_appraisals"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "review_period", name="uq_appraisal_employee_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("performance_plans.id", ondelete="SET NULL"),
    )
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    review_period: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[str] = mapped_column(
        sa.String(30),
        nullable=False,
        default=AppraisalStatus.draft.value,
        server_default=AppraisalStatus.draft.value,
    )
    overall_rating: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(3, 2))
    performance_areas: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    achievements: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    goals: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    development_plan: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    self_assessment: Mapped[Optional[str]] = mapped_column(sa.Text)
    strengths: Mapped[Optional[str]] = mapped_column(sa.Text)
    areas_for_improvement: Mapped[Optional[str]] = mapped_column(sa.Text)
    comments: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    supervisor_approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reviewer_approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<PerformanceAppraisal {self.review_period} {self.status}>"
