"""MEAL ORM models: MealForm, MealSubmission, MealIndicator, MealFeedback."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sirtis.common.constants import FeedbackStatus, FormStatus, Priority
from sirtis.common.utils import utcnow
from sirtis.database import Base

meal_form_projects = sa.Table(
    "meal_form_projects",
    Base.metadata,
    sa.Column(
        "form_id",
        UUID(as_uuid=True),
        sa.ForeignKey("meal_forms.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "project_id",
        UUID(as_uuid=True),
        sa.ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class MealForm(Base):
    __tablename__ = "meal_forms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="SET NULL"),
    )
    version: Mapped[str] = mapped_column(sa.String(20), nullable=False, default="1.0")
    language: Mapped[str] = mapped_column(sa.String(20), nullable=False, default="en")
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=FormStatus.draft.value,
    )
    schema: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    published_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
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

    projects = relationship("Project", secondary=meal_form_projects, lazy="raise")

    def __repr__(self) -> str:
        return f"<MealForm {self.name} v{self.version} {self.status}>"


class MealSubmission(Base):
    __tablename__ = "meal_submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("meal_forms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="SET NULL"),
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    user_email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    submitted_by: Mapped[str] = mapped_column(sa.String(200), nullable=False, default="Anonymous")
    latitude: Mapped[Optional[float]] = mapped_column(sa.Float)
    longitude: Mapped[Optional[float]] = mapped_column(sa.Float)
    attachments: Mapped[Optional[list]] = mapped_column(JSONB)
    data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    device_info: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )


class MealIndicator(Base):
    __tablename__ = "meal_indicators"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="SET NULL"),
    )
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(sa.String(50))
    baseline: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    target: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    current: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    # Needed to keep ``average`` a true running mean.
    observation_count: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0"),
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


class MealFeedback(Base):
    """Community feedback: complaints, suggestions, compliments and inquiries."""

    __tablename__ = "meal_feedback"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    priority: Mapped[str] = mapped_column(
        sa.String(10), nullable=False, default=Priority.medium.value, server_default=Priority.medium.value,
    )
    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        default=FeedbackStatus.open.value,
        server_default=FeedbackStatus.open.value,
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    # Display name; "Anonymous" when the submitter asked not to be named.
    submitted_by: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    submitted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    is_anonymous: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    contact_method: Mapped[Optional[str]] = mapped_column(sa.String(100))
    project: Mapped[Optional[str]] = mapped_column(sa.String(200))
    location: Mapped[Optional[str]] = mapped_column(sa.String(200))
    tags: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    assigned_to: Mapped[Optional[str]] = mapped_column(sa.String(200))
    resolution: Mapped[Optional[str]] = mapped_column(sa.Text)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    escalation_level: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    responses: Mapped[list[MealFeedbackResponse]] = relationship(
        back_populates="feedback",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MealFeedbackResponse.created_at",
    )


class MealFeedbackResponse(Base):
    __tablename__ = "meal_feedback_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    feedback_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("meal_feedback.id", ondelete="CASCADE"),
        nullable=False,
    )
    responded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    responded_by: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    feedback: Mapped[MealFeedback] = relationship(back_populates="responses")
