"""Risk register ORM models: Risk, RiskMitigation, RiskAuditLog."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sirtis.common.constants import MitigationStatus, Priority, RiskStatus
from sirtis.common.utils import utcnow
from sirtis.database import Base


class Risk(Base):
    __tablename__ = "risks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    risk_id: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    category: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(150))
    probability: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    impact: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    risk_score: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=RiskStatus.open.value,
    )
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    date_identified: Mapped[date] = mapped_column(
        sa.Date, nullable=False, default=lambda: utcnow().date(),
    )
    tags: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    mitigations = relationship(
        "RiskMitigation",
        back_populates="risk",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        sa.Index("ix_risks_score", "risk_score"),
        sa.Index("ix_risks_department", "department"),
    )

    def __repr__(self) -> str:
        return f"<Risk {self.risk_id} score={self.risk_score}>"


class RiskMitigation(Base):
    __tablename__ = "risk_mitigations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    risk_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("risks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=MitigationStatus.planning.value,
    )
    priority: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=Priority.medium.value,
    )
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    progress: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0"),
    )
    budget: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    risk = relationship("Risk", back_populates="mitigations", lazy="raise")

    __table_args__ = (
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_risk_mitigations_progress"),
    )


class RiskAuditLog(Base):
    """Per-risk change log, shown on the risk's audit tab."""

    __tablename__ = "risk_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    risk_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("risks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    changes: Mapped[Optional[dict]] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
