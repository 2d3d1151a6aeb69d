"""Document ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from sirtis.common.constants import DocumentLevel
from sirtis.common.utils import utcnow
from sirtis.database import Base


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    filename: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    size: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    path: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    category: Mapped[Optional[str]] = mapped_column(sa.String(100))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    tags: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    is_public: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    access_level: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=DocumentLevel.internal.value,
    )
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
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

    __table_args__ = (
        sa.Index("ix_documents_category", "category"),
        sa.Index("ix_documents_uploaded_by", "uploaded_by"),
    )

    @property
    def level(self) -> DocumentLevel:
        try:
            return DocumentLevel(self.access_level)
        except ValueError:
            return DocumentLevel.internal
