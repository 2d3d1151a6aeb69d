"""Call centre ORM model: CallRecord (a call, optionally flagged as a case)."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from sirtis.common.constants import CallStatus, CallType, CommunicationMode, Priority
from sirtis.common.utils import utcnow
from sirtis.database import Base


class CallRecord(Base):
    __tablename__ = "call_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # ── Systematic numbers ──────────────────────────────────────────
    case_number: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    call_number: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)

    # ── Caller ──────────────────────────────────────────────────────
    caller_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    caller_phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    caller_email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    caller_age: Mapped[Optional[str]] = mapped_column(sa.String(30))
    caller_gender: Mapped[Optional[str]] = mapped_column(sa.String(20))
    caller_key_population: Mapped[Optional[str]] = mapped_column(sa.String(100))
    caller_province: Mapped[Optional[str]] = mapped_column(sa.String(100))
    caller_address: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Client (the person the call is about) ───────────────────────
    client_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    client_age: Mapped[Optional[str]] = mapped_column(sa.String(30))
    client_sex: Mapped[Optional[str]] = mapped_column(sa.String(20))
    client_address: Mapped[Optional[str]] = mapped_column(sa.Text)
    client_province: Mapped[Optional[str]] = mapped_column(sa.String(100))

    # ── Call ────────────────────────────────────────────────────────
    call_type: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=CallType.inbound.value,
    )
    communication_mode: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=CommunicationMode.phone.value,
    )
    purpose: Mapped[Optional[str]] = mapped_column(sa.String(200))
    validity: Mapped[Optional[str]] = mapped_column(sa.String(20))
    new_or_repeat_call: Mapped[Optional[str]] = mapped_column(sa.String(20))
    language: Mapped[Optional[str]] = mapped_column(sa.String(50))
    how_did_you_hear: Mapped[Optional[str]] = mapped_column(sa.String(200))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    call_start_time: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow,
    )
    call_end_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Case ────────────────────────────────────────────────────────
    is_case: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    category: Mapped[Optional[str]] = mapped_column(sa.String(100))
    perpetrator: Mapped[Optional[str]] = mapped_column(sa.String(200))
    services_recommended: Mapped[Optional[str]] = mapped_column(sa.Text)
    referral: Mapped[Optional[str]] = mapped_column(sa.Text)
    voucher_issued: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    voucher_value: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    priority: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=Priority.medium.value,
    )
    status: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=CallStatus.open.value,
    )
    assigned_officer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    resolution: Mapped[Optional[str]] = mapped_column(sa.Text)
    follow_up_required: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )
    follow_up_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    # ── Timestamps ──────────────────────────────────────────────────
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

    __table_args__ = (
        sa.Index("ix_call_records_status", "status"),
        sa.Index("ix_call_records_created_at", "created_at"),
        sa.Index("ix_call_records_officer", "assigned_officer_id"),
    )

    def __repr__(self) -> str:
        return f"<CallRecord {self.call_number} {self.status}>"
