"""Call centre service — call logging, systematic numbering, case tracking."""

from __future__ import annotations

import logging
import re
import uuid
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User
from sirtis.call_centre.models import CallRecord
from sirtis.call_centre.schemas import (
    CallCreate,
    CallResponse,
    CaseResponse,
    OfficerResponse,
)
from sirtis.common.audit import AuditLog, apply_changes, create_audit_entry, diff_values
from sirtis.common.constants import (
    AccessLevel,
    CallStatus,
    CallType,
    CommunicationMode,
    Module,
    UserRole,
    has_access,
)
from sirtis.common.exceptions import BadRequestException, NotFoundException
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.pagination import PaginatedResponse, PaginationParams, paginate
from sirtis.common.utils import as_utc, utcnow
from sirtis.config import settings

logger = logging.getLogger(__name__)

CLOSED_STATUSES = {CallStatus.resolved.value, CallStatus.closed.value}

# UI mode → (call type, communication mode)
_MODE_MAP: dict[str, tuple[CallType, CommunicationMode]] = {
    "inbound": (CallType.inbound, CommunicationMode.phone),
    "outbound": (CallType.outbound, CommunicationMode.phone),
    "whatsapp": (CallType.inbound, CommunicationMode.whatsapp),
    "walk": (CallType.inbound, CommunicationMode.walk_in),
    "walk_in": (CallType.inbound, CommunicationMode.walk_in),
    "text": (CallType.inbound, CommunicationMode.text),
}

_DURATION_RE = re.compile(r"(\d+)")


# ── Mode / duration helpers ─────────────────────────────────────────

def mode_to_enums(mode: Optional[str]) -> tuple[CallType, CommunicationMode]:
    """Unknown modes fall back to an inbound phone call."""
    return _MODE_MAP.get((mode or "").strip().lower(), _MODE_MAP["inbound"])


def enums_to_mode(call_type: str, communication_mode: str) -> str:
    if call_type == CallType.outbound.value:
        return "outbound"
    return {
        CommunicationMode.whatsapp.value: "whatsapp",
        CommunicationMode.walk_in.value: "walk",
        CommunicationMode.text.value: "text",
    }.get(communication_mode, "inbound")


def parse_duration_minutes(raw: Optional[str]) -> Optional[int]:
    """``"15"``, ``"15 min"``, ``"15 minutes"`` → 15; ``None`` if no number."""
    if not raw:
        return None
    match = _DURATION_RE.search(raw)
    return int(match.group(1)) if match else None


def duration_minutes(record: CallRecord) -> Optional[int]:
    if record.call_end_time is None or record.call_start_time is None:
        return None
    delta = as_utc(record.call_end_time) - as_utc(record.call_start_time)
    return max(int(delta.total_seconds() // 60), 0)


def case_due_date(record: CallRecord) -> date:
    if record.follow_up_date:
        return record.follow_up_date
    created = as_utc(record.created_at) or utcnow()
    return (created + timedelta(days=settings.CASE_DUE_DAYS)).date()


def is_overdue(record: CallRecord, today: Optional[date] = None) -> bool:
    today = today or utcnow().date()
    return today > case_due_date(record) and record.status not in CLOSED_STATUSES


def to_call_response(record: CallRecord) -> CallResponse:
    item = CallResponse.model_validate(record)
    item.mode = enums_to_mode(record.call_type, record.communication_mode)
    item.duration_minutes = duration_minutes(record)
    return item


def to_case_response(record: CallRecord, officer_name: Optional[str] = None) -> CaseResponse:
    base = to_call_response(record)
    return CaseResponse(
        **base.model_dump(),
        due_date=case_due_date(record),
        is_overdue=is_overdue(record),
        officer_name=officer_name,
    )


# ── Systematic numbering ────────────────────────────────────────────

async def next_case_number(db: AsyncSession, year: int) -> str:
    """``CASE-{year}-{n:08d}``, one past the highest number issued this year.

    Numbers compare as integers, so unpadded legacy rows count too.
    """
    prefix = f"CASE-{year}-"
    result = await db.execute(
        select(CallRecord.case_number).where(CallRecord.case_number.like(f"{prefix}%"))
    )
    highest = 0
    for (number,) in result.all():
        tail = number[len(prefix):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{prefix}{highest + 1:08d}"


async def next_call_number(db: AsyncSession, year: int) -> str:
    """``{n:07d}/{year}``, one past the highest number issued this year."""
    suffix = f"/{year}"
    result = await db.execute(
        select(CallRecord.call_number).where(CallRecord.call_number.like(f"%{suffix}"))
    )
    highest = 0
    for (number,) in result.all():
        head = number[: -len(suffix)]
        if head.isdigit():
            highest = max(highest, int(head))
    return f"{highest + 1:07d}{suffix}"


# ═════════════════════════════════════════════════════════════════════
# CallService
# ═════════════════════════════════════════════════════════════════════


class CallService:

    @staticmethod
    async def _officer_names(db: AsyncSession, ids: set[uuid.UUID]) -> dict[uuid.UUID, str]:
        if not ids:
            return {}
        rows = await db.execute(
            select(User.id, User.first_name, User.last_name).where(User.id.in_(ids))
        )
        return {r.id: f"{r.first_name} {r.last_name}".strip() for r in rows.all()}

    @staticmethod
    async def _check_officer(db: AsyncSession, officer_id: Optional[uuid.UUID]) -> None:
        if officer_id is None:
            return
        officer = await db.get(User, officer_id)
        if officer is None or not officer.is_active:
            raise BadRequestException("Assigned officer is not an active user.")

    # ── Calls ───────────────────────────────────────────────────────

    @staticmethod
    async def list_calls(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        status: Optional[str] = None,
        mode: Optional[str] = None,
        is_case: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> PaginatedResponse:
        query = select(CallRecord).order_by(CallRecord.created_at.desc())
        filters: dict[str, Any] = {
            "status": status,
            "is_case": is_case,
            "created_at__from": date_from,
            "created_at__to": date_to,
        }
        if mode:
            call_type, comm = mode_to_enums(mode)
            filters["call_type"] = call_type.value
            filters["communication_mode"] = comm.value
        query = apply_filters(query, CallRecord, filters)
        query = apply_search(
            query,
            CallRecord,
            search,
            ["case_number", "call_number", "caller_name", "caller_phone", "client_name"],
        )
        return await paginate(db, query, pagination, model=CallRecord)

    @staticmethod
    async def get_call(db: AsyncSession, call_id: uuid.UUID) -> CallRecord:
        record = await db.get(CallRecord, call_id)
        if record is None:
            raise NotFoundException("CallRecord", str(call_id))
        return record

    @staticmethod
    async def create_call(
        db: AsyncSession,
        data: CallCreate,
        *,
        actor_id: uuid.UUID,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> CallRecord:
        await CallService._check_officer(db, data.assigned_officer_id)

        now = utcnow()
        call_type, comm = mode_to_enums(data.mode)
        values = data.model_dump(exclude={"mode", "priority"})
        record = CallRecord(
            **values,
            case_number=await next_case_number(db, now.year),
            call_number=await next_call_number(db, now.year),
            call_type=call_type.value,
            communication_mode=comm.value,
            priority=data.priority.value,
            status=CallStatus.open.value,
            call_start_time=now,
            created_by=actor_id,
        )
        db.add(record)
        # A concurrent insert taking the same number surfaces as IntegrityError → 409.
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE",
            resource="call_record",
            resource_id=record.id,
            user_id=actor_id,
            new_values={
                "case_number": record.case_number,
                "call_number": record.call_number,
                "status": record.status,
                "is_case": record.is_case,
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Call %s logged (case %s)", record.call_number, record.case_number)
        return record

    @staticmethod
    async def update_call(
        db: AsyncSession,
        call_id: uuid.UUID,
        changes: dict[str, Any],
        *,
        actor_id: uuid.UUID,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> CallRecord:
        """Apply *changes* (an ``exclude_unset`` dump); omitted fields keep their values."""
        record = await CallService.get_call(db, call_id)

        mode = changes.pop("mode", None)
        if mode:
            call_type, comm = mode_to_enums(mode)
            changes["call_type"] = call_type.value
            changes["communication_mode"] = comm.value

        raw_duration = changes.pop("duration", None)
        minutes = parse_duration_minutes(raw_duration)
        if minutes is not None:
            changes["call_end_time"] = as_utc(record.call_start_time) + timedelta(minutes=minutes)

        if "assigned_officer_id" in changes:
            await CallService._check_officer(db, changes["assigned_officer_id"])

        old_values, new_values = apply_changes(record, changes)
        if not new_values:
            return record
        await db.flush()

        await create_audit_entry(
            db,
            action="UPDATE",
            resource="call_record",
            resource_id=record.id,
            user_id=actor_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return record

    # ── Cases ───────────────────────────────────────────────────────

    @staticmethod
    async def list_cases(
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        officer_id: Optional[uuid.UUID] = None,
        overdue_only: bool = False,
    ) -> list[CaseResponse]:
        query = (
            select(CallRecord)
            .where(CallRecord.is_case.is_(True))
            .order_by(CallRecord.created_at.desc())
        )
        query = apply_filters(
            query, CallRecord, {"status": status, "assigned_officer_id": officer_id},
        )
        records = (await db.execute(query)).scalars().all()
        names = await CallService._officer_names(
            db, {r.assigned_officer_id for r in records if r.assigned_officer_id},
        )
        cases = [to_case_response(r, names.get(r.assigned_officer_id)) for r in records]
        if overdue_only:
            cases = [c for c in cases if c.is_overdue]
        return cases

    @staticmethod
    async def get_case(db: AsyncSession, case_id: uuid.UUID) -> CaseResponse:
        record = await CallService.get_call(db, case_id)
        if not record.is_case:
            raise NotFoundException("Case", str(case_id))
        names = await CallService._officer_names(
            db, {record.assigned_officer_id} if record.assigned_officer_id else set(),
        )
        return to_case_response(record, names.get(record.assigned_officer_id))

    @staticmethod
    async def case_history(db: AsyncSession, case_id: uuid.UUID) -> list[dict[str, Any]]:
        """Audit entries for a case, oldest first, with field-level diffs."""
        await CallService.get_case(db, case_id)
        rows = await db.execute(
            select(AuditLog, User.first_name, User.last_name)
            .outerjoin(User, User.id == AuditLog.user_id)
            .where(
                AuditLog.resource == "call_record",
                AuditLog.resource_id == str(case_id),
            )
            .order_by(AuditLog.created_at.asc())
        )
        history = []
        for entry, first, last in rows.all():
            history.append(
                {
                    "id": str(entry.id),
                    "action": entry.action,
                    "changed_by": f"{first} {last}".strip() if first else None,
                    "changed_at": entry.created_at.isoformat() if entry.created_at else None,
                    "changes": diff_values(entry.old_values, entry.new_values),
                }
            )
        return history

    # ── Officers / summary ──────────────────────────────────────────

    @staticmethod
    async def list_officers(db: AsyncSession) -> list[OfficerResponse]:
        roles = [r.value for r in UserRole if has_access(r, Module.call_centre, AccessLevel.view)]
        users = (
            await db.execute(
                select(User)
                .where(User.is_active.is_(True), User.role.in_(roles))
                .order_by(User.first_name, User.last_name)
            )
        ).scalars().all()
        return [
            OfficerResponse(
                id=u.id, name=u.full_name, email=u.email, role=u.role, department=u.department,
            )
            for u in users
        ]

    @staticmethod
    async def summary(db: AsyncSession) -> dict[str, Any]:
        records = (await db.execute(select(CallRecord))).scalars().all()
        today = utcnow().date()

        by_status = Counter(r.status for r in records)
        by_mode = Counter(enums_to_mode(r.call_type, r.communication_mode) for r in records)
        by_validity = Counter((r.validity or "unknown") for r in records)
        cases = [r for r in records if r.is_case]
        vouchers = [r for r in records if r.voucher_issued]

        calls_today = sum(1 for r in records if as_utc(r.call_start_time).date() == today)

        return {
            "total_calls": len(records),
            "calls_today": calls_today,
            "total_cases": len(cases),
            "open_cases": sum(1 for c in cases if c.status not in CLOSED_STATUSES),
            "overdue_cases": sum(1 for c in cases if is_overdue(c, today)),
            "by_status": dict(by_status),
            "by_mode": dict(by_mode),
            "by_validity": dict(by_validity),
            "vouchers_issued": len(vouchers),
            "voucher_value_total": float(sum((v.voucher_value or 0) for v in vouchers)),
        }
