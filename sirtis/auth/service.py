"""Auth service — credential checks, JWT sessions, refresh rotation, revocation."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User, UserSession
from sirtis.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_token,
    verify_password,
)
from sirtis.common.audit import create_audit_entry
from sirtis.common.constants import AuditOutcome, AuditSeverity, SessionRevokeReason
from sirtis.common.exceptions import ForbiddenException, UnauthorizedException
from sirtis.config import settings

logger = logging.getLogger(__name__)


# ── Credentials ─────────────────────────────────────────────────────

async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> User:
    """Return the active user matching *email*/*password*, or raise 401.

    Failures are written to the audit log; the caller must commit them
    before raising, since the request transaction is rolled back on error.
    """
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalars().first()

    reason: Optional[str] = None
    if user is None:
        reason = "unknown_email"
    elif not verify_password(password, user.password_hash):
        reason = "bad_password"
    elif not user.is_active:
        reason = "inactive"

    if reason is not None:
        logger.warning("Login failed for %s: %s", email, reason)
        await create_audit_entry(
            db,
            action="LOGIN_FAILED",
            resource="auth",
            user_id=user.id if user else None,
            details={"email": email, "reason": reason},
            ip_address=ip,
            user_agent=user_agent,
            severity=AuditSeverity.warning,
            outcome=AuditOutcome.failure,
        )
        await db.commit()
        raise UnauthorizedException(detail="Invalid email or password.")

    user.last_login_at = datetime.now(timezone.utc)
    logger.info("Login succeeded for %s", user.email)
    return user


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create JWT pair and persist session.  Returns (access, refresh, expires_in)."""
    access_token, expires_in = create_access_token(user.id, user.user_role)
    refresh_token = create_refresh_token(user.id)

    session = UserSession(
        user_id=user.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()

    return access_token, refresh_token, expires_in


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_session(
    db: AsyncSession,
    refresh_token_str: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[str, str, int]:
    """Validate refresh token, rotate it, and issue new token pair.

    Returns (new_access_token, new_refresh_token, expires_in).

    Each refresh token can only be used once. If a token consumed by an
    earlier rotation is presented again, ALL sessions for that user are
    revoked. Tokens of sessions ended any other way (logout, suspension)
    are simply refused.
    """
    try:
        payload = decode_token(refresh_token_str)
    except JWTError:
        raise ForbiddenException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise ForbiddenException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()
    if session is None:
        raise ForbiddenException(detail="Invalid refresh token.")

    if session.is_revoked and session.revoked_reason != SessionRevokeReason.rotated.value:
        raise ForbiddenException(detail="Refresh token revoked.")

    if session.is_revoked:
        logger.warning("Refresh token reuse detected for user %s", session.user_id)
        await revoke_all_user_sessions(db, session.user_id, SessionRevokeReason.token_reuse)
        await create_audit_entry(
            db,
            action="TOKEN_REUSE",
            resource="auth",
            user_id=session.user_id,
            ip_address=ip,
            user_agent=user_agent,
            severity=AuditSeverity.critical,
            outcome=AuditOutcome.failure,
        )
        # Persist revocations before raising; the request rollback would undo them.
        await db.commit()
        raise ForbiddenException(
            detail="Refresh token reuse detected. All sessions revoked for security.",
        )

    session.is_revoked = True
    session.revoked_reason = SessionRevokeReason.rotated.value
    await db.flush()

    user = await db.get(User, uuid.UUID(payload["sub"]))
    if user is None or not user.is_active:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    return await create_session(db, user, ip, user_agent)


# ── Revoke ──────────────────────────────────────────────────────────

async def revoke_all_user_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    reason: SessionRevokeReason,
) -> None:
    """Revoke every active session of a user."""
    await db.execute(
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.is_revoked.is_(False))
        .values(is_revoked=True, revoked_reason=reason.value)
    )
    await db.flush()


async def revoke_session(
    db: AsyncSession,
    token_hash: str,
    reason: SessionRevokeReason = SessionRevokeReason.logout,
) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        session.revoked_reason = reason.value
        await db.flush()
