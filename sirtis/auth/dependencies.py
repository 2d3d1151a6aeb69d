"""Auth dependencies — session resolution and module-level access control."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User, UserSession
from sirtis.auth.security import decode_token, hash_token
from sirtis.common.constants import AccessLevel, Module, UserRole, has_access
from sirtis.common.exceptions import ForbiddenException, UnauthorizedException
from sirtis.common.logging_config import set_user_id
from sirtis.config import settings
from sirtis.database import get_db


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = extract_token(request)
    if not token:
        raise UnauthorizedException(detail="Missing session token.")

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise UnauthorizedException(detail="Token has expired.")
    except JWTError:
        raise UnauthorizedException(detail="Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException(detail="Invalid token type.")

    token_hash = hash_token(token)
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == token_hash,
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException(detail="Session invalid or expired.")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedException(detail="Invalid token.")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    # The stored role wins over the token claim so demotions apply at once.
    request.state.user_role = user.user_role
    request.state.token_hash = token_hash
    set_user_id(str(user.id))
    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        user_role: UserRole = request.state.user_role
        if user_role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


# ── Module access dependency ────────────────────────────────────────

def require_module_access(module: Module, level: AccessLevel = AccessLevel.view) -> Callable:
    """Return a dependency that requires *level* (or higher) on *module*."""

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        user_role: UserRole = request.state.user_role
        if not has_access(user_role, module, level):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' needs '{level.value}' access to '{module.value}'.",
            )
        return user

    return _check


def role_of(request: Request) -> UserRole:
    return request.state.user_role
