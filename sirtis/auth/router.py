"""Auth router — password login, token refresh, logout, current user profile."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import get_current_user
from sirtis.auth.models import User
from sirtis.auth.schemas import (
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    TokenResponse,
    UserInfo,
)
from sirtis.auth.service import authenticate, create_session, refresh_session, revoke_session
from sirtis.common.audit import create_audit_entry
from sirtis.common.constants import ROLE_DOCUMENT_LEVEL, ROLE_FLAGS, ROLE_MODULE_ACCESS, UserRole
from sirtis.common.rate_limit import limiter
from sirtis.common.utils import client_ip
from sirtis.config import settings
from sirtis.database import get_db
from sirtis.hr.models import Employee

router = APIRouter(prefix="", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRY_HOURS * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# ── POST /login — Email + password ─────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    ip = client_ip(request)
    user_agent = request.headers.get("user-agent")

    user = await authenticate(db, body.email, body.password, ip=ip, user_agent=user_agent)
    access_token, refresh_token, expires_in = await create_session(db, user, ip, user_agent)

    await create_audit_entry(
        db,
        action="LOGIN",
        resource="auth",
        resource_id=user.id,
        user_id=user.id,
        ip_address=ip,
        user_agent=user_agent,
    )

    _set_session_cookie(response, access_token)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=UserInfo(
            id=user.id,
            email=user.email,
            display_name=user.full_name,
            role=user.role,
            department=user.department,
            position=user.position,
        ),
    )


# ── POST /refresh — Rotate token pair ──────────────────────────────

@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    access_token, new_refresh, expires_in = await refresh_session(
        db,
        body.refresh_token,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    _set_session_cookie(response, access_token)
    return RefreshResponse(
        access_token=access_token,
        refresh_token=new_refresh,
        expires_in=expires_in,
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, request.state.token_hash)

    await create_audit_entry(
        db,
        action="LOGOUT",
        resource="auth",
        resource_id=user.id,
        user_id=user.id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    role: UserRole = request.state.user_role
    employee_id = (
        await db.execute(select(Employee.id).where(Employee.user_id == user.id))
    ).scalar()

    return MeResponse(
        id=user.id,
        email=user.email,
        display_name=user.full_name,
        role=role.value,
        department=user.department,
        position=user.position,
        employee_id=employee_id,
        module_access={m.value: lvl.value for m, lvl in ROLE_MODULE_ACCESS[role].items()},
        document_clearance=ROLE_DOCUMENT_LEVEL[role].value,
        flags=ROLE_FLAGS[role],
        must_change_password=user.must_change_password,
    )
