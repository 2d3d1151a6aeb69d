"""Admin Pydantic schemas — user management, bulk actions, settings."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sirtis.common.constants import UserRole


# ── Users ───────────────────────────────────────────────────────────

class UserCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[UserRole] = None
    department: Optional[str] = Field(None, max_length=150)
    position: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=30)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    department: Optional[str] = Field(None, max_length=150)
    position: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=30)


class BulkUserAction(BaseModel):
    user_ids: list[uuid.UUID] = Field(..., min_length=1)
    action: Literal["suspend", "activate", "delete"]


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    department: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    status: str
    must_change_password: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


# ── Settings ────────────────────────────────────────────────────────

SettingsSection = Literal["system", "email", "security", "backup", "notifications"]


class SettingsUpdate(BaseModel):
    values: dict[str, Any] = Field(..., description="Keys to change in the section")
