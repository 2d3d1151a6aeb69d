"""Risk register Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sirtis.common.constants import (
    MitigationStatus,
    Priority,
    RiskCategory,
    RiskRating,
    RiskStatus,
)


class RiskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: RiskCategory
    probability: RiskRating
    impact: RiskRating
    department: Optional[str] = Field(None, max_length=150)
    owner_id: Optional[uuid.UUID] = None
    status: RiskStatus = RiskStatus.open
    date_identified: Optional[date] = None
    tags: list[str] = Field(default_factory=list)


class RiskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[RiskCategory] = None
    probability: Optional[RiskRating] = None
    impact: Optional[RiskRating] = None
    department: Optional[str] = Field(None, max_length=150)
    owner_id: Optional[uuid.UUID] = None
    status: Optional[RiskStatus] = None
    tags: Optional[list[str]] = None


class RiskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    risk_id: str
    title: str
    description: str
    category: str
    department: Optional[str] = None
    probability: str
    impact: str
    risk_score: int
    status: str
    owner_id: Optional[uuid.UUID] = None
    created_by_id: Optional[uuid.UUID] = None
    date_identified: date
    tags: Optional[list[str]] = None
    created_at: datetime
    updated_at: datetime
    risk_level: str = "low"


class MitigationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: MitigationStatus = MitigationStatus.planning
    priority: Priority = Priority.medium
    owner_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None
    progress: int = Field(0, ge=0, le=100)
    budget: Optional[float] = Field(None, ge=0)


class MitigationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[MitigationStatus] = None
    priority: Optional[Priority] = None
    owner_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    budget: Optional[float] = Field(None, ge=0)


class MitigationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    risk_id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    owner_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None
    progress: int
    budget: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class RiskLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    risk_id: uuid.UUID
    action: str
    user_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    changes: Optional[dict] = None
    created_at: datetime
