"""MEAL Pydantic v2 schemas — forms, submissions, indicators and feedback."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from sirtis.common.constants import CalculationType, FeedbackStatus, FeedbackType, Priority


# ── Forms ───────────────────────────────────────────────────────────

class FormCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    project_ids: list[uuid.UUID] = Field(default_factory=list, description="Additional assigned projects")
    version: str = Field("1.0", max_length=20)
    language: str = Field("en", max_length=20)
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class FormUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    project_ids: Optional[list[uuid.UUID]] = None
    version: Optional[str] = Field(None, max_length=20)
    language: Optional[str] = Field(None, max_length=20)
    schema_: Optional[dict[str, Any]] = Field(None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class FormResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    version: str
    language: str
    status: str
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    project_ids: list[uuid.UUID] = Field(default_factory=list)
    submission_count: int = 0


# ── Submissions ─────────────────────────────────────────────────────

class IndicatorMapping(BaseModel):
    indicator_id: uuid.UUID
    field_key: str
    calculation_type: CalculationType = CalculationType.sum


class SubmissionCreate(BaseModel):
    project_id: Optional[uuid.UUID] = None
    data: dict[str, Any] = Field(default_factory=dict)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    attachments: Optional[list[Any]] = None
    # Client-reported context
    location: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    screen_resolution: Optional[str] = None
    connection_type: Optional[str] = None
    submission_source: Optional[str] = None
    completion_time: Optional[float] = Field(None, ge=0, description="Seconds spent filling the form")
    form_version: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    indicator_mappings: list[IndicatorMapping] = Field(default_factory=list)


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    form_id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    user_email: Optional[str] = None
    submitted_by: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    attachments: Optional[list[Any]] = None
    data: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")
    device_info: dict[str, Any]
    submitted_at: datetime


# ── Indicators ──────────────────────────────────────────────────────

class IndicatorCreate(BaseModel):
    project_id: Optional[uuid.UUID] = None
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    unit: Optional[str] = Field(None, max_length=50)
    baseline: Optional[float] = None
    target: Optional[float] = None
    current: Optional[float] = None


class IndicatorUpdate(BaseModel):
    project_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    unit: Optional[str] = Field(None, max_length=50)
    baseline: Optional[float] = None
    target: Optional[float] = None
    current: Optional[float] = None


class IndicatorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    code: str
    name: str
    unit: Optional[str] = None
    baseline: Optional[float] = None
    target: Optional[float] = None
    current: Optional[float] = None
    observation_count: int
    updated_at: datetime
    progress_pct: Optional[float] = None


# ── Feedback ────────────────────────────────────────────────────────

class FeedbackCreate(BaseModel):
    type: FeedbackType
    priority: Priority = Priority.medium
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    is_anonymous: bool = False
    contact_method: Optional[str] = Field(None, max_length=100)
    project: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    tags: list[str] = []


class FeedbackUpdate(BaseModel):
    status: Optional[FeedbackStatus] = None
    priority: Optional[Priority] = None
    assigned_to: Optional[str] = Field(None, max_length=200)
    resolution: Optional[str] = None
    escalation_level: Optional[int] = Field(None, ge=0, le=5)
    tags: Optional[list[str]] = None


class FeedbackReply(BaseModel):
    message: str = Field(..., min_length=1)
    is_internal: bool = False


class FeedbackReplyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    responded_by: str
    message: str
    is_internal: bool
    created_at: datetime


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    priority: str
    status: str
    title: str
    description: str
    submitted_by: str
    is_anonymous: bool
    contact_method: Optional[str] = None
    project: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[list[str]] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    escalation_level: int
    created_at: datetime
    updated_at: datetime
    responses: list[FeedbackReplyResponse] = []
