"""Performance plan, deliverable and appraisal Pydantic v2 schemas."""


import enum
import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sirtis.common.constants import AppraisalStatus, PlanActivityStatus


# ── Requests ────────────────────────────────────────────────────────

class PlanCreate(BaseModel):
    plan_year: int = Field(..., ge=2000, le=2100)
    plan_period: str = Field("Annual", min_length=1, max_length=30)


class ResponsibilityIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    weight: int = Field(..., ge=0, le=100)


class PlanUpdate(BaseModel):
    responsibilities: list[ResponsibilityIn] = Field(..., min_length=1)


class WorkflowRequest(BaseModel):
    action: str = Field(..., min_length=1)
    comment: Optional[str] = None
    reviewer_id: Optional[uuid.UUID] = None


# ── Responses ───────────────────────────────────────────────────────

class ResponsibilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position: int
    title: str
    description: str
    weight: int


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    comment: str
    comment_type: str
    created_at: datetime


class PlanSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    supervisor_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None
    plan_year: int
    plan_period: str
    status: str
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PlanDetail(PlanSummary):
    supervisor_comments: Optional[str] = None
    reviewer_comments: Optional[str] = None
    supervisor_approved_at: Optional[datetime] = None
    reviewer_approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    responsibilities: list[ResponsibilityResponse] = []
    comments: list[CommentResponse] = []
    # Enriched by the service layer
    employee_name: Optional[str] = None
    next_actions: list[str] = []


# ── Deliverables / activities ───────────────────────────────────────

class ActivityCreate(BaseModel):
    responsibility_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: PlanActivityStatus = PlanActivityStatus.pending
    due_date: Optional[date] = None


class DeliverableProgress(BaseModel):
    progress: int = Field(..., ge=0, le=100)
    comment: Optional[str] = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    responsibility_id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: str
    progress: Optional[int] = None
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class DeliverableResponse(ResponsibilityResponse):
    plan_id: uuid.UUID
    activities: list[ActivityResponse] = []
    # Enriched by the service layer
    progress: int = 0
    current_update: Optional[str] = None


# ── Appraisals ──────────────────────────────────────────────────────

class PerformanceArea(BaseModel):
    area: str = Field(..., min_length=1, max_length=200)
    weight: int = Field(..., ge=0, le=100)
    rating: Optional[int] = Field(None, ge=1, le=5)
    comments: Optional[str] = None


class AppraisalCreate(BaseModel):
    employee_id: uuid.UUID
    review_period: str = Field(..., min_length=1, max_length=50)
    due_date: Optional[date] = None
    plan_id: Optional[uuid.UUID] = None
    supervisor_id: Optional[uuid.UUID] = None
    reviewer_id: Optional[uuid.UUID] = None
    performance_areas: list[PerformanceArea] = []


class AppraisalUpdate(BaseModel):
    """Owner fields first, then supervisor / HR fields; the service decides who may set what."""

    self_assessment: Optional[str] = None
    achievements: Optional[list[str]] = None
    goals: Optional[list[str]] = None
    development_plan: Optional[list[str]] = None

    performance_areas: Optional[list[PerformanceArea]] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    reviewer_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None


class AppraisalWorkflowRequest(BaseModel):
    action: str = Field(..., min_length=1)
    comment: Optional[str] = None


class AppraisalBulkAction(str, enum.Enum):
    approve = "approve"
    set_status = "set_status"


class AppraisalBulkRequest(BaseModel):
    action: AppraisalBulkAction
    appraisal_ids: list[uuid.UUID] = Field(..., min_length=1)
    status: Optional[AppraisalStatus] = None


class AppraisalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    plan_id: Optional[uuid.UUID] = None
    supervisor_id: Optional[uuid.UUID] = None
    reviewer_id: Optional[uuid.UUID] = None
    review_period: str
    due_date: Optional[date] = None
    status: str
    overall_rating: Optional[float] = None
    performance_areas: Optional[list[dict]] = None
    achievements: Optional[list] = None
    goals: Optional[list] = None
    development_plan: Optional[list] = None
    self_assessment: Optional[str] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    comments: Optional[list[dict]] = None
    submitted_at: Optional[datetime] = None
    supervisor_approved_at: Optional[datetime] = None
    reviewer_approved_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    # Enriched by the service layer
    employee_name: Optional[str] = None
    rating_label: Optional[str] = None
    completion_percentage: int = 0
    next_actions: list[str] = []
