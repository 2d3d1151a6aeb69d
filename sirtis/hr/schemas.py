"""HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Summary / *ListItem → compact read representations
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sirtis.common.constants import EmploymentType, GenderType, QualificationType, VerificationStatus


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    manager_name: Optional[str] = Field(None, max_length=200)
    budget: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=150)


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    manager_name: Optional[str] = None
    budget: Optional[float] = Field(None, ge=0)
    location: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str
    description: Optional[str] = None
    manager_name: Optional[str] = None
    budget: Optional[float] = None
    location: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    # Enriched by the service layer
    employee_count: int = 0


class DepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee."""

    employee_number: Optional[str] = Field(None, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    personal_email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[dict[str, Any]] = None
    position: str = Field(..., min_length=1, max_length=150)
    employment_type: Optional[EmploymentType] = None
    department_id: uuid.UUID
    supervisor_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    base_salary: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)


class EmployeeUpdate(BaseModel):
    """Partial update — all fields optional."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    personal_email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[dict[str, Any]] = None
    position: Optional[str] = Field(None, min_length=1, max_length=150)
    employment_type: Optional[EmploymentType] = None
    department_id: Optional[uuid.UUID] = None
    supervisor_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    base_salary: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class ProfileUpdate(BaseModel):
    """Fields an employee may change on their own record."""

    phone: Optional[str] = Field(None, max_length=30)
    personal_email: Optional[EmailStr] = None
    address: Optional[str] = None
    emergency_contact: Optional[dict[str, Any]] = None


class ArchiveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeSummary(BaseModel):
    """Compact representation used in lists and nested references."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_number: str
    first_name: str
    last_name: str
    email: str
    position: str
    status: str


class EmployeeDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_number: str
    user_id: Optional[uuid.UUID] = None
    first_name: str
    last_name: str
    email: str
    personal_email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[dict[str, Any]] = None
    position: str
    employment_type: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    supervisor_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    base_salary: Optional[float] = None
    currency: str = "USD"
    status: str
    archived_at: Optional[datetime] = None
    archive_reason: Optional[str] = None
    created_at: datetime
    # Enriched by the service layer
    department: Optional[DepartmentBrief] = None
    supervisor: Optional[EmployeeSummary] = None


# ═════════════════════════════════════════════════════════════════════
# Job descriptions
# ═════════════════════════════════════════════════════════════════════


class KeyResponsibility(BaseModel):
    description: str = Field(..., min_length=1)
    weight: int = Field(0, ge=0, le=100)
    tasks: list[str] = Field(..., min_length=1)


class JobDescriptionCreate(BaseModel):
    employee_id: uuid.UUID
    job_title: str = Field(..., min_length=1, max_length=150)
    location: str = Field(..., min_length=1, max_length=150)
    job_summary: Optional[str] = None
    key_responsibilities: list[KeyResponsibility] = []
    essential_experience: Optional[str] = None
    essential_skills: Optional[str] = None
    acknowledgment: bool = False


class JobDescriptionUpdate(BaseModel):
    job_title: Optional[str] = Field(None, min_length=1, max_length=150)
    location: Optional[str] = Field(None, min_length=1, max_length=150)
    job_summary: Optional[str] = None
    key_responsibilities: Optional[list[KeyResponsibility]] = None
    essential_experience: Optional[str] = None
    essential_skills: Optional[str] = None
    acknowledgment: Optional[bool] = None


class JobDescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    job_title: str
    location: str
    job_summary: Optional[str] = None
    key_responsibilities: Optional[list[dict[str, Any]]] = None
    essential_experience: Optional[str] = None
    essential_skills: Optional[str] = None
    acknowledgment: bool
    version: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Qualifications
# ═════════════════════════════════════════════════════════════════════


class QualificationCreate(BaseModel):
    type: QualificationType
    title: str = Field(..., min_length=1, max_length=200)
    institution: Optional[str] = Field(None, max_length=200)
    issuer: Optional[str] = Field(None, max_length=200)
    date_obtained: date
    expiry_date: Optional[date] = None
    level: Optional[str] = Field(None, max_length=100)
    grade: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class QualificationUpdate(BaseModel):
    type: Optional[QualificationType] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    institution: Optional[str] = Field(None, max_length=200)
    issuer: Optional[str] = Field(None, max_length=200)
    date_obtained: Optional[date] = None
    expiry_date: Optional[date] = None
    level: Optional[str] = Field(None, max_length=100)
    grade: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class QualificationVerify(BaseModel):
    status: VerificationStatus


class QualificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    type: str
    title: str
    institution: Optional[str] = None
    issuer: Optional[str] = None
    date_obtained: date
    expiry_date: Optional[date] = None
    level: Optional[str] = None
    grade: Optional[str] = None
    description: Optional[str] = None
    status: str
    verification_status: str
    verified_by: Optional[uuid.UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
