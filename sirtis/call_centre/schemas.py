"""Call centre Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sirtis.common.constants import CallStatus, Priority


def _yes_no(value: Any) -> Any:
    """Accept the UI's "YES"/"NO" strings as booleans."""
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "Y", "TRUE", "1")
    return value


class _CallFields(BaseModel):
    caller_name: Optional[str] = Field(None, max_length=200)
    caller_phone: Optional[str] = Field(None, max_length=30)
    caller_email: Optional[str] = Field(None, max_length=255)
    caller_age: Optional[str] = Field(None, max_length=30)
    caller_gender: Optional[str] = Field(None, max_length=20)
    caller_key_population: Optional[str] = Field(None, max_length=100)
    caller_province: Optional[str] = Field(None, max_length=100)
    caller_address: Optional[str] = None
    client_name: Optional[str] = Field(None, max_length=200)
    client_age: Optional[str] = Field(None, max_length=30)
    client_sex: Optional[str] = Field(None, max_length=20)
    client_address: Optional[str] = None
    client_province: Optional[str] = Field(None, max_length=100)
    purpose: Optional[str] = Field(None, max_length=200)
    validity: Optional[str] = Field(None, max_length=20)
    new_or_repeat_call: Optional[str] = Field(None, max_length=20)
    language: Optional[str] = Field(None, max_length=50)
    how_did_you_hear: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    perpetrator: Optional[str] = Field(None, max_length=200)
    services_recommended: Optional[str] = None
    referral: Optional[str] = None
    voucher_value: Optional[float] = Field(None, ge=0)
    follow_up_date: Optional[date] = None
    assigned_officer_id: Optional[uuid.UUID] = None


class CallCreate(_CallFields):
    mode: str = Field("inbound", description="inbound | outbound | whatsapp | walk | text")
    is_case: bool = False
    voucher_issued: bool = False
    follow_up_required: bool = False
    priority: Priority = Priority.medium

    _normalize_flags = field_validator(
        "is_case", "voucher_issued", "follow_up_required", mode="before",
    )(_yes_no)


class CallUpdate(_CallFields):
    mode: Optional[str] = None
    is_case: Optional[bool] = None
    voucher_issued: Optional[bool] = None
    follow_up_required: Optional[bool] = None
    priority: Optional[Priority] = None
    status: Optional[CallStatus] = None
    resolution: Optional[str] = None
    duration: Optional[str] = Field(None, description='Call length, e.g. "15" or "15 min"')

    _normalize_flags = field_validator(
        "is_case", "voucher_issued", "follow_up_required", mode="before",
    )(_yes_no)


class CaseUpdate(BaseModel):
    status: Optional[CallStatus] = None
    assigned_officer_id: Optional[uuid.UUID] = None
    follow_up_date: Optional[date] = None
    follow_up_required: Optional[bool] = None
    notes: Optional[str] = None
    resolution: Optional[str] = None
    priority: Optional[Priority] = None

    _normalize_flags = field_validator("follow_up_required", mode="before")(_yes_no)


class CallResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    case_number: str
    call_number: str
    caller_name: Optional[str] = None
    caller_phone: Optional[str] = None
    caller_email: Optional[str] = None
    caller_age: Optional[str] = None
    caller_gender: Optional[str] = None
    caller_key_population: Optional[str] = None
    caller_province: Optional[str] = None
    caller_address: Optional[str] = None
    client_name: Optional[str] = None
    client_age: Optional[str] = None
    client_sex: Optional[str] = None
    client_address: Optional[str] = None
    client_province: Optional[str] = None
    call_type: str
    communication_mode: str
    purpose: Optional[str] = None
    validity: Optional[str] = None
    new_or_repeat_call: Optional[str] = None
    language: Optional[str] = None
    how_did_you_hear: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    is_case: bool
    category: Optional[str] = None
    perpetrator: Optional[str] = None
    services_recommended: Optional[str] = None
    referral: Optional[str] = None
    voucher_issued: bool
    voucher_value: Optional[float] = None
    priority: str
    status: str
    assigned_officer_id: Optional[uuid.UUID] = None
    resolution: Optional[str] = None
    follow_up_required: bool
    follow_up_date: Optional[date] = None
    call_start_time: datetime
    call_end_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    # Derived by the service layer
    mode: str = "inbound"
    duration_minutes: Optional[int] = None


class CaseResponse(CallResponse):
    due_date: date
    is_overdue: bool
    officer_name: Optional[str] = None


class OfficerResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    department: Optional[str] = None
