import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PayItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., ge=0)


class PeriodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    pay_date: Optional[date] = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    start_date: date
    end_date: date
    pay_date: Optional[date] = None
    status: str
    closed_at: Optional[datetime] = None
    created_at: datetime


class RecordUpdate(BaseModel):
    basic_salary: Optional[float] = Field(None, ge=0)
    allowances: Optional[list[PayItem]] = None
    deductions: Optional[list[PayItem]] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    period_id: uuid.UUID
    employee_id: uuid.UUID
    basic_salary: float
    allowances: list[PayItem]
    deductions: list[PayItem]
    gross_pay: float
    total_deductions: float
    net_pay: float
    currency: str
    status: str
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    employee_name: Optional[str] = None
    employee_number: Optional[str] = None
