from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.core.enums import SalaryStatus


class SalaryCreate(BaseModel):
    """net_salary is always computed server-side."""

    teacher_id: UUID
    basic_salary: Decimal = Field(..., gt=0)
    allowances: Decimal = Field(Decimal("0"), ge=0)
    deductions: Decimal = Field(Decimal("0"), ge=0)
    payment_date: date
    month: str = Field(..., min_length=1, max_length=20, description='e.g. "January 2024"')
    status: SalaryStatus = SalaryStatus.PENDING


class SalaryUpdate(BaseModel):
    basic_salary: Optional[Decimal] = Field(None, gt=0)
    allowances: Optional[Decimal] = Field(None, ge=0)
    deductions: Optional[Decimal] = Field(None, ge=0)
    payment_date: Optional[date] = None
    month: Optional[str] = Field(None, min_length=1, max_length=20)
    status: Optional[SalaryStatus] = None


class SalaryResponse(BaseModel):
    id: UUID
    teacher_id: UUID
    teacher_name: str
    basic_salary: Decimal
    allowances: Decimal
    deductions: Decimal
    net_salary: Decimal
    payment_date: date
    month: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
