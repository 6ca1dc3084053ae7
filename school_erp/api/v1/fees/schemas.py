from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.core.enums import FeeStatus, PaymentMethod, PaymentStatus


# ----- Fee heads -----
class FeeHeadCreate(BaseModel):
    """academic_year_id defaults to the active year."""

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    applicable_class: Optional[str] = Field(None, max_length=50, description="Class name, or null for every class")
    due_date: date
    academic_year_id: Optional[UUID] = None


class FeeHeadUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(None, gt=0)
    applicable_class: Optional[str] = Field(None, max_length=50)
    due_date: Optional[date] = None
    is_active: Optional[bool] = None


class FeeHeadResponse(BaseModel):
    id: UUID
    name: str
    amount: Decimal
    applicable_class: Optional[str] = None
    due_date: date
    academic_year_id: UUID
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ----- Payments -----
class PaymentCreate(BaseModel):
    student_id: UUID
    fee_head_id: UUID
    amount_paid: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = Field(None, max_length=100)
    status: PaymentStatus = PaymentStatus.COMPLETED


class PaymentResponse(BaseModel):
    id: UUID
    receipt_number: str
    student_id: UUID
    student_name: Optional[str] = None
    fee_head_id: UUID
    fee_head_name: Optional[str] = None
    amount_paid: Decimal
    payment_date: datetime
    payment_method: str
    transaction_id: Optional[str] = None
    status: str


# ----- Student statement -----
class StudentFeeItem(BaseModel):
    fee_head_id: UUID
    name: str
    amount: Decimal
    due_date: date
    paid: Decimal
    balance: Decimal
    status: FeeStatus


class StudentFeeStatement(BaseModel):
    student_id: UUID
    student_name: str
    class_name: str
    academic_year: str
    items: List[StudentFeeItem]
    total_due: Decimal
    total_paid: Decimal
    balance: Decimal
    overdue_amount: Decimal
    recent_payments: List[PaymentResponse] = []


# ----- Receipt (handed to the PDF renderer) -----
class FeeReceiptItem(BaseModel):
    fee_name: str
    amount_due: Decimal
    amount_paid: Decimal


class FeeReceiptData(BaseModel):
    receipt_number: str
    student_name: str
    admission_number: str
    class_name: str
    payment_date: datetime
    payment_method: str
    transaction_id: Optional[str] = None
    items: List[FeeReceiptItem]
