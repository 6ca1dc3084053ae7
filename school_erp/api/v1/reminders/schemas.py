from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ReminderResponse(BaseModel):
    id: UUID
    student_id: Optional[UUID] = None
    student_name: Optional[str] = None
    fee_head_id: Optional[UUID] = None
    reminder_type: str
    reminder_date: date
    message: str
    is_sent: bool
    sent_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DueFeeHeadResponse(BaseModel):
    """Fee head that is overdue or falls due inside the look-ahead window."""

    id: UUID
    name: str
    amount: Decimal
    applicable_class: Optional[str] = None
    due_date: date

    class Config:
        from_attributes = True


class ReminderRunResponse(BaseModel):
    created: int
    message: str
