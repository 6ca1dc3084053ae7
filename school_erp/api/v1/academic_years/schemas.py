from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. name must be unique."""

    name: str = Field(..., min_length=1, max_length=20, description="e.g. 2025-26")
    start_date: date = Field(..., description="Academic year start date")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    set_as_active: bool = Field(
        False,
        description="Make this the active year? All other years become inactive.",
    )


class AcademicYearUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AcademicYearResponse(BaseModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool
    student_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RolloverRequest(BaseModel):
    from_year_id: UUID
    to_year_id: UUID


class RolloverResponse(BaseModel):
    """Result of copying active enrollments into another year."""

    created: int
    skipped: int
    message: str
