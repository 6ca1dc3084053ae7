from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class EnrollmentCreate(BaseModel):
    """academic_year_id defaults to the active year; roll_number defaults to the next free number."""

    student_id: UUID
    class_section_id: UUID
    academic_year_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    roll_number: Optional[int] = Field(None, ge=1)


class EnrollmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    admission_number: str
    class_section_id: UUID
    class_name: str
    academic_year_id: UUID
    course_id: Optional[UUID] = None
    roll_number: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
