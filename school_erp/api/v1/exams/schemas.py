from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ExamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    course_id: UUID
    exam_date: date
    total_marks: int = Field(100, gt=0, le=1000)
    room: Optional[str] = Field(None, max_length=50)


class ExamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    exam_date: Optional[date] = None
    total_marks: Optional[int] = Field(None, gt=0, le=1000)
    room: Optional[str] = Field(None, max_length=50)


class ExamResponse(BaseModel):
    id: UUID
    name: str
    course_id: UUID
    course_name: Optional[str] = None
    exam_date: date
    total_marks: int
    room: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkInput(BaseModel):
    student_id: UUID
    marks_obtained: Decimal = Field(..., ge=0)


class MarksSave(BaseModel):
    entries: List[MarkInput] = Field(..., min_length=1)


class MarksSaveResponse(BaseModel):
    created: int
    updated: int
    message: str


class MarkEntryResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    exam_id: UUID
    course_id: UUID
    marks_obtained: Decimal
    total_marks: int
    letter_grade: Optional[str] = None
    grade_point: Optional[Decimal] = None
    is_published: bool


class PublishResponse(BaseModel):
    published: int


class CourseGradeItem(BaseModel):
    course_id: UUID
    course_name: str
    credits: int
    average_grade_point: Decimal


class StudentGpaResponse(BaseModel):
    """Credit-weighted GPA over the courses a student was examined in during the year."""

    student_id: UUID
    academic_year: str
    gpa: Decimal
    total_credits: int
    courses: List[CourseGradeItem]
