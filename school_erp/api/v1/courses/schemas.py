from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    credits: int = Field(1, ge=0, le=20, description="Weight in GPA calculations")
    teacher_id: Optional[UUID] = None


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    credits: Optional[int] = Field(None, ge=0, le=20)
    teacher_id: Optional[UUID] = None


class CourseResponse(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    credits: int
    teacher_id: Optional[UUID] = None
    teacher_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
