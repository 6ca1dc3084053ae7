from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    standard: int = Field(..., ge=1, le=12, description="Standard 1-12")
    name: str = Field(..., min_length=1, max_length=200)
    code: Optional[str] = Field(None, max_length=20)
    teacher_id: Optional[UUID] = None


class SubjectUpdate(BaseModel):
    standard: Optional[int] = Field(None, ge=1, le=12)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, max_length=20)
    teacher_id: Optional[UUID] = None


class SubjectResponse(BaseModel):
    id: UUID
    standard: int
    name: str
    code: Optional[str] = None
    teacher_id: Optional[UUID] = None
    teacher_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
