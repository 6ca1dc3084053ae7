from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassSectionCreate(BaseModel):
    class_name: str = Field(..., min_length=1, max_length=50, description="e.g. 10")
    section: str = Field(..., min_length=1, max_length=10, description="e.g. A")
    capacity: int = Field(40, ge=1, le=500)


class ClassSectionUpdate(BaseModel):
    class_name: Optional[str] = Field(None, min_length=1, max_length=50)
    section: Optional[str] = Field(None, min_length=1, max_length=10)
    capacity: Optional[int] = Field(None, ge=1, le=500)


class ClassSectionResponse(BaseModel):
    id: UUID
    class_name: str
    section: str
    display_name: str
    capacity: int
    enrolled_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True
