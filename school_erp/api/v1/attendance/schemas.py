from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AttendanceMark(BaseModel):
    student_id: UUID
    is_present: bool = True
    remarks: Optional[str] = Field(None, max_length=200)


class AttendanceRegisterSave(BaseModel):
    """Full register for one class section and day. Replaces whatever was saved for that day."""

    class_section_id: UUID
    date: date
    records: List[AttendanceMark] = Field(..., min_length=1)


class AttendanceRegisterEntry(BaseModel):
    student_id: UUID
    roll_number: int
    student_name: str
    is_present: bool
    remarks: Optional[str] = None


class AttendanceRegister(BaseModel):
    class_section_id: UUID
    class_name: str
    date: date
    is_saved: bool
    present: int
    absent: int
    entries: List[AttendanceRegisterEntry]


class AttendanceSaveResponse(BaseModel):
    saved: int
    present: int
    absent: int
    message: str
