from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


# --- Fees ---
class FeeHeadSummary(BaseModel):
    fee_head_id: UUID
    name: str
    applicable_class: Optional[str] = None
    due_date: date
    amount: Decimal
    applicable_students: int
    expected: Decimal
    collected: Decimal
    pending: Decimal
    collection_rate: float
    is_overdue: bool


class FeeSummary(BaseModel):
    heads: List[FeeHeadSummary]
    total_expected: Decimal
    total_collected: Decimal
    total_pending: Decimal
    total_overdue: Decimal
    collection_rate: float


# --- Attendance ---
class ClassAttendanceRate(BaseModel):
    class_section_id: UUID
    class_name: str
    date: date
    present: int
    enrolled: int
    rate: float


class AttendanceSummary(BaseModel):
    total_records: int
    present: int
    absent: int
    overall_rate: float
    latest_date: Optional[date] = None
    classes: List[ClassAttendanceRate] = []


# --- GPA / results ---
class GpaBucket(BaseModel):
    range: str
    count: int


class GpaSummary(BaseModel):
    distribution: List[GpaBucket]
    graded_entries: int
    evaluated_students: int
    average_gpa: float


class PassFailSummary(BaseModel):
    """passed + failed + not_evaluated == total_students unless is_consistent is false."""

    total_students: int
    passed: int
    failed: int
    not_evaluated: int
    is_consistent: bool = True


class ExamResultSummary(BaseModel):
    exam_id: UUID
    exam_name: str
    course_name: Optional[str] = None
    exam_date: date
    entries: int
    average: float
    highest: Decimal
    lowest: Decimal
    pass_rate: float


class ReportOverview(BaseModel):
    academic_year_id: UUID
    academic_year: str
    fees: FeeSummary
    attendance: AttendanceSummary
    gpa: GpaSummary
    pass_fail: PassFailSummary
    exams: List[ExamResultSummary]


class DashboardResponse(BaseModel):
    role: str
    academic_year: str
    total_students: int = 0
    total_teachers: int = 0
    total_classes: int = 0
    attendance_rate: float = 0.0
    fee_collected: Decimal = Decimal("0")
    fee_overdue: Decimal = Decimal("0")
    student_id: Optional[UUID] = None


# --- Report card / class result (also handed to the PDF renderer) ---
class MarkReportItem(BaseModel):
    subject_name: str
    exam_name: str
    marks_obtained: Decimal
    total_marks: int
    letter_grade: str
    grade_point: Decimal


class StudentReportCardData(BaseModel):
    student_id: UUID
    student_name: str
    admission_number: str
    class_name: str
    roll_number: int
    date_of_birth: Optional[date] = None
    academic_year: str
    overall_gpa: Decimal
    attendance_percentage: float
    marks: List[MarkReportItem]


class StudentResultItem(BaseModel):
    student_id: UUID
    roll_number: int
    student_name: str
    marks_obtained: Decimal
    total_marks: int
    letter_grade: str
    grade_point: Decimal


class ClassResultData(BaseModel):
    exam_id: UUID
    exam_name: str
    course_name: str
    academic_year: str
    class_average: float
    highest: Decimal
    lowest: Decimal
    pass_rate: float
    average_gpa: float
    results: List[StudentResultItem]


# --- Monthly attendance ---
class StudentAttendanceReportItem(BaseModel):
    student_id: UUID
    roll_number: int
    student_name: str
    present_days: int
    absent_days: int


class MonthlyAttendanceReport(BaseModel):
    class_section_id: UUID
    class_name: str
    month: str
    year: int
    total_working_days: int
    average_attendance: float
    students: List[StudentAttendanceReportItem]
