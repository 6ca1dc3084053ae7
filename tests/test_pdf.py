import uuid
from datetime import date, datetime
from decimal import Decimal

from school_erp.api.v1.fees.schemas import FeeReceiptData, FeeReceiptItem
from school_erp.api.v1.reports.schemas import (
    ClassResultData,
    MarkReportItem,
    MonthlyAttendanceReport,
    StudentAttendanceReportItem,
    StudentReportCardData,
    StudentResultItem,
)
from school_erp.reports.pdf import (
    render_attendance_report,
    render_class_result,
    render_fee_receipt,
    render_report_card,
)


def _report_card(marks):
    return StudentReportCardData(
        student_id=uuid.uuid4(),
        student_name="Asha Verma",
        admission_number="ADM1001",
        class_name="10-A",
        roll_number=7,
        date_of_birth=date(2010, 5, 17),
        academic_year="2025-26",
        overall_gpa=Decimal("3.70"),
        attendance_percentage=92.5,
        marks=marks,
    )


def test_report_card_renders_pdf() -> None:
    marks = [
        MarkReportItem(
            subject_name=f"Subject {i}",
            exam_name="Mid-Term",
            marks_obtained=Decimal("82.50"),
            total_marks=100,
            letter_grade="A",
            grade_point=Decimal("3.7"),
        )
        for i in range(60)
    ]
    pdf = render_report_card(_report_card(marks))
    assert pdf.startswith(b"%PDF")


def test_report_card_without_marks() -> None:
    assert render_report_card(_report_card([])).startswith(b"%PDF")


def test_fee_receipt_renders_pdf() -> None:
    data = FeeReceiptData(
        receipt_number="RCP-1A2B3C4D",
        student_name="Asha Verma",
        admission_number="ADM1001",
        class_name="10-A",
        payment_date=datetime(2025, 7, 1, 10, 30),
        payment_method="Online",
        transaction_id=None,
        items=[FeeReceiptItem(fee_name="Tuition", amount_due=Decimal("15000"), amount_paid=Decimal("5000"))],
    )
    pdf = render_fee_receipt(data)
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


def test_attendance_report_spans_pages() -> None:
    students = [
        StudentAttendanceReportItem(
            student_id=uuid.uuid4(),
            roll_number=i,
            student_name=f"Student {i}",
            present_days=18 if i % 3 else 12,
            absent_days=2 if i % 3 else 8,
        )
        for i in range(1, 71)
    ]
    report = MonthlyAttendanceReport(
        class_section_id=uuid.uuid4(),
        class_name="10-A",
        month="August",
        year=2025,
        total_working_days=20,
        average_attendance=80.0,
        students=students,
    )
    pdf = render_attendance_report(report)
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


def test_attendance_report_for_empty_class() -> None:
    report = MonthlyAttendanceReport(
        class_section_id=uuid.uuid4(),
        class_name="9-B",
        month="June",
        year=2025,
        total_working_days=1,
        average_attendance=0.0,
        students=[],
    )
    assert render_attendance_report(report).startswith(b"%PDF")


def test_class_result_renders_pass_and_fail_rows() -> None:
    results = [
        StudentResultItem(
            student_id=uuid.uuid4(),
            roll_number=1,
            student_name="Asha Verma",
            marks_obtained=Decimal("45"),
            total_marks=50,
            letter_grade="A+",
            grade_point=Decimal("4.0"),
        ),
        StudentResultItem(
            student_id=uuid.uuid4(),
            roll_number=2,
            student_name="Ravi Kumar",
            marks_obtained=Decimal("15"),
            total_marks=50,
            letter_grade="F",
            grade_point=Decimal("0.0"),
        ),
    ]
    data = ClassResultData(
        exam_id=uuid.uuid4(),
        exam_name="Mid-Term",
        course_name="Mathematics",
        academic_year="2025-26",
        class_average=30.0,
        highest=Decimal("45"),
        lowest=Decimal("15"),
        pass_rate=50.0,
        average_gpa=2.0,
        results=results,
    )
    pdf = render_class_result(data)
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")
