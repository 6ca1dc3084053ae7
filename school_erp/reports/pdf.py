"""
Plain PDF rendering with reportlab's canvas: report cards, fee receipts,
monthly class attendance and class exam results.

Callers build the data (StudentReportCardData, FeeReceiptData, MonthlyAttendanceReport,
ClassResultData); this module only lays it out.
"""

from datetime import datetime, timezone
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, A5
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from school_erp.api.v1.fees.schemas import FeeReceiptData
from school_erp.api.v1.reports.schemas import ClassResultData, MonthlyAttendanceReport, StudentReportCardData
from school_erp.core.config import settings
from school_erp.core.grading import is_pass

BRAND = colors.HexColor("#1e3a8a")
MUTED = colors.HexColor("#64748b")
LIGHT_BG = colors.HexColor("#eef2ff")
LIGHT_GREEN = colors.HexColor("#ecfdf5")
FAIL_RED = colors.HexColor("#b91c1c")

# Standard PDF fonts only cover cp1252
_CURRENCY_FALLBACKS = {"₹": "Rs."}


def _currency() -> str:
    symbol = settings.currency_symbol
    try:
        symbol.encode("cp1252")
        return symbol
    except UnicodeEncodeError:
        return _CURRENCY_FALLBACKS.get(symbol, "")


def _money(value) -> str:
    return f"{_currency()} {float(value):,.2f}".strip()


def _header(c: canvas.Canvas, width: float, height: float, title: str) -> float:
    header_h = 24 * mm
    c.setFillColor(BRAND)
    c.rect(0, height - header_h, width, header_h, fill=1, stroke=0)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 15)
    c.drawString(14 * mm, height - 11 * mm, settings.school_name)
    c.setFont("Helvetica", 10)
    c.setFillColor(colors.whitesmoke)
    c.drawString(14 * mm, height - 17 * mm, title)
    return height - header_h - 10 * mm


def render_report_card(data: StudentReportCardData) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    x_margin = 14 * mm
    y = _header(c, width, height, f"Report Card - {data.academic_year}")

    def draw_kv(label: str, value: str, x: float):
        c.setFont("Helvetica", 9)
        c.setFillColor(MUTED)
        c.drawString(x, y, label)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(x + 32 * mm, y, value)

    right = width / 2 + 4 * mm
    draw_kv("Student", data.student_name, x_margin)
    draw_kv("Admission No.", data.admission_number, right)
    y -= 6.5 * mm
    draw_kv("Class", data.class_name, x_margin)
    draw_kv("Roll No.", str(data.roll_number), right)
    y -= 6.5 * mm
    dob = data.date_of_birth.strftime("%d-%b-%Y") if data.date_of_birth else "N/A"
    draw_kv("Date of Birth", dob, x_margin)
    draw_kv("Attendance", f"{data.attendance_percentage:.1f}%", right)
    y -= 10 * mm

    columns = (
        ("Subject", x_margin),
        ("Exam", x_margin + 55 * mm),
        ("Marks", x_margin + 110 * mm),
        ("Grade", x_margin + 140 * mm),
        ("GP", x_margin + 162 * mm),
    )
    c.setFillColor(LIGHT_BG)
    c.rect(x_margin - 2 * mm, y - 2.5 * mm, width - 2 * x_margin + 4 * mm, 8 * mm, fill=1, stroke=0)
    c.setFillColor(BRAND)
    c.setFont("Helvetica-Bold", 9.5)
    for label, x in columns:
        c.drawString(x, y, label)
    y -= 8 * mm

    c.setFont("Helvetica", 9.5)
    c.setFillColor(colors.black)
    if not data.marks:
        c.setFillColor(MUTED)
        c.drawString(x_margin, y, "No marks recorded for this academic year.")
        y -= 7 * mm
    for item in data.marks:
        if y < 30 * mm:
            c.showPage()
            y = height - 20 * mm
            c.setFont("Helvetica", 9.5)
        c.drawString(columns[0][1], y, item.subject_name[:30])
        c.drawString(columns[1][1], y, item.exam_name[:30])
        c.drawString(columns[2][1], y, f"{item.marks_obtained:g} / {item.total_marks}")
        c.drawString(columns[3][1], y, item.letter_grade)
        c.drawString(columns[4][1], y, f"{item.grade_point:.2f}")
        y -= 6.5 * mm

    y -= 4 * mm
    c.setStrokeColor(colors.lightgrey)
    c.line(x_margin, y + 3 * mm, width - x_margin, y + 3 * mm)
    c.setFont("Helvetica-Bold", 12)
    c.setFillColor(BRAND)
    c.drawRightString(width - x_margin, y - 3 * mm, f"Overall GPA: {data.overall_gpa:.2f}")

    c.setFillColor(MUTED)
    c.setFont("Helvetica", 8)
    c.drawCentredString(width / 2, 12 * mm, "This is a computer generated report card.")
    c.showPage()
    c.save()
    pdf_bytes = buf.getvalue()
    buf.close()
    return pdf_bytes


def render_fee_receipt(data: FeeReceiptData) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A5)
    width, height = A5
    x_margin = 14 * mm
    y = _header(c, width, height, "Fee Payment Receipt")

    total_paid = sum(item.amount_paid for item in data.items)
    card_h = 14 * mm
    card_y = y - card_h
    c.setFillColor(LIGHT_BG)
    c.roundRect(x_margin, card_y, width - 2 * x_margin, card_h, 3 * mm, fill=1, stroke=0)
    c.setFont("Helvetica", 9)
    c.setFillColor(MUTED)
    c.drawCentredString(width / 2, card_y + card_h - 5 * mm, "Amount Paid")
    c.setFillColor(colors.HexColor("#0f172a"))
    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(width / 2, card_y + 4.8 * mm, _money(total_paid))
    y = card_y - 10 * mm

    def draw_kv(label: str, value: str):
        nonlocal y
        c.setFont("Helvetica", 9)
        c.setFillColor(MUTED)
        c.drawString(x_margin, y, label)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 10)
        c.drawRightString(width - x_margin, y, value)
        y -= 6.5 * mm

    draw_kv("Receipt No.", data.receipt_number)
    draw_kv("Date", data.payment_date.strftime("%d-%b-%Y %H:%M"))
    draw_kv("Student", data.student_name)
    draw_kv("Admission No.", data.admission_number)
    draw_kv("Class", data.class_name)
    draw_kv("Method", data.payment_method)
    draw_kv("Reference", data.transaction_id or "N/A")

    y += 1.5 * mm
    c.setStrokeColor(colors.lightgrey)
    c.setDash(1, 2)
    c.line(x_margin, y, width - x_margin, y)
    c.setDash()
    y -= 7.5 * mm

    for item in data.items:
        draw_kv(f"{item.fee_name} (due)", _money(item.amount_due))
        draw_kv(f"{item.fee_name} (paid)", _money(item.amount_paid))

    c.setFillColor(MUTED)
    c.setFont("Helvetica", 9)
    c.drawCentredString(width / 2, max(y, 16 * mm), "Thank you for your payment.")
    c.showPage()
    c.save()
    pdf_bytes = buf.getvalue()
    buf.close()
    return pdf_bytes


def _summary_box(c: canvas.Canvas, x: float, top: float, w: float, fill, lines) -> None:
    box_h = (len(lines) * 5.5 + 5) * mm
    c.setFillColor(fill)
    c.roundRect(x, top - box_h, w, box_h, 2 * mm, fill=1, stroke=0)
    ty = top - 6 * mm
    for i, line in enumerate(lines):
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold" if i == 0 else "Helvetica", 9.5)
        c.drawString(x + 4 * mm, ty, line)
        ty -= 5.5 * mm


def _table(c: canvas.Canvas, width: float, height: float, y: float, columns, rows) -> float:
    """
    Draw a striped table starting at y and return the y below it.
    columns: (label, x offset from the left margin); rows: lists of (text, colour or None).
    The header row is repeated on every new page.
    """
    x_margin = 14 * mm
    row_h = 6.5 * mm

    def header(at: float) -> float:
        c.setFillColor(BRAND)
        c.rect(x_margin - 2 * mm, at - 2.5 * mm, width - 2 * x_margin + 4 * mm, 8 * mm, fill=1, stroke=0)
        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 9)
        for label, offset in columns:
            c.drawString(x_margin + offset, at, label)
        return at - 8 * mm

    y = header(y)
    for i, row in enumerate(rows):
        if y < 25 * mm:
            c.showPage()
            y = header(height - 20 * mm)
        if i % 2:
            c.setFillColor(colors.HexColor("#f4f4f5"))
            c.rect(x_margin - 2 * mm, y - 2.2 * mm, width - 2 * x_margin + 4 * mm, row_h, fill=1, stroke=0)
        c.setFont("Helvetica", 9)
        for (text, colour), (_, offset) in zip(row, columns):
            c.setFillColor(colour or colors.black)
            c.drawString(x_margin + offset, y, text)
        y -= row_h
    return y


def _footer(c: canvas.Canvas, width: float) -> None:
    generated = datetime.now(timezone.utc).strftime("%d-%b-%Y %H:%M UTC")
    c.setFillColor(MUTED)
    c.setFont("Helvetica", 8)
    c.drawCentredString(width / 2, 12 * mm, f"Generated on {generated}")


def render_attendance_report(data: MonthlyAttendanceReport) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    x_margin = 14 * mm
    y = _header(c, width, height, f"Attendance Report - {data.class_name} | {data.month} {data.year}")

    _summary_box(
        c, x_margin, y + 4 * mm, width - 2 * x_margin, LIGHT_GREEN,
        [
            f"Total Students: {len(data.students)}",
            f"Working Days: {data.total_working_days}",
            f"Average Attendance: {data.average_attendance:.1f}%",
        ],
    )
    y -= 26 * mm

    columns = (("Roll", 0), ("Student Name", 18 * mm), ("Present", 95 * mm), ("Absent", 120 * mm), ("Attendance %", 145 * mm))
    rows = []
    for s in data.students:
        pct = s.present_days / data.total_working_days * 100 if data.total_working_days else 0.0
        rows.append([
            (str(s.roll_number), None),
            (s.student_name[:40], None),
            (str(s.present_days), None),
            (str(s.absent_days), None),
            (f"{pct:.1f}%", FAIL_RED if pct < 75 else None),
        ])
    y = _table(c, width, height, y, columns, rows)
    if not rows:
        c.setFillColor(MUTED)
        c.setFont("Helvetica", 9.5)
        c.drawString(x_margin, y, "No students enrolled in this class.")

    _footer(c, width)
    c.showPage()
    c.save()
    pdf_bytes = buf.getvalue()
    buf.close()
    return pdf_bytes


def render_class_result(data: ClassResultData) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    x_margin = 14 * mm
    y = _header(
        c, width, height,
        f"Class Result - {data.exam_name} ({data.course_name}) | Academic Year: {data.academic_year}",
    )

    half = (width - 2 * x_margin - 4 * mm) / 2
    _summary_box(
        c, x_margin, y + 4 * mm, half, LIGHT_BG,
        [
            f"Total Students: {len(data.results)}",
            f"Class Average: {data.class_average:.1f}",
            f"Pass Rate: {data.pass_rate:.1f}%",
        ],
    )
    _summary_box(
        c, x_margin + half + 4 * mm, y + 4 * mm, half, LIGHT_GREEN,
        [
            f"Highest: {data.highest:.1f}",
            f"Lowest: {data.lowest:.1f}",
            f"Average GPA: {data.average_gpa:.2f}",
        ],
    )
    y -= 26 * mm

    columns = (
        ("Roll", 0),
        ("Student Name", 18 * mm),
        ("Marks", 90 * mm),
        ("Grade", 115 * mm),
        ("GPA", 135 * mm),
        ("Result", 155 * mm),
    )
    rows = []
    # best first
    for r in sorted(data.results, key=lambda r: r.marks_obtained, reverse=True):
        passed = is_pass(r.grade_point)
        rows.append([
            (str(r.roll_number), None),
            (r.student_name[:40], None),
            (f"{r.marks_obtained:.1f}/{r.total_marks}", None),
            (r.letter_grade, None),
            (f"{r.grade_point:.1f}", None),
            ("PASS" if passed else "FAIL", colors.HexColor("#15803d") if passed else FAIL_RED),
        ])
    y = _table(c, width, height, y, columns, rows)
    if not rows:
        c.setFillColor(MUTED)
        c.setFont("Helvetica", 9.5)
        c.drawString(x_margin, y, "No marks entered for this exam.")

    _footer(c, width)
    c.showPage()
    c.save()
    pdf_bytes = buf.getvalue()
    buf.close()
    return pdf_bytes
