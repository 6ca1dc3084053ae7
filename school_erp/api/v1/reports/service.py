"""
Reporting aggregations: fee collection, attendance, GPA distribution, pass/fail tallies,
exam results, dashboards, report cards and class results.

Every function takes the resolved academic year and the caller's AccessScope as arguments;
nothing here looks up the active year or the identity layer on its own.
"""

import calendar
import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.fees.service import get_student_fee_statement
from school_erp.auth.schemas import AccessScope
from school_erp.core.enums import PaymentStatus
from school_erp.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from school_erp.core.grading import get_grade, is_pass, percentage, round_1, round_2, to_decimal
from school_erp.core.models import (
    AcademicYear,
    AttendanceRecord,
    ClassSection,
    Course,
    Enrollment,
    Exam,
    FeeHead,
    FeePayment,
    MarkEntry,
    Student,
    Teacher,
)

from .schemas import (
    AttendanceSummary,
    ClassAttendanceRate,
    ClassResultData,
    DashboardResponse,
    ExamResultSummary,
    FeeHeadSummary,
    FeeSummary,
    GpaBucket,
    GpaSummary,
    MarkReportItem,
    MonthlyAttendanceReport,
    PassFailSummary,
    ReportOverview,
    StudentAttendanceReportItem,
    StudentReportCardData,
    StudentResultItem,
)

logger = logging.getLogger(__name__)

# (label, lower bound) highest first; each entry falls in the first bucket it reaches
GPA_BUCKETS: Tuple[Tuple[str, Decimal], ...] = (
    ("3.5 - 4.0", Decimal("3.5")),
    ("3.0 - 3.49", Decimal("3.0")),
    ("2.5 - 2.99", Decimal("2.5")),
    ("2.0 - 2.49", Decimal("2.0")),
    ("Below 2.0", Decimal("0")),
)


def _ensure_staff(scope: AccessScope) -> None:
    if not scope.is_staff:
        raise PermissionDeniedError("School-wide reports are available to staff only")


def _in_year(column, year: AcademicYear):
    return and_(column >= year.start_date, column <= year.end_date)


def _mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return Decimal("0")
    return sum(values, Decimal("0")) / len(values)


def _gpa_bucket(grade_point: Decimal) -> str:
    for label, lower in GPA_BUCKETS:
        if grade_point >= lower:
            return label
    return GPA_BUCKETS[-1][0]


async def _active_enrollment_counts_by_class_name(db: AsyncSession, year: AcademicYear) -> Dict[str, int]:
    result = await db.execute(
        select(ClassSection.class_name, func.count(Enrollment.id))
        .join(ClassSection, ClassSection.id == Enrollment.class_section_id)
        .where(Enrollment.academic_year_id == year.id, Enrollment.is_active.is_(True))
        .group_by(ClassSection.class_name)
    )
    return {class_name: n for class_name, n in result.all()}


async def _student_grade_points(db: AsyncSession, year: AcademicYear) -> Dict[UUID, List[Decimal]]:
    """Non-null grade points per student, for exams held inside the year."""
    result = await db.execute(
        select(MarkEntry.student_id, MarkEntry.grade_point)
        .join(Exam, Exam.id == MarkEntry.exam_id)
        .where(MarkEntry.grade_point.is_not(None), _in_year(Exam.exam_date, year))
    )
    points: Dict[UUID, List[Decimal]] = defaultdict(list)
    for student_id, grade_point in result.all():
        points[student_id].append(to_decimal(grade_point))
    return points


# --- Fees ---
async def get_fee_summary(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    today: Optional[date] = None,
) -> FeeSummary:
    """
    Expected vs collected per active fee head of the year.

    expected = amount x active enrollments (of applicable_class when set);
    pending = max(expected - collected, 0). Overdue total = pending of heads past due.
    """
    _ensure_staff(scope)
    today = today or datetime.now(timezone.utc).date()

    heads_result = await db.execute(
        select(FeeHead)
        .where(FeeHead.academic_year_id == year.id, FeeHead.is_active.is_(True))
        .order_by(FeeHead.due_date, FeeHead.name)
    )
    heads = list(heads_result.scalars().all())

    total_enrolled = (
        await db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.academic_year_id == year.id,
                Enrollment.is_active.is_(True),
            )
        )
    ).scalar() or 0
    by_class = await _active_enrollment_counts_by_class_name(db, year)

    collected_by_head: Dict[UUID, Decimal] = {}
    if heads:
        paid_result = await db.execute(
            select(FeePayment.fee_head_id, func.sum(FeePayment.amount_paid))
            .where(
                FeePayment.fee_head_id.in_([h.id for h in heads]),
                FeePayment.status == PaymentStatus.COMPLETED.value,
            )
            .group_by(FeePayment.fee_head_id)
        )
        collected_by_head = {head_id: to_decimal(total) for head_id, total in paid_result.all()}

    rows: List[FeeHeadSummary] = []
    total_expected = Decimal("0")
    total_collected = Decimal("0")
    total_pending = Decimal("0")
    total_overdue = Decimal("0")
    for head in heads:
        if head.applicable_class:
            applicable = by_class.get(head.applicable_class, 0)
        else:
            applicable = total_enrolled
        amount = to_decimal(head.amount)
        expected = amount * applicable
        collected = collected_by_head.get(head.id, Decimal("0"))
        pending = max(expected - collected, Decimal("0"))
        overdue = head.due_date < today
        rows.append(
            FeeHeadSummary(
                fee_head_id=head.id,
                name=head.name,
                applicable_class=head.applicable_class,
                due_date=head.due_date,
                amount=round_2(amount),
                applicable_students=applicable,
                expected=round_2(expected),
                collected=round_2(collected),
                pending=round_2(pending),
                collection_rate=float(percentage(collected, expected)),
                is_overdue=overdue,
            )
        )
        total_expected += expected
        total_collected += collected
        total_pending += pending
        if overdue:
            total_overdue += pending

    return FeeSummary(
        heads=rows,
        total_expected=round_2(total_expected),
        total_collected=round_2(total_collected),
        total_pending=round_2(total_pending),
        total_overdue=round_2(total_overdue),
        collection_rate=float(percentage(total_collected, total_expected)),
    )


# --- Attendance ---
async def get_attendance_summary(db: AsyncSession, year: AcademicYear, scope: AccessScope) -> AttendanceSummary:
    """
    Overall rate over every record dated inside the year. Per-class rates use only the most
    recent recorded date, against the class's active enrollments.
    """
    _ensure_staff(scope)
    in_year = _in_year(AttendanceRecord.date, year)
    present_expr = func.sum(case((AttendanceRecord.is_present.is_(True), 1), else_=0))

    total, present = (
        await db.execute(select(func.count(AttendanceRecord.id), present_expr).where(in_year))
    ).one()
    total = total or 0
    present = int(present or 0)

    latest_date = (await db.execute(select(func.max(AttendanceRecord.date)).where(in_year))).scalar()
    classes: List[ClassAttendanceRate] = []
    if latest_date is not None:
        day_rows = (
            await db.execute(
                select(AttendanceRecord.class_section_id, present_expr)
                .where(AttendanceRecord.date == latest_date)
                .group_by(AttendanceRecord.class_section_id)
            )
        ).all()
        enrolled_rows = await db.execute(
            select(Enrollment.class_section_id, func.count(Enrollment.id))
            .where(Enrollment.academic_year_id == year.id, Enrollment.is_active.is_(True))
            .group_by(Enrollment.class_section_id)
        )
        enrolled = {cs_id: n for cs_id, n in enrolled_rows.all()}
        section_ids = [cs_id for cs_id, _ in day_rows]
        sections = {}
        if section_ids:
            cs_result = await db.execute(select(ClassSection).where(ClassSection.id.in_(section_ids)))
            sections = {cs.id: cs for cs in cs_result.scalars().all()}
        for cs_id, day_present in day_rows:
            cs = sections.get(cs_id)
            count = enrolled.get(cs_id, 0)
            classes.append(
                ClassAttendanceRate(
                    class_section_id=cs_id,
                    class_name=cs.display_name if cs else "N/A",
                    date=latest_date,
                    present=int(day_present or 0),
                    enrolled=count,
                    rate=float(percentage(day_present or 0, count)),
                )
            )
        classes.sort(key=lambda c: c.class_name)

    return AttendanceSummary(
        total_records=total,
        present=present,
        absent=total - present,
        overall_rate=float(percentage(present, total)),
        latest_date=latest_date,
        classes=classes,
    )


# --- GPA ---
async def get_gpa_summary(db: AsyncSession, year: AcademicYear, scope: AccessScope) -> GpaSummary:
    """Bucketed grade points plus the mean of per-student average GPAs (not entry-weighted)."""
    _ensure_staff(scope)
    points = await _student_grade_points(db, year)
    counts = {label: 0 for label, _ in GPA_BUCKETS}
    graded = 0
    for student_points in points.values():
        for gp in student_points:
            counts[_gpa_bucket(gp)] += 1
            graded += 1
    student_averages = [_mean(p) for p in points.values()]
    return GpaSummary(
        distribution=[GpaBucket(range=label, count=counts[label]) for label, _ in GPA_BUCKETS],
        graded_entries=graded,
        evaluated_students=len(points),
        average_gpa=float(round_2(_mean(student_averages))),
    )


async def get_pass_fail_summary(db: AsyncSession, year: AcademicYear, scope: AccessScope) -> PassFailSummary:
    """
    Pass/fail by per-student average GPA against the active enrollments of the year.
    Inconsistent grade data (marks for students not enrolled this year) is logged, never raised.
    """
    _ensure_staff(scope)
    enrolled_result = await db.execute(
        select(Enrollment.student_id)
        .where(Enrollment.academic_year_id == year.id, Enrollment.is_active.is_(True))
        .distinct()
    )
    enrolled: Set[UUID] = {row[0] for row in enrolled_result.all()}
    total = len(enrolled)

    points = await _student_grade_points(db, year)
    passed = sum(1 for p in points.values() if is_pass(_mean(p)))
    failed = len(points) - passed
    not_evaluated = total - passed - failed

    consistent = True
    strays = set(points) - enrolled
    if not_evaluated < 0 or strays:
        consistent = False
        logger.error(
            "Pass/fail invariant violated for academic year %s: total=%d passed=%d failed=%d "
            "not_evaluated=%d, %d graded students without an active enrollment",
            year.name, total, passed, failed, not_evaluated, len(strays),
        )
        not_evaluated = max(not_evaluated, 0)

    return PassFailSummary(
        total_students=total,
        passed=passed,
        failed=failed,
        not_evaluated=not_evaluated,
        is_consistent=consistent,
    )


async def get_exam_results(db: AsyncSession, year: AcademicYear, scope: AccessScope) -> List[ExamResultSummary]:
    """Per-exam average, highest, lowest and pass rate. Exams without marks are skipped."""
    _ensure_staff(scope)
    exams_result = await db.execute(
        select(Exam, Course.name)
        .outerjoin(Course, Course.id == Exam.course_id)
        .where(_in_year(Exam.exam_date, year))
        .order_by(Exam.exam_date, Exam.name)
    )
    exams = list(exams_result.all())
    if not exams:
        return []
    marks_result = await db.execute(
        select(MarkEntry.exam_id, MarkEntry.marks_obtained, MarkEntry.grade_point).where(
            MarkEntry.exam_id.in_([e.id for e, _ in exams])
        )
    )
    by_exam: Dict[UUID, List[Tuple[Decimal, Optional[Decimal]]]] = defaultdict(list)
    for exam_id, marks, grade_point in marks_result.all():
        by_exam[exam_id].append((to_decimal(marks), grade_point))

    out: List[ExamResultSummary] = []
    for exam, course_name in exams:
        entries = by_exam.get(exam.id)
        if not entries:
            continue
        marks_values = [m for m, _ in entries]
        passes = 0
        for marks, grade_point in entries:
            gp = grade_point if grade_point is not None else get_grade(marks, exam.total_marks)[1]
            if is_pass(gp):
                passes += 1
        out.append(
            ExamResultSummary(
                exam_id=exam.id,
                exam_name=exam.name,
                course_name=course_name,
                exam_date=exam.exam_date,
                entries=len(entries),
                average=float(round_1(_mean(marks_values))),
                highest=round_2(max(marks_values)),
                lowest=round_2(min(marks_values)),
                pass_rate=float(percentage(passes, len(entries))),
            )
        )
    return out


async def get_overview(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    today: Optional[date] = None,
) -> ReportOverview:
    _ensure_staff(scope)
    return ReportOverview(
        academic_year_id=year.id,
        academic_year=year.name,
        fees=await get_fee_summary(db, year, scope, today=today),
        attendance=await get_attendance_summary(db, year, scope),
        gpa=await get_gpa_summary(db, year, scope),
        pass_fail=await get_pass_fail_summary(db, year, scope),
        exams=await get_exam_results(db, year, scope),
    )


# --- Dashboard ---
async def _student_attendance_rate(
    db: AsyncSession,
    student_id: UUID,
    year: Optional[AcademicYear],
) -> float:
    """Own attendance over the year; 100 when nothing has been recorded yet."""
    stmt = select(
        func.count(AttendanceRecord.id),
        func.sum(case((AttendanceRecord.is_present.is_(True), 1), else_=0)),
    ).where(AttendanceRecord.student_id == student_id)
    if year is not None:
        stmt = stmt.where(_in_year(AttendanceRecord.date, year))
    total, present = (await db.execute(stmt)).one()
    if not total:
        return 100.0
    return float(percentage(present or 0, total))


async def get_dashboard(
    db: AsyncSession,
    year: Optional[AcademicYear],
    scope: AccessScope,
    today: Optional[date] = None,
) -> DashboardResponse:
    """Staff get school-wide counts; students get their own attendance and fee position."""
    year_name = year.name if year else "N/A"
    total_teachers = (
        await db.execute(select(func.count(Teacher.id)).where(Teacher.is_active.is_(True)))
    ).scalar() or 0

    if not scope.is_staff:
        if scope.student_id is None:
            return DashboardResponse(role=scope.role.value, academic_year=year_name, total_teachers=total_teachers)
        fee_collected = Decimal("0")
        fee_overdue = Decimal("0")
        if year is not None:
            statement = await get_student_fee_statement(db, year, scope, scope.student_id, today=today)
            fee_collected = statement.total_paid
            fee_overdue = statement.overdue_amount
        return DashboardResponse(
            role=scope.role.value,
            academic_year=year_name,
            total_teachers=total_teachers,
            attendance_rate=await _student_attendance_rate(db, scope.student_id, year),
            fee_collected=fee_collected,
            fee_overdue=fee_overdue,
            student_id=scope.student_id,
        )

    total_students = (
        await db.execute(select(func.count(Student.id)).where(Student.is_active.is_(True)))
    ).scalar() or 0
    total_classes = (await db.execute(select(func.count(ClassSection.id)))).scalar() or 0
    response = DashboardResponse(
        role=scope.role.value,
        academic_year=year_name,
        total_students=total_students,
        total_teachers=total_teachers,
        total_classes=total_classes,
    )
    if year is not None:
        fees = await get_fee_summary(db, year, scope, today=today)
        attendance = await get_attendance_summary(db, year, scope)
        response.attendance_rate = attendance.overall_rate
        response.fee_collected = fees.total_collected
        response.fee_overdue = fees.total_overdue
    return response


# --- Report card / class result ---
async def get_student_report_card(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    student_id: UUID,
) -> StudentReportCardData:
    """Marks, GPA and attendance of one student for the year. Students see only published marks."""
    scope.ensure_can_view_student(student_id)
    enrollment_result = await db.execute(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.academic_year_id == year.id,
            Enrollment.is_active.is_(True),
        )
    )
    enrollment = enrollment_result.scalars().first()
    if not enrollment:
        raise NotFoundError("Student enrollment not found.")

    stmt = (
        select(MarkEntry, Exam, Course.name)
        .join(Exam, Exam.id == MarkEntry.exam_id)
        .join(Course, Course.id == MarkEntry.course_id)
        .where(MarkEntry.student_id == student_id, _in_year(Exam.exam_date, year))
        .order_by(Exam.exam_date, Course.name)
    )
    if not scope.is_staff:
        stmt = stmt.where(MarkEntry.is_published.is_(True))
    marks: List[MarkReportItem] = []
    for entry, exam, course_name in (await db.execute(stmt)).all():
        letter, gp = get_grade(entry.marks_obtained, exam.total_marks)
        marks.append(
            MarkReportItem(
                subject_name=course_name,
                exam_name=exam.name,
                marks_obtained=round_2(entry.marks_obtained),
                total_marks=exam.total_marks,
                letter_grade=entry.letter_grade or letter,
                grade_point=to_decimal(entry.grade_point) if entry.grade_point is not None else gp,
            )
        )

    student = enrollment.student
    return StudentReportCardData(
        student_id=student.id,
        student_name=student.full_name,
        admission_number=student.admission_number,
        class_name=enrollment.class_section.display_name,
        roll_number=enrollment.roll_number,
        date_of_birth=student.date_of_birth,
        academic_year=year.name,
        overall_gpa=round_2(_mean([m.grade_point for m in marks])),
        attendance_percentage=await _student_attendance_rate(db, student_id, year),
        marks=marks,
    )


async def get_class_result(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    exam_id: UUID,
) -> ClassResultData:
    _ensure_staff(scope)
    found = (
        await db.execute(
            select(Exam, Course.name).outerjoin(Course, Course.id == Exam.course_id).where(Exam.id == exam_id)
        )
    ).first()
    if not found:
        raise NotFoundError("Exam not found")
    exam, course_name = found

    rows = (
        await db.execute(
            select(MarkEntry, Student)
            .join(Student, Student.id == MarkEntry.student_id)
            .where(MarkEntry.exam_id == exam_id, MarkEntry.course_id == exam.course_id)
        )
    ).all()
    student_ids = [student.id for _, student in rows]
    rolls: Dict[UUID, int] = {}
    if student_ids:
        roll_result = await db.execute(
            select(Enrollment.student_id, Enrollment.roll_number).where(
                Enrollment.student_id.in_(student_ids),
                Enrollment.academic_year_id == year.id,
                Enrollment.is_active.is_(True),
            )
        )
        rolls = {sid: roll for sid, roll in roll_result.all()}

    results: List[StudentResultItem] = []
    for entry, student in rows:
        letter, gp = get_grade(entry.marks_obtained, exam.total_marks)
        results.append(
            StudentResultItem(
                student_id=student.id,
                roll_number=rolls.get(student.id, 0),
                student_name=student.full_name,
                marks_obtained=round_2(entry.marks_obtained),
                total_marks=exam.total_marks,
                letter_grade=entry.letter_grade or letter,
                grade_point=to_decimal(entry.grade_point) if entry.grade_point is not None else gp,
            )
        )
    results.sort(key=lambda r: (r.roll_number, r.student_name))

    marks_values = [r.marks_obtained for r in results]
    passes = sum(1 for r in results if is_pass(r.grade_point))
    return ClassResultData(
        exam_id=exam.id,
        exam_name=exam.name,
        course_name=course_name or "N/A",
        academic_year=year.name,
        class_average=float(round_1(_mean(marks_values))),
        highest=max(marks_values) if marks_values else Decimal("0"),
        lowest=min(marks_values) if marks_values else Decimal("0"),
        pass_rate=float(percentage(passes, len(results))),
        average_gpa=float(round_2(_mean([r.grade_point for r in results]))),
        results=results,
    )


# --- Monthly attendance ---
async def get_monthly_attendance_report(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    class_section_id: UUID,
    month: int,
    calendar_year: int,
) -> MonthlyAttendanceReport:
    """
    Present/absent days per enrolled student for one class and month.
    Working days = distinct recorded dates in the month (at least 1).
    """
    _ensure_staff(scope)
    if month < 1 or month > 12 or calendar_year < 2000 or calendar_year > 2100:
        raise ValidationError("Invalid month or year value.")
    cs = await db.get(ClassSection, class_section_id)
    if not cs:
        raise NotFoundError("Class section not found")

    start = date(calendar_year, month, 1)
    end = date(calendar_year, month, calendar.monthrange(calendar_year, month)[1])
    records = (
        await db.execute(
            select(AttendanceRecord.student_id, AttendanceRecord.date, AttendanceRecord.is_present).where(
                AttendanceRecord.class_section_id == class_section_id,
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
        )
    ).all()
    working_days = len({d for _, d, _ in records}) or 1
    present_by_student: Dict[UUID, int] = defaultdict(int)
    absent_by_student: Dict[UUID, int] = defaultdict(int)
    for student_id, _, is_present in records:
        if is_present:
            present_by_student[student_id] += 1
        else:
            absent_by_student[student_id] += 1

    enrollments = (
        await db.execute(
            select(Enrollment)
            .where(
                Enrollment.class_section_id == class_section_id,
                Enrollment.academic_year_id == year.id,
                Enrollment.is_active.is_(True),
            )
            .order_by(Enrollment.roll_number)
        )
    ).scalars().all()
    students = [
        StudentAttendanceReportItem(
            student_id=e.student_id,
            roll_number=e.roll_number,
            student_name=e.student.full_name,
            present_days=present_by_student.get(e.student_id, 0),
            absent_days=absent_by_student.get(e.student_id, 0),
        )
        for e in enrollments
    ]
    average = Decimal("0")
    if students:
        mean_present = Decimal(sum(s.present_days for s in students)) / len(students)
        average = round_1(mean_present / working_days * 100)
    return MonthlyAttendanceReport(
        class_section_id=cs.id,
        class_name=cs.display_name,
        month=calendar.month_name[month],
        year=calendar_year,
        total_working_days=working_days,
        average_attendance=float(average),
        students=students,
    )
