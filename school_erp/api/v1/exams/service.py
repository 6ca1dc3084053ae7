"""Exams, mark entry and per-student GPA."""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from school_erp.core.grading import calculate_weighted_gpa, get_grade, round_2, to_decimal
from school_erp.core.models import AcademicYear, Course, Exam, MarkEntry, Student

from .schemas import (
    CourseGradeItem,
    ExamCreate,
    ExamResponse,
    ExamUpdate,
    MarkEntryResponse,
    MarksSave,
    MarksSaveResponse,
    StudentGpaResponse,
)

logger = logging.getLogger(__name__)


def _to_response(e: Exam) -> ExamResponse:
    return ExamResponse(
        id=e.id,
        name=e.name,
        course_id=e.course_id,
        course_name=e.course.name if e.course else None,
        exam_date=e.exam_date,
        total_marks=e.total_marks,
        room=e.room,
        created_at=e.created_at,
    )


async def _get_exam_or_404(db: AsyncSession, exam_id: UUID) -> Exam:
    exam = await db.get(Exam, exam_id)
    if not exam:
        raise NotFoundError("Exam not found")
    return exam


async def _reload(db: AsyncSession, exam_id: UUID) -> Exam:
    result = await db.execute(
        select(Exam).where(Exam.id == exam_id).execution_options(populate_existing=True)
    )
    return result.scalars().one()


async def create_exam(db: AsyncSession, payload: ExamCreate) -> ExamResponse:
    if not await db.get(Course, payload.course_id):
        raise NotFoundError("Course not found")
    exam = Exam(
        name=payload.name.strip(),
        course_id=payload.course_id,
        exam_date=payload.exam_date,
        total_marks=payload.total_marks,
        room=payload.room,
    )
    db.add(exam)
    await db.commit()
    return _to_response(await _reload(db, exam.id))


async def list_exams(
    db: AsyncSession,
    year: Optional[AcademicYear] = None,
    course_id: Optional[UUID] = None,
) -> List[ExamResponse]:
    """Exams, optionally limited to those dated inside the given year."""
    stmt = select(Exam)
    if year is not None:
        stmt = stmt.where(Exam.exam_date >= year.start_date, Exam.exam_date <= year.end_date)
    if course_id is not None:
        stmt = stmt.where(Exam.course_id == course_id)
    result = await db.execute(stmt.order_by(Exam.exam_date.desc(), Exam.name))
    return [_to_response(e) for e in result.scalars().all()]


async def get_exam(db: AsyncSession, exam_id: UUID) -> Optional[ExamResponse]:
    result = await db.execute(
        select(Exam).where(Exam.id == exam_id).execution_options(populate_existing=True)
    )
    exam = result.scalars().first()
    return _to_response(exam) if exam else None


async def update_exam(db: AsyncSession, exam_id: UUID, payload: ExamUpdate) -> ExamResponse:
    exam = await _get_exam_or_404(db, exam_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("total_marks") is not None and data["total_marks"] != exam.total_marks:
        has_marks = (
            await db.execute(select(MarkEntry.id).where(MarkEntry.exam_id == exam_id).limit(1))
        ).scalar_one_or_none()
        if has_marks:
            raise ConflictError("Cannot change total marks after marks have been entered")
    for key, value in data.items():
        if value is not None or key == "room":
            setattr(exam, key, value)
    await db.commit()
    return _to_response(await _reload(db, exam_id))


async def delete_exam(db: AsyncSession, exam_id: UUID) -> None:
    exam = await _get_exam_or_404(db, exam_id)
    has_marks = (
        await db.execute(select(MarkEntry.id).where(MarkEntry.exam_id == exam_id).limit(1))
    ).scalar_one_or_none()
    if has_marks:
        raise ConflictError("Cannot delete an exam that already has marks")
    await db.delete(exam)
    await db.commit()


# --- Marks ---
async def save_marks(db: AsyncSession, exam_id: UUID, payload: MarksSave) -> MarksSaveResponse:
    """
    Upsert marks for the exam's course. Letter grade and grade point are computed against the
    exam's total marks; marks above the total are rejected.
    """
    exam = await _get_exam_or_404(db, exam_id)
    student_ids = [m.student_id for m in payload.entries]
    if len(set(student_ids)) != len(student_ids):
        raise ValidationError("Each student may appear only once")
    for m in payload.entries:
        if m.marks_obtained > exam.total_marks:
            raise ValidationError(f"Marks cannot exceed the exam total of {exam.total_marks}")

    found = await db.execute(select(Student.id).where(Student.id.in_(student_ids)))
    missing = set(student_ids) - {row[0] for row in found.all()}
    if missing:
        raise NotFoundError(f"{len(missing)} student(s) not found")

    existing_result = await db.execute(
        select(MarkEntry).where(
            MarkEntry.exam_id == exam.id,
            MarkEntry.course_id == exam.course_id,
            MarkEntry.student_id.in_(student_ids),
        )
    )
    existing: Dict[UUID, MarkEntry] = {m.student_id: m for m in existing_result.scalars().all()}

    created = 0
    updated = 0
    for m in payload.entries:
        marks = round_2(m.marks_obtained)
        letter, grade_point = get_grade(marks, exam.total_marks)
        entry = existing.get(m.student_id)
        if entry is not None:
            entry.marks_obtained = marks
            entry.letter_grade = letter
            entry.grade_point = grade_point
            updated += 1
        else:
            db.add(
                MarkEntry(
                    student_id=m.student_id,
                    exam_id=exam.id,
                    course_id=exam.course_id,
                    marks_obtained=marks,
                    letter_grade=letter,
                    grade_point=grade_point,
                    is_published=False,
                )
            )
            created += 1
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Marks were saved concurrently for one of these students; reload and retry")
    logger.info("Marks saved for exam %s: %d created, %d updated", exam.name, created, updated)
    return MarksSaveResponse(created=created, updated=updated, message="Marks saved successfully!")


async def publish_marks(db: AsyncSession, exam_id: UUID) -> int:
    await _get_exam_or_404(db, exam_id)
    result = await db.execute(
        update(MarkEntry)
        .where(MarkEntry.exam_id == exam_id, MarkEntry.is_published.is_(False))
        .values(is_published=True)
    )
    await db.commit()
    return result.rowcount or 0


async def list_marks(db: AsyncSession, exam_id: UUID, scope: AccessScope) -> List[MarkEntryResponse]:
    """Staff see every entry; students only their own published marks."""
    exam = await _get_exam_or_404(db, exam_id)
    stmt = (
        select(MarkEntry, Student.first_name, Student.last_name)
        .join(Student, Student.id == MarkEntry.student_id)
        .where(MarkEntry.exam_id == exam_id)
    )
    if not scope.is_staff:
        if scope.student_id is None:
            return []
        stmt = stmt.where(MarkEntry.student_id == scope.student_id, MarkEntry.is_published.is_(True))
    result = await db.execute(stmt.order_by(Student.first_name, Student.last_name))
    return [
        MarkEntryResponse(
            id=m.id,
            student_id=m.student_id,
            student_name=f"{first} {last}",
            exam_id=m.exam_id,
            course_id=m.course_id,
            marks_obtained=to_decimal(m.marks_obtained),
            total_marks=exam.total_marks,
            letter_grade=m.letter_grade,
            grade_point=to_decimal(m.grade_point) if m.grade_point is not None else None,
            is_published=m.is_published,
        )
        for m, first, last in result.all()
    ]


async def get_student_gpa(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    student_id: UUID,
) -> StudentGpaResponse:
    """Average grade point per course, weighted by course credits."""
    scope.ensure_can_view_student(student_id)
    if not await db.get(Student, student_id):
        raise NotFoundError("Student not found")
    stmt = (
        select(Course.id, Course.name, Course.credits, MarkEntry.grade_point)
        .join(MarkEntry, MarkEntry.course_id == Course.id)
        .join(Exam, Exam.id == MarkEntry.exam_id)
        .where(
            MarkEntry.student_id == student_id,
            MarkEntry.grade_point.is_not(None),
            Exam.exam_date >= year.start_date,
            Exam.exam_date <= year.end_date,
        )
    )
    if not scope.is_staff:
        stmt = stmt.where(MarkEntry.is_published.is_(True))

    per_course: Dict[UUID, List[Decimal]] = defaultdict(list)
    meta: Dict[UUID, tuple] = {}
    for course_id, name, credits, grade_point in (await db.execute(stmt)).all():
        per_course[course_id].append(to_decimal(grade_point))
        meta[course_id] = (name, credits)

    courses: List[CourseGradeItem] = []
    for course_id, points in per_course.items():
        name, credits = meta[course_id]
        courses.append(
            CourseGradeItem(
                course_id=course_id,
                course_name=name,
                credits=credits,
                average_grade_point=round_2(sum(points, Decimal("0")) / len(points)),
            )
        )
    courses.sort(key=lambda c: c.course_name)
    return StudentGpaResponse(
        student_id=student_id,
        academic_year=year.name,
        gpa=calculate_weighted_gpa((c.average_grade_point, c.credits) for c in courses),
        total_credits=sum(c.credits for c in courses),
        courses=courses,
    )
