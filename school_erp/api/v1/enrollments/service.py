"""Enrollments: bind students to a class section within an academic year."""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from school_erp.core.models import AcademicYear, ClassSection, Course, Enrollment, Student

from .schemas import EnrollmentCreate, EnrollmentResponse

logger = logging.getLogger(__name__)


def _to_response(e: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=e.id,
        student_id=e.student_id,
        student_name=e.student.full_name,
        admission_number=e.student.admission_number,
        class_section_id=e.class_section_id,
        class_name=e.class_section.display_name,
        academic_year_id=e.academic_year_id,
        course_id=e.course_id,
        roll_number=e.roll_number,
        is_active=e.is_active,
        created_at=e.created_at,
    )


def _class_sort_key(e: Enrollment) -> Tuple[int, str, str, int]:
    # "10" sorts after "9"; non-numeric class names go last
    name = e.class_section.class_name
    number = int(name) if name.isdigit() else 99
    return number, name, e.class_section.section, e.roll_number


async def next_roll_number(db: AsyncSession, class_section_id: UUID, academic_year_id: UUID) -> int:
    result = await db.execute(
        select(func.max(Enrollment.roll_number)).where(
            Enrollment.class_section_id == class_section_id,
            Enrollment.academic_year_id == academic_year_id,
        )
    )
    return (result.scalar() or 0) + 1


async def _roll_number_taken(
    db: AsyncSession,
    class_section_id: UUID,
    academic_year_id: UUID,
    roll_number: int,
) -> bool:
    result = await db.execute(
        select(Enrollment.id).where(
            Enrollment.class_section_id == class_section_id,
            Enrollment.academic_year_id == academic_year_id,
            Enrollment.roll_number == roll_number,
        )
    )
    return result.scalar_one_or_none() is not None


async def create_enrollment(
    db: AsyncSession,
    payload: EnrollmentCreate,
    active_year: Optional[AcademicYear],
) -> EnrollmentResponse:
    """
    Enroll a student. An active duplicate (student, class section, year) is rejected; a withdrawn
    one is reactivated instead of inserting a second row.
    """
    year_id = payload.academic_year_id or (active_year.id if active_year else None)
    if year_id is None:
        raise ValidationError("No active academic year set. Please set an active year first.")
    if not await db.get(AcademicYear, year_id):
        raise NotFoundError("Academic year not found")
    student = await db.get(Student, payload.student_id)
    if not student or not student.is_active:
        raise NotFoundError("Student not found")
    if not await db.get(ClassSection, payload.class_section_id):
        raise NotFoundError("Class section not found")
    if payload.course_id is not None and not await db.get(Course, payload.course_id):
        raise NotFoundError("Course not found")

    existing = (
        await db.execute(
            select(Enrollment).where(
                Enrollment.student_id == payload.student_id,
                Enrollment.class_section_id == payload.class_section_id,
                Enrollment.academic_year_id == year_id,
            )
        )
    ).scalars().first()
    if existing and existing.is_active:
        raise ConflictError("Student is already enrolled in this class for the selected year.")

    if payload.roll_number is not None:
        roll_number = payload.roll_number
        if (existing is None or existing.roll_number != roll_number) and await _roll_number_taken(
            db, payload.class_section_id, year_id, roll_number
        ):
            raise ConflictError(f"Roll number {roll_number} is already taken in this class")
    elif existing is not None:
        roll_number = existing.roll_number
    else:
        roll_number = await next_roll_number(db, payload.class_section_id, year_id)

    if existing is not None:
        existing.is_active = True
        existing.roll_number = roll_number
        existing.course_id = payload.course_id
        enrollment = existing
    else:
        enrollment = Enrollment(
            student_id=payload.student_id,
            class_section_id=payload.class_section_id,
            academic_year_id=year_id,
            course_id=payload.course_id,
            roll_number=roll_number,
            is_active=True,
        )
        db.add(enrollment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Enrollment conflicts with an existing enrollment")
    enrollment = await _load(db, enrollment.id)
    logger.info(
        "Enrolled %s in %s with roll number %d",
        enrollment.student.admission_number, enrollment.class_section.display_name, roll_number,
    )
    return _to_response(enrollment)


async def _load(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    result = await db.execute(
        select(Enrollment).where(Enrollment.id == enrollment_id).execution_options(populate_existing=True)
    )
    return result.scalars().one()


async def list_enrollments(
    db: AsyncSession,
    academic_year_id: UUID,
    class_name: Optional[str] = None,
    section: Optional[str] = None,
    include_inactive: bool = False,
) -> List[EnrollmentResponse]:
    stmt = (
        select(Enrollment)
        .join(ClassSection, ClassSection.id == Enrollment.class_section_id)
        .where(Enrollment.academic_year_id == academic_year_id)
    )
    if not include_inactive:
        stmt = stmt.where(Enrollment.is_active.is_(True))
    if class_name:
        stmt = stmt.where(ClassSection.class_name == class_name)
    if section:
        stmt = stmt.where(ClassSection.section == section.upper())
    enrollments = list((await db.execute(stmt)).scalars().all())
    enrollments.sort(key=_class_sort_key)
    return [_to_response(e) for e in enrollments]


async def withdraw_enrollment(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    enrollment = await db.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    enrollment.is_active = False
    await db.commit()
    return _to_response(await _load(db, enrollment_id))
