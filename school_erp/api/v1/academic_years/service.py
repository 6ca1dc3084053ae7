"""Academic years: active-year resolution, CRUD and enrollment rollover."""

import logging
from datetime import date
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from school_erp.core.models import AcademicYear, Enrollment, FeeHead

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate, RolloverResponse

logger = logging.getLogger(__name__)


def _to_response(ay: AcademicYear, student_count: int = 0) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        name=ay.name,
        start_date=ay.start_date,
        end_date=ay.end_date,
        is_active=ay.is_active,
        student_count=student_count,
        created_at=ay.created_at,
        updated_at=ay.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise ValidationError("Start date must be before end date")


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required")
    return cleaned


async def _get_or_404(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay:
        raise NotFoundError("Academic year not found")
    return ay


async def _active_enrollment_count(db: AsyncSession, academic_year_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Enrollment.id)).where(
            Enrollment.academic_year_id == academic_year_id,
            Enrollment.is_active.is_(True),
        )
    )
    return result.scalar() or 0


async def get_active_year(db: AsyncSession) -> Optional[AcademicYear]:
    """The single year flagged active, or None."""
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_active.is_(True)))
    return result.scalars().first()


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    """All years, newest first, with their active enrollment counts."""
    counts_result = await db.execute(
        select(Enrollment.academic_year_id, func.count(Enrollment.id))
        .where(Enrollment.is_active.is_(True))
        .group_by(Enrollment.academic_year_id)
    )
    counts: Dict[UUID, int] = {ay_id: n for ay_id, n in counts_result.all()}
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.start_date.desc()))
    return [_to_response(ay, counts.get(ay.id, 0)) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id: UUID) -> Optional[AcademicYearResponse]:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay:
        return None
    return _to_response(ay, await _active_enrollment_count(db, ay.id))


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create academic year. If set_as_active, every other year is deactivated in the same commit."""
    name = _clean_name(payload.name)
    _validate_dates(payload.start_date, payload.end_date)
    existing = await db.execute(select(AcademicYear.id).where(AcademicYear.name == name))
    if existing.scalar_one_or_none():
        raise ConflictError("Academic year with this name already exists")
    if payload.set_as_active:
        await db.execute(update(AcademicYear).values(is_active=False))
    ay = AcademicYear(
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.set_as_active,
    )
    db.add(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Academic year with this name already exists")
    await db.refresh(ay)
    logger.info("Created academic year %s (active=%s)", ay.name, ay.is_active)
    return _to_response(ay)


async def update_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    ay = await _get_or_404(db, academic_year_id)
    start_date = payload.start_date or ay.start_date
    end_date = payload.end_date or ay.end_date
    _validate_dates(start_date, end_date)
    if payload.name is not None:
        name = _clean_name(payload.name)
        other = await db.execute(
            select(AcademicYear.id).where(
                AcademicYear.name == name,
                AcademicYear.id != academic_year_id,
            )
        )
        if other.scalar_one_or_none():
            raise ConflictError("Another academic year with this name already exists")
        ay.name = name
    ay.start_date = start_date
    ay.end_date = end_date
    await db.commit()
    await db.refresh(ay)
    return _to_response(ay, await _active_enrollment_count(db, ay.id))


async def set_active_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    """Make this the only active year. Unknown id raises NotFoundError and changes nothing."""
    ay = await _get_or_404(db, academic_year_id)
    await db.execute(update(AcademicYear).values(is_active=False))
    ay.is_active = True
    await db.commit()
    await db.refresh(ay)
    logger.info("Active academic year set to %s", ay.name)
    return _to_response(ay, await _active_enrollment_count(db, ay.id))


async def delete_academic_year(db: AsyncSession, academic_year_id: UUID) -> str:
    """Hard delete. Refused for the active year and for years with enrollments or fee heads."""
    ay = await _get_or_404(db, academic_year_id)
    if ay.is_active:
        raise ConflictError("Cannot delete the active academic year. Switch to another year first.")
    has_enrollments = await db.execute(
        select(Enrollment.id).where(Enrollment.academic_year_id == academic_year_id).limit(1)
    )
    if has_enrollments.scalar_one_or_none():
        raise ConflictError("Cannot delete this year because it has student enrollments.")
    has_fee_heads = await db.execute(
        select(FeeHead.id).where(FeeHead.academic_year_id == academic_year_id).limit(1)
    )
    if has_fee_heads.scalar_one_or_none():
        raise ConflictError("Cannot delete this year because it has fee structures linked to it.")
    name = ay.name
    await db.delete(ay)
    await db.commit()
    return name


async def rollover_enrollments(
    db: AsyncSession,
    from_year_id: UUID,
    to_year_id: UUID,
) -> RolloverResponse:
    """
    Copy active enrollments of from_year into to_year, keeping class section, course and roll number.
    (student, class_section) pairs already enrolled in the target are skipped. A roll number already
    taken in the target class gets the next free number instead.
    """
    if from_year_id == to_year_id:
        raise ValidationError("Source and target academic years must differ")
    await _get_or_404(db, from_year_id)
    to_year = await db.get(AcademicYear, to_year_id)
    if not to_year:
        raise NotFoundError("Target academic year not found.")

    target_rows = await db.execute(
        select(Enrollment.student_id, Enrollment.class_section_id, Enrollment.roll_number).where(
            Enrollment.academic_year_id == to_year_id
        )
    )
    existing_pairs: Set[Tuple[UUID, UUID]] = set()
    used_rolls: Dict[UUID, Set[int]] = {}
    for student_id, class_section_id, roll_number in target_rows.all():
        existing_pairs.add((student_id, class_section_id))
        used_rolls.setdefault(class_section_id, set()).add(roll_number)

    source = await db.execute(
        select(Enrollment)
        .where(Enrollment.academic_year_id == from_year_id, Enrollment.is_active.is_(True))
        .order_by(Enrollment.class_section_id, Enrollment.roll_number)
    )
    created = 0
    skipped = 0
    for e in source.scalars().all():
        if (e.student_id, e.class_section_id) in existing_pairs:
            skipped += 1
            continue
        rolls = used_rolls.setdefault(e.class_section_id, set())
        roll_number = e.roll_number
        if roll_number in rolls:
            roll_number = max(rolls) + 1
        rolls.add(roll_number)
        existing_pairs.add((e.student_id, e.class_section_id))
        db.add(
            Enrollment(
                student_id=e.student_id,
                class_section_id=e.class_section_id,
                academic_year_id=to_year_id,
                course_id=e.course_id,
                roll_number=roll_number,
                is_active=True,
            )
        )
        created += 1
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Rollover conflicts with existing enrollments in the target year")
    logger.info("Rolled over %d enrollments into %s (%d skipped)", created, to_year.name, skipped)
    return RolloverResponse(
        created=created,
        skipped=skipped,
        message=f"Rolled over {created} students to new academic year!",
    )
