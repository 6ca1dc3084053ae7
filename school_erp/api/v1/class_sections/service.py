from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError
from school_erp.core.models import AcademicYear, ClassSection, Enrollment

from .schemas import ClassSectionCreate, ClassSectionResponse, ClassSectionUpdate


def _to_response(cs: ClassSection, enrolled_count: int = 0) -> ClassSectionResponse:
    return ClassSectionResponse(
        id=cs.id,
        class_name=cs.class_name,
        section=cs.section,
        display_name=cs.display_name,
        capacity=cs.capacity,
        enrolled_count=enrolled_count,
        created_at=cs.created_at,
    )


async def _ensure_unique(
    db: AsyncSession,
    class_name: str,
    section: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    stmt = select(ClassSection.id).where(
        ClassSection.class_name == class_name,
        ClassSection.section == section,
    )
    if exclude_id is not None:
        stmt = stmt.where(ClassSection.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none():
        raise ConflictError(f"Class {class_name}-{section} already exists")


async def _enrolled_counts(db: AsyncSession, year: Optional[AcademicYear]) -> Dict[UUID, int]:
    if year is None:
        return {}
    result = await db.execute(
        select(Enrollment.class_section_id, func.count(Enrollment.id))
        .where(Enrollment.academic_year_id == year.id, Enrollment.is_active.is_(True))
        .group_by(Enrollment.class_section_id)
    )
    return {cs_id: n for cs_id, n in result.all()}


async def create_class_section(db: AsyncSession, payload: ClassSectionCreate) -> ClassSectionResponse:
    class_name = payload.class_name.strip()
    section = payload.section.strip().upper()
    await _ensure_unique(db, class_name, section)
    cs = ClassSection(class_name=class_name, section=section, capacity=payload.capacity)
    db.add(cs)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Class {class_name}-{section} already exists")
    await db.refresh(cs)
    return _to_response(cs)


async def list_class_sections(db: AsyncSession, year: Optional[AcademicYear]) -> List[ClassSectionResponse]:
    """All class sections with their active enrollment counts in the given year."""
    counts = await _enrolled_counts(db, year)
    result = await db.execute(select(ClassSection).order_by(ClassSection.class_name, ClassSection.section))
    return [_to_response(cs, counts.get(cs.id, 0)) for cs in result.scalars().all()]


async def get_class_section(
    db: AsyncSession,
    class_section_id: UUID,
    year: Optional[AcademicYear],
) -> Optional[ClassSectionResponse]:
    cs = await db.get(ClassSection, class_section_id)
    if not cs:
        return None
    counts = await _enrolled_counts(db, year)
    return _to_response(cs, counts.get(cs.id, 0))


async def update_class_section(
    db: AsyncSession,
    class_section_id: UUID,
    payload: ClassSectionUpdate,
) -> ClassSectionResponse:
    cs = await db.get(ClassSection, class_section_id)
    if not cs:
        raise NotFoundError("Class section not found")
    class_name = payload.class_name.strip() if payload.class_name else cs.class_name
    section = payload.section.strip().upper() if payload.section else cs.section
    if (class_name, section) != (cs.class_name, cs.section):
        await _ensure_unique(db, class_name, section, exclude_id=cs.id)
    cs.class_name = class_name
    cs.section = section
    if payload.capacity is not None:
        cs.capacity = payload.capacity
    await db.commit()
    await db.refresh(cs)
    return _to_response(cs)


async def delete_class_section(db: AsyncSession, class_section_id: UUID) -> None:
    cs = await db.get(ClassSection, class_section_id)
    if not cs:
        raise NotFoundError("Class section not found")
    has_enrollments = (
        await db.execute(select(Enrollment.id).where(Enrollment.class_section_id == class_section_id).limit(1))
    ).scalar_one_or_none()
    if has_enrollments:
        raise ConflictError("Cannot delete a class section with enrollments")
    await db.delete(cs)
    await db.commit()
