from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError
from school_erp.core.models import Subject, Teacher

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate

DUPLICATE_MESSAGE = "A subject with this name already exists for this standard"


def _to_response(s: Subject, teacher_name: Optional[str] = None) -> SubjectResponse:
    return SubjectResponse(
        id=s.id,
        standard=s.standard,
        name=s.name,
        code=s.code,
        teacher_id=s.teacher_id,
        teacher_name=teacher_name,
        created_at=s.created_at,
    )


def _clean_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    return code.strip().upper() or None


async def _assignable_teacher_name(db: AsyncSession, teacher_id: Optional[UUID]) -> Optional[str]:
    """Only active teachers can be assigned to a subject."""
    if teacher_id is None:
        return None
    teacher = await db.get(Teacher, teacher_id)
    if not teacher or not teacher.is_active:
        raise NotFoundError("Teacher not found")
    return teacher.full_name


async def _teacher_name(db: AsyncSession, teacher_id: Optional[UUID]) -> Optional[str]:
    if teacher_id is None:
        return None
    teacher = await db.get(Teacher, teacher_id)
    return teacher.full_name if teacher else None


async def _ensure_unique(
    db: AsyncSession,
    standard: int,
    name: str,
    exclude_subject_id: Optional[UUID] = None,
) -> None:
    stmt = select(Subject.id).where(Subject.standard == standard, Subject.name == name)
    if exclude_subject_id is not None:
        stmt = stmt.where(Subject.id != exclude_subject_id)
    if (await db.execute(stmt)).scalar_one_or_none():
        raise ConflictError(DUPLICATE_MESSAGE)


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    name = payload.name.strip()
    await _ensure_unique(db, payload.standard, name)
    teacher_name = await _assignable_teacher_name(db, payload.teacher_id)
    subject = Subject(
        standard=payload.standard,
        name=name,
        code=_clean_code(payload.code),
        teacher_id=payload.teacher_id,
    )
    db.add(subject)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_MESSAGE)
    await db.refresh(subject)
    return _to_response(subject, teacher_name)


async def list_subjects(
    db: AsyncSession,
    standard: Optional[int] = None,
    search: Optional[str] = None,
) -> List[SubjectResponse]:
    """Subjects ordered by standard then name; search matches name or code."""
    stmt = select(Subject, Teacher.first_name, Teacher.last_name).outerjoin(
        Teacher, Teacher.id == Subject.teacher_id
    )
    if standard is not None:
        stmt = stmt.where(Subject.standard == standard)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Subject.name.ilike(pattern), Subject.code.ilike(pattern)))
    result = await db.execute(stmt.order_by(Subject.standard, Subject.name))
    return [
        _to_response(s, f"{first} {last}" if first is not None else None)
        for s, first, last in result.all()
    ]


async def list_standards(db: AsyncSession) -> List[int]:
    """Distinct standards that have at least one subject, ascending."""
    result = await db.execute(select(Subject.standard).distinct().order_by(Subject.standard))
    return [row[0] for row in result.all()]


async def get_subject(db: AsyncSession, subject_id: UUID) -> Optional[SubjectResponse]:
    subject = await db.get(Subject, subject_id)
    if not subject:
        return None
    return _to_response(subject, await _teacher_name(db, subject.teacher_id))


async def update_subject(db: AsyncSession, subject_id: UUID, payload: SubjectUpdate) -> SubjectResponse:
    subject = await db.get(Subject, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    data = payload.model_dump(exclude_unset=True)
    standard = data.get("standard") or subject.standard
    name = data["name"].strip() if data.get("name") else subject.name
    if standard != subject.standard or name != subject.name:
        await _ensure_unique(db, standard, name, exclude_subject_id=subject_id)
    if "teacher_id" in data:
        await _assignable_teacher_name(db, data["teacher_id"])
        subject.teacher_id = data["teacher_id"]
    subject.standard = standard
    subject.name = name
    if "code" in data:
        subject.code = _clean_code(data["code"])
    await db.commit()
    await db.refresh(subject)
    return _to_response(subject, await _teacher_name(db, subject.teacher_id))


async def delete_subject(db: AsyncSession, subject_id: UUID) -> None:
    subject = await db.get(Subject, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    await db.delete(subject)
    await db.commit()
