from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError
from school_erp.core.models import Teacher

from .schemas import TeacherCreate, TeacherResponse, TeacherUpdate


def _to_response(t: Teacher) -> TeacherResponse:
    return TeacherResponse(
        id=t.id,
        employee_id=t.employee_id,
        first_name=t.first_name,
        last_name=t.last_name,
        full_name=t.full_name,
        email=t.email,
        phone=t.phone,
        specialization=t.specialization,
        qualification=t.qualification,
        joining_date=t.joining_date,
        user_id=t.user_id,
        is_active=t.is_active,
        created_at=t.created_at,
    )


async def create_teacher(db: AsyncSession, payload: TeacherCreate) -> TeacherResponse:
    employee_id = payload.employee_id.strip()
    existing = await db.execute(select(Teacher.id).where(Teacher.employee_id == employee_id))
    if existing.scalar_one_or_none():
        raise ConflictError("A teacher with this employee ID already exists")
    data = payload.model_dump(exclude_none=True)
    data["employee_id"] = employee_id
    teacher = Teacher(**data)
    db.add(teacher)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Employee ID or linked account already in use")
    await db.refresh(teacher)
    return _to_response(teacher)


async def list_teachers(db: AsyncSession, include_inactive: bool = False) -> List[TeacherResponse]:
    stmt = select(Teacher)
    if not include_inactive:
        stmt = stmt.where(Teacher.is_active.is_(True))
    result = await db.execute(stmt.order_by(Teacher.first_name, Teacher.last_name))
    return [_to_response(t) for t in result.scalars().all()]


async def get_teacher(db: AsyncSession, teacher_id: UUID) -> Optional[TeacherResponse]:
    teacher = await db.get(Teacher, teacher_id)
    return _to_response(teacher) if teacher else None


async def update_teacher(db: AsyncSession, teacher_id: UUID, payload: TeacherUpdate) -> TeacherResponse:
    teacher = await db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in ("first_name", "last_name"):
            continue
        setattr(teacher, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Linked account already belongs to another teacher")
    await db.refresh(teacher)
    return _to_response(teacher)


async def deactivate_teacher(db: AsyncSession, teacher_id: UUID) -> TeacherResponse:
    teacher = await db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found")
    teacher.is_active = False
    await db.commit()
    await db.refresh(teacher)
    return _to_response(teacher)
