"""Students service. Students are deactivated rather than deleted so payment history survives."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ConflictError, NotFoundError
from school_erp.core.models import Student

from .schemas import StudentCreate, StudentResponse, StudentUpdate


def _to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        admission_number=s.admission_number,
        first_name=s.first_name,
        last_name=s.last_name,
        full_name=s.full_name,
        email=s.email,
        phone=s.phone,
        date_of_birth=s.date_of_birth,
        gender=s.gender,
        address=s.address,
        guardian_name=s.guardian_name,
        guardian_phone=s.guardian_phone,
        admission_date=s.admission_date,
        user_id=s.user_id,
        is_active=s.is_active,
        created_at=s.created_at,
    )


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    admission_number = payload.admission_number.strip()
    existing = await db.execute(select(Student.id).where(Student.admission_number == admission_number))
    if existing.scalar_one_or_none():
        raise ConflictError("A student with this admission number already exists")
    data = payload.model_dump(exclude_none=True)
    data["admission_number"] = admission_number
    student = Student(**data)
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Admission number or linked account already in use")
    await db.refresh(student)
    return _to_response(student)


async def list_students(
    db: AsyncSession,
    search: Optional[str] = None,
    include_inactive: bool = False,
) -> List[StudentResponse]:
    stmt = select(Student)
    if not include_inactive:
        stmt = stmt.where(Student.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Student.first_name.ilike(pattern),
                Student.last_name.ilike(pattern),
                Student.admission_number.ilike(pattern),
            )
        )
    result = await db.execute(stmt.order_by(Student.first_name, Student.last_name))
    return [_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, student_id: UUID, scope: AccessScope) -> Optional[StudentResponse]:
    scope.ensure_can_view_student(student_id)
    student = await db.get(Student, student_id)
    return _to_response(student) if student else None


async def update_student(db: AsyncSession, student_id: UUID, payload: StudentUpdate) -> StudentResponse:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in ("first_name", "last_name"):
            continue
        setattr(student, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Linked account already belongs to another student")
    await db.refresh(student)
    return _to_response(student)


async def deactivate_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    student.is_active = False
    await db.commit()
    await db.refresh(student)
    return _to_response(student)
