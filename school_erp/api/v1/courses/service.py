from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError
from school_erp.core.models import Course, Exam, Teacher

from .schemas import CourseCreate, CourseResponse, CourseUpdate


def _to_response(c: Course, teacher_name: Optional[str] = None) -> CourseResponse:
    return CourseResponse(
        id=c.id,
        name=c.name,
        code=c.code,
        credits=c.credits,
        teacher_id=c.teacher_id,
        teacher_name=teacher_name,
        created_at=c.created_at,
    )


def _clean_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    return code.strip().upper() or None


async def _teacher_name(db: AsyncSession, teacher_id: Optional[UUID]) -> Optional[str]:
    if teacher_id is None:
        return None
    teacher = await db.get(Teacher, teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher.full_name


async def create_course(db: AsyncSession, payload: CourseCreate) -> CourseResponse:
    code = _clean_code(payload.code)
    if code:
        existing = await db.execute(select(Course.id).where(Course.code == code))
        if existing.scalar_one_or_none():
            raise ConflictError("A course with this code already exists")
    teacher_name = await _teacher_name(db, payload.teacher_id)
    course = Course(
        name=payload.name.strip(),
        code=code,
        credits=payload.credits,
        teacher_id=payload.teacher_id,
    )
    db.add(course)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A course with this code already exists")
    await db.refresh(course)
    return _to_response(course, teacher_name)


async def list_courses(db: AsyncSession) -> List[CourseResponse]:
    result = await db.execute(
        select(Course, Teacher.first_name, Teacher.last_name)
        .outerjoin(Teacher, Teacher.id == Course.teacher_id)
        .order_by(Course.name)
    )
    return [
        _to_response(c, f"{first} {last}" if first is not None else None)
        for c, first, last in result.all()
    ]


async def get_course(db: AsyncSession, course_id: UUID) -> Optional[CourseResponse]:
    course = await db.get(Course, course_id)
    if not course:
        return None
    return _to_response(course, await _teacher_name(db, course.teacher_id))


async def update_course(db: AsyncSession, course_id: UUID, payload: CourseUpdate) -> CourseResponse:
    course = await db.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    data = payload.model_dump(exclude_unset=True)
    if "teacher_id" in data:
        await _teacher_name(db, data["teacher_id"])
    if "code" in data:
        code = _clean_code(data["code"])
        if code:
            other = await db.execute(select(Course.id).where(Course.code == code, Course.id != course_id))
            if other.scalar_one_or_none():
                raise ConflictError("A course with this code already exists")
        course.code = code
    if data.get("name"):
        course.name = data["name"].strip()
    if data.get("credits") is not None:
        course.credits = data["credits"]
    if "teacher_id" in data:
        course.teacher_id = data["teacher_id"]
    await db.commit()
    await db.refresh(course)
    return _to_response(course, await _teacher_name(db, course.teacher_id))


async def delete_course(db: AsyncSession, course_id: UUID) -> None:
    course = await db.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    has_exams = (await db.execute(select(Exam.id).where(Exam.course_id == course_id).limit(1))).scalar_one_or_none()
    if has_exams:
        raise ConflictError("Cannot delete a course that has exams scheduled")
    await db.delete(course)
    await db.commit()
