from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access, student_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import CourseCreate, CourseResponse, CourseUpdate
from . import service

router = APIRouter(prefix="/api/v1/courses", tags=["courses"])


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_course(
    payload: CourseCreate,
    db: AsyncSession = Depends(get_db),
) -> CourseResponse:
    try:
        return await service.create_course(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[CourseResponse],
    dependencies=[Depends(student_access)],
)
async def list_courses(db: AsyncSession = Depends(get_db)) -> List[CourseResponse]:
    return await service.list_courses(db)


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    dependencies=[Depends(student_access)],
)
async def get_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> CourseResponse:
    course = await service.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course


@router.put(
    "/{course_id}",
    response_model=CourseResponse,
    dependencies=[Depends(admin_access)],
)
async def update_course(
    course_id: UUID,
    payload: CourseUpdate,
    db: AsyncSession = Depends(get_db),
) -> CourseResponse:
    try:
        return await service.update_course(db, course_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(admin_access)],
)
async def delete_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Blocked while exams reference the course."""
    try:
        await service.delete_course(db, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
