from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.dependencies import get_access_scope
from school_erp.auth.rbac import admin_access, student_access, teacher_access
from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import StudentCreate, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(teacher_access)],
)
async def list_students(
    search: Optional[str] = Query(None, description="Name or admission number"),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(db, search=search, include_inactive=include_inactive)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(student_access)],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> StudentResponse:
    """Students may only read their own record."""
    try:
        student = await service.get_student(db, student_id, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.put(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(admin_access)],
)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(admin_access)],
)
async def deactivate_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Soft delete: the student is marked inactive."""
    try:
        return await service.deactivate_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
