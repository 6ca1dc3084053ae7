from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access, teacher_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import TeacherCreate, TeacherResponse, TeacherUpdate
from . import service

router = APIRouter(prefix="/api/v1/teachers", tags=["teachers"])


@router.post(
    "",
    response_model=TeacherResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_teacher(
    payload: TeacherCreate,
    db: AsyncSession = Depends(get_db),
) -> TeacherResponse:
    try:
        return await service.create_teacher(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[TeacherResponse],
    dependencies=[Depends(teacher_access)],
)
async def list_teachers(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[TeacherResponse]:
    return await service.list_teachers(db, include_inactive=include_inactive)


@router.get(
    "/{teacher_id}",
    response_model=TeacherResponse,
    dependencies=[Depends(teacher_access)],
)
async def get_teacher(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TeacherResponse:
    teacher = await service.get_teacher(db, teacher_id)
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    return teacher


@router.put(
    "/{teacher_id}",
    response_model=TeacherResponse,
    dependencies=[Depends(admin_access)],
)
async def update_teacher(
    teacher_id: UUID,
    payload: TeacherUpdate,
    db: AsyncSession = Depends(get_db),
) -> TeacherResponse:
    try:
        return await service.update_teacher(db, teacher_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{teacher_id}",
    response_model=TeacherResponse,
    dependencies=[Depends(admin_access)],
)
async def deactivate_teacher(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TeacherResponse:
    try:
        return await service.deactivate_teacher(db, teacher_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
