from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access, student_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate
from . import service

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    try:
        return await service.create_subject(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[SubjectResponse],
    dependencies=[Depends(student_access)],
)
async def list_subjects(
    standard: Optional[int] = Query(None, ge=1, le=12),
    search: Optional[str] = Query(None, description="Matches name or code"),
    db: AsyncSession = Depends(get_db),
) -> List[SubjectResponse]:
    return await service.list_subjects(db, standard=standard, search=search)


@router.get(
    "/standards",
    response_model=List[int],
    dependencies=[Depends(student_access)],
)
async def list_standards(db: AsyncSession = Depends(get_db)) -> List[int]:
    """Standards that have subjects, for filter dropdowns."""
    return await service.list_standards(db)


@router.get(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(student_access)],
)
async def get_subject(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    subject = await service.get_subject(db, subject_id)
    if not subject:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subject


@router.put(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(admin_access)],
)
async def update_subject(
    subject_id: UUID,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    try:
        return await service.update_subject(db, subject_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{subject_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(admin_access)],
)
async def delete_subject(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_subject(db, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
