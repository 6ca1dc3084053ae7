from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.dependencies import NO_ACTIVE_YEAR_MESSAGE
from school_erp.auth.rbac import admin_access, teacher_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import EnrollmentCreate, EnrollmentResponse
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_enrollment(
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Enroll a student. Roll number is auto-assigned as max + 1 when omitted."""
    try:
        return await service.create_enrollment(db, payload, await get_active_year(db))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[EnrollmentResponse],
    dependencies=[Depends(teacher_access)],
)
async def list_enrollments(
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the active year"),
    class_name: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[EnrollmentResponse]:
    if academic_year_id is None:
        active = await get_active_year(db)
        if active is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACTIVE_YEAR_MESSAGE)
        academic_year_id = active.id
    return await service.list_enrollments(
        db,
        academic_year_id,
        class_name=class_name,
        section=section,
        include_inactive=include_inactive,
    )


@router.post(
    "/{enrollment_id}/withdraw",
    response_model=EnrollmentResponse,
    dependencies=[Depends(admin_access)],
)
async def withdraw_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        return await service.withdraw_enrollment(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
