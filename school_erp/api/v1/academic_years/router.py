from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access, teacher_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
    RolloverRequest,
    RolloverResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post(
    "",
    response_model=AcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Create academic year. Use set_as_active=true to make it the only active year."""
    try:
        return await service.create_academic_year(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[AcademicYearResponse],
    dependencies=[Depends(teacher_access)],
)
async def list_academic_years(db: AsyncSession = Depends(get_db)) -> List[AcademicYearResponse]:
    """List academic years, newest first, with active enrollment counts."""
    return await service.list_academic_years(db)


@router.get(
    "/active",
    response_model=AcademicYearResponse,
    dependencies=[Depends(teacher_access)],
)
async def get_active_academic_year(db: AsyncSession = Depends(get_db)) -> AcademicYearResponse:
    ay = await service.get_active_year(db)
    if not ay:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active academic year set")
    return await service.get_academic_year(db, ay.id)


@router.get(
    "/{academic_year_id}",
    response_model=AcademicYearResponse,
    dependencies=[Depends(teacher_access)],
)
async def get_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    ay = await service.get_academic_year(db, academic_year_id)
    if not ay:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Academic year not found")
    return ay


@router.put(
    "/{academic_year_id}",
    response_model=AcademicYearResponse,
    dependencies=[Depends(admin_access)],
)
async def update_academic_year(
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.update_academic_year(db, academic_year_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{academic_year_id}/set-active",
    response_model=AcademicYearResponse,
    dependencies=[Depends(admin_access)],
)
async def set_academic_year_active(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Set this academic year as active. All others become inactive. Admin only."""
    try:
        return await service.set_active_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{academic_year_id}",
    dependencies=[Depends(admin_access)],
)
async def delete_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        name = await service.delete_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": f"Academic year {name} deleted successfully."}


@router.post(
    "/rollover",
    response_model=RolloverResponse,
    dependencies=[Depends(admin_access)],
)
async def rollover_enrollments(
    payload: RolloverRequest,
    db: AsyncSession = Depends(get_db),
) -> RolloverResponse:
    """Copy active enrollments from one year into another, skipping students already enrolled there."""
    try:
        return await service.rollover_enrollments(db, payload.from_year_id, payload.to_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
