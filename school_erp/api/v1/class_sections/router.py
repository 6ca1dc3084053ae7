from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.rbac import admin_access, teacher_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import ClassSectionCreate, ClassSectionResponse, ClassSectionUpdate
from . import service

router = APIRouter(prefix="/api/v1/class-sections", tags=["class-sections"])


@router.post(
    "",
    response_model=ClassSectionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_class_section(
    payload: ClassSectionCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassSectionResponse:
    try:
        return await service.create_class_section(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ClassSectionResponse],
    dependencies=[Depends(teacher_access)],
)
async def list_class_sections(db: AsyncSession = Depends(get_db)) -> List[ClassSectionResponse]:
    """Class sections with enrollment counts for the active year (0 when no year is active)."""
    return await service.list_class_sections(db, await get_active_year(db))


@router.get(
    "/{class_section_id}",
    response_model=ClassSectionResponse,
    dependencies=[Depends(teacher_access)],
)
async def get_class_section(
    class_section_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassSectionResponse:
    cs = await service.get_class_section(db, class_section_id, await get_active_year(db))
    if not cs:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class section not found")
    return cs


@router.put(
    "/{class_section_id}",
    response_model=ClassSectionResponse,
    dependencies=[Depends(admin_access)],
)
async def update_class_section(
    class_section_id: UUID,
    payload: ClassSectionUpdate,
    db: AsyncSession = Depends(get_db),
) -> ClassSectionResponse:
    try:
        return await service.update_class_section(db, class_section_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{class_section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(admin_access)],
)
async def delete_class_section(
    class_section_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_class_section(db, class_section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
