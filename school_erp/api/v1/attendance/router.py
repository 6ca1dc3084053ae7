from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.dependencies import get_active_year_scope
from school_erp.auth.rbac import teacher_access
from school_erp.core.exceptions import ServiceError
from school_erp.core.models import AcademicYear
from school_erp.db.session import get_db

from .schemas import AttendanceRegister, AttendanceRegisterSave, AttendanceSaveResponse
from . import service

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.post(
    "/register",
    response_model=AttendanceSaveResponse,
    dependencies=[Depends(teacher_access)],
)
async def save_register(
    payload: AttendanceRegisterSave,
    db: AsyncSession = Depends(get_db),
    year: AcademicYear = Depends(get_active_year_scope),
) -> AttendanceSaveResponse:
    """Save the class register for a day. Admin and teachers."""
    try:
        return await service.save_register(db, year, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/register",
    response_model=AttendanceRegister,
    dependencies=[Depends(teacher_access)],
)
async def get_register(
    class_section_id: UUID = Query(...),
    att_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
    year: AcademicYear = Depends(get_active_year_scope),
) -> AttendanceRegister:
    try:
        return await service.get_register(db, year, class_section_id, att_date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
