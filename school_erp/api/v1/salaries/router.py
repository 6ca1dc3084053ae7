from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access
from school_erp.core.enums import SalaryStatus
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db

from .schemas import SalaryCreate, SalaryResponse, SalaryUpdate
from . import service

router = APIRouter(prefix="/api/v1/salaries", tags=["salaries"])


@router.post(
    "",
    response_model=SalaryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_salary(
    payload: SalaryCreate,
    db: AsyncSession = Depends(get_db),
) -> SalaryResponse:
    try:
        return await service.create_salary(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[SalaryResponse], dependencies=[Depends(admin_access)])
async def list_salaries(
    teacher_id: Optional[UUID] = Query(None),
    status_filter: Optional[SalaryStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> List[SalaryResponse]:
    return await service.list_salaries(db, teacher_id=teacher_id, status_filter=status_filter)


@router.get("/{salary_id}", response_model=SalaryResponse, dependencies=[Depends(admin_access)])
async def get_salary(
    salary_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SalaryResponse:
    salary = await service.get_salary(db, salary_id)
    if not salary:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Salary record not found")
    return salary


@router.put("/{salary_id}", response_model=SalaryResponse, dependencies=[Depends(admin_access)])
async def update_salary(
    salary_id: UUID,
    payload: SalaryUpdate,
    db: AsyncSession = Depends(get_db),
) -> SalaryResponse:
    try:
        return await service.update_salary(db, salary_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{salary_id}/mark-paid", response_model=SalaryResponse, dependencies=[Depends(admin_access)])
async def mark_salary_paid(
    salary_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SalaryResponse:
    """Set status to Paid and the payment date to today."""
    try:
        return await service.mark_salary_paid(db, salary_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{salary_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(admin_access)])
async def delete_salary(
    salary_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_salary(db, salary_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
