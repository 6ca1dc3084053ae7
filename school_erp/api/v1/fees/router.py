from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.dependencies import NO_ACTIVE_YEAR_MESSAGE, get_access_scope, get_active_year_scope
from school_erp.auth.rbac import admin_access, student_access
from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ServiceError
from school_erp.core.models import AcademicYear
from school_erp.db.session import get_db
from school_erp.reports.pdf import render_fee_receipt

from .schemas import (
    FeeHeadCreate,
    FeeHeadResponse,
    FeeHeadUpdate,
    PaymentCreate,
    PaymentResponse,
    StudentFeeStatement,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# ----- Fee heads -----
@router.post(
    "/heads",
    response_model=FeeHeadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_access)],
)
async def create_fee_head(
    payload: FeeHeadCreate,
    db: AsyncSession = Depends(get_db),
) -> FeeHeadResponse:
    """Create a fee head. academic_year_id defaults to the active year."""
    try:
        return await service.create_fee_head(db, payload, await get_active_year(db))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/heads",
    response_model=List[FeeHeadResponse],
    dependencies=[Depends(student_access)],
)
async def list_fee_heads(
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the active year"),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[FeeHeadResponse]:
    if academic_year_id is None:
        active = await get_active_year(db)
        if active is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACTIVE_YEAR_MESSAGE)
        academic_year_id = active.id
    return await service.list_fee_heads(db, academic_year_id, include_inactive=include_inactive)


@router.get(
    "/heads/{fee_head_id}",
    response_model=FeeHeadResponse,
    dependencies=[Depends(student_access)],
)
async def get_fee_head(
    fee_head_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeHeadResponse:
    fh = await service.get_fee_head(db, fee_head_id)
    if not fh:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee head not found")
    return fh


@router.put(
    "/heads/{fee_head_id}",
    response_model=FeeHeadResponse,
    dependencies=[Depends(admin_access)],
)
async def update_fee_head(
    fee_head_id: UUID,
    payload: FeeHeadUpdate,
    db: AsyncSession = Depends(get_db),
) -> FeeHeadResponse:
    try:
        return await service.update_fee_head(db, fee_head_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/heads/{fee_head_id}",
    dependencies=[Depends(admin_access)],
)
async def delete_fee_head(
    fee_head_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Hard delete, or deactivate when payments were already recorded against the head."""
    try:
        deleted = await service.delete_fee_head(db, fee_head_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if deleted:
        return {"message": "Fee head deleted.", "deleted": True}
    return {"message": "Fee head deactivated (has existing payments).", "deleted": False}


# ----- Payments -----
@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(student_access)],
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> PaymentResponse:
    try:
        return await service.record_payment(db, payload, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/payments",
    response_model=List[PaymentResponse],
    dependencies=[Depends(student_access)],
)
async def list_payments(
    student_id: Optional[UUID] = Query(None),
    fee_head_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> List[PaymentResponse]:
    """Payments, newest first. Students always get their own."""
    return await service.list_payments(db, scope, student_id=student_id, fee_head_id=fee_head_id, limit=limit)


@router.get(
    "/payments/{payment_id}/receipt.pdf",
    dependencies=[Depends(student_access)],
)
async def download_fee_receipt(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> Response:
    try:
        data = await service.get_fee_receipt_data(db, payment_id, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=render_fee_receipt(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="FeeReceipt_{data.receipt_number}.pdf"'},
    )


@router.get(
    "/students/{student_id}/statement",
    response_model=StudentFeeStatement,
    dependencies=[Depends(student_access)],
)
async def get_student_fee_statement(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> StudentFeeStatement:
    """Fee schedule of the active year with Paid / Overdue / Pending per head."""
    try:
        return await service.get_student_fee_statement(db, year, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
