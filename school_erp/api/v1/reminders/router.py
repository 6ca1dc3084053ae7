from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.rbac import admin_access
from school_erp.core.exceptions import ServiceError
from school_erp.db.session import get_db
from school_erp.reminders.scheduler import fee_reminder_runner

from .schemas import DueFeeHeadResponse, ReminderResponse, ReminderRunResponse
from . import service

router = APIRouter(prefix="/api/v1/reminders", tags=["reminders"])


@router.get(
    "",
    response_model=List[ReminderResponse],
    dependencies=[Depends(admin_access)],
)
async def list_pending_reminders(
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> List[ReminderResponse]:
    """Unsent reminders, newest first."""
    return await service.list_pending_reminders(db, limit=limit)


@router.get(
    "/overdue-fees",
    response_model=List[DueFeeHeadResponse],
    dependencies=[Depends(admin_access)],
)
async def list_overdue_fee_heads(db: AsyncSession = Depends(get_db)) -> List[DueFeeHeadResponse]:
    heads = await service.get_overdue_fee_heads(db)
    return [DueFeeHeadResponse.model_validate(h) for h in heads]


@router.get(
    "/upcoming-fees",
    response_model=List[DueFeeHeadResponse],
    dependencies=[Depends(admin_access)],
)
async def list_upcoming_fee_heads(
    days_ahead: int = Query(7, ge=0, le=365),
    db: AsyncSession = Depends(get_db),
) -> List[DueFeeHeadResponse]:
    heads = await service.get_upcoming_fee_heads(db, days_ahead=days_ahead)
    return [DueFeeHeadResponse.model_validate(h) for h in heads]


@router.post(
    "/{reminder_id}/mark-sent",
    response_model=ReminderResponse,
    dependencies=[Depends(admin_access)],
)
async def mark_reminder_sent(
    reminder_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ReminderResponse:
    try:
        return await service.mark_reminder_sent(db, reminder_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/run",
    response_model=ReminderRunResponse,
    dependencies=[Depends(admin_access)],
)
async def run_reminder_sweep(db: AsyncSession = Depends(get_db)) -> ReminderRunResponse:
    """Run a reminder pass now. 409 while another pass is in flight."""
    ran = await fee_reminder_runner.run_once(db=db, raise_errors=True)
    if not ran:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A fee reminder pass is already running",
        )
    created = fee_reminder_runner.last_created or 0
    return ReminderRunResponse(created=created, message=f"{created} reminder(s) queued")
