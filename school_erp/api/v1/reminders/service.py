"""
Fee reminder sweep.

For every overdue or soon-due fee head, queues one ReminderLog per unpaid student and
reminder type per day. Students whose Completed payments for the head reach the head
amount are left alone; partial payers keep getting reminded.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.enums import PaymentStatus, ReminderType
from school_erp.core.exceptions import NotFoundError
from school_erp.core.grading import round_2, to_decimal
from school_erp.core.models import ClassSection, Enrollment, FeeHead, FeePayment, ReminderLog, Student

from .schemas import ReminderResponse

logger = logging.getLogger(__name__)

DUE_DATE_FORMAT = "%d-%b-%Y"


def _today(now: Optional[datetime] = None) -> date:
    return (now or datetime.now(timezone.utc)).date()


def _format_amount(amount: Decimal) -> str:
    return f"{settings.currency_symbol}{round_2(amount)}"


def build_reminder_message(fee_head: FeeHead, reminder_type: ReminderType) -> str:
    """Fee 'Tuition' of ₹15000.00 is overdue (due: 05-Jan-2026) / ... is due on 05-Jan-2026"""
    due = fee_head.due_date.strftime(DUE_DATE_FORMAT)
    amount = _format_amount(fee_head.amount)
    if reminder_type == ReminderType.FEE_OVERDUE:
        return f"Fee '{fee_head.name}' of {amount} is overdue (due: {due})"
    return f"Fee '{fee_head.name}' of {amount} is due on {due}"


def _to_response(log: ReminderLog, student_name: Optional[str] = None) -> ReminderResponse:
    return ReminderResponse(
        id=log.id,
        student_id=log.student_id,
        student_name=student_name,
        fee_head_id=log.fee_head_id,
        reminder_type=log.reminder_type,
        reminder_date=log.reminder_date,
        message=log.message,
        is_sent=log.is_sent,
        sent_at=log.sent_at,
        created_at=log.created_at,
    )


async def get_overdue_fee_heads(db: AsyncSession, today: Optional[date] = None) -> List[FeeHead]:
    """Active fee heads whose due date has passed."""
    today = today or _today()
    result = await db.execute(
        select(FeeHead)
        .where(FeeHead.is_active.is_(True), FeeHead.due_date < today)
        .order_by(FeeHead.due_date)
    )
    return list(result.scalars().all())


async def get_upcoming_fee_heads(
    db: AsyncSession,
    days_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> List[FeeHead]:
    """Active fee heads due between today and today + days_ahead (inclusive)."""
    today = today or _today()
    if days_ahead is None:
        days_ahead = settings.fee_reminder_upcoming_days
    result = await db.execute(
        select(FeeHead)
        .where(
            FeeHead.is_active.is_(True),
            FeeHead.due_date >= today,
            FeeHead.due_date <= today + timedelta(days=days_ahead),
        )
        .order_by(FeeHead.due_date)
    )
    return list(result.scalars().all())


async def get_fully_paid_student_ids(db: AsyncSession, fee_head: FeeHead) -> Set[UUID]:
    """Students whose Completed payments for this head add up to at least the head amount."""
    result = await db.execute(
        select(FeePayment.student_id, func.sum(FeePayment.amount_paid))
        .where(
            FeePayment.fee_head_id == fee_head.id,
            FeePayment.status == PaymentStatus.COMPLETED.value,
        )
        .group_by(FeePayment.student_id)
    )
    head_amount = to_decimal(fee_head.amount)
    return {student_id for student_id, paid in result.all() if to_decimal(paid) >= head_amount}


async def _candidate_student_ids(db: AsyncSession, fee_head: FeeHead) -> List[UUID]:
    """Active students liable for the head: everyone, or only active enrollments of applicable_class."""
    stmt = select(Student.id).where(Student.is_active.is_(True))
    if fee_head.applicable_class and fee_head.applicable_class.strip():
        stmt = (
            stmt.join(Enrollment, Enrollment.student_id == Student.id)
            .join(ClassSection, ClassSection.id == Enrollment.class_section_id)
            .where(
                Enrollment.is_active.is_(True),
                ClassSection.class_name == fee_head.applicable_class,
            )
            .distinct()
        )
    result = await db.execute(stmt)
    return [row[0] for row in result.all()]


async def generate_reminders(
    db: AsyncSession,
    now: Optional[datetime] = None,
    upcoming_days: Optional[int] = None,
) -> int:
    """
    Run one reminder pass and return the number of ReminderLog rows created.

    Idempotent per (student, reminder type, day): rows already stored for today, and rows
    queued earlier in the same pass, are not duplicated. Everything is committed once at the end.
    """
    today = _today(now)
    overdue = await get_overdue_fee_heads(db, today=today)
    upcoming = await get_upcoming_fee_heads(db, days_ahead=upcoming_days, today=today)

    existing = await db.execute(
        select(ReminderLog.student_id, ReminderLog.reminder_type).where(ReminderLog.reminder_date == today)
    )
    seen: Set[Tuple[UUID, str]] = {(student_id, rtype) for student_id, rtype in existing.all()}

    created = 0
    batches: List[Tuple[ReminderType, List[FeeHead]]] = [
        (ReminderType.FEE_OVERDUE, overdue),
        (ReminderType.FEE_UPCOMING, upcoming),
    ]
    for reminder_type, fee_heads in batches:
        for fee_head in fee_heads:
            fully_paid = await get_fully_paid_student_ids(db, fee_head)
            message = build_reminder_message(fee_head, reminder_type)
            for student_id in await _candidate_student_ids(db, fee_head):
                key = (student_id, reminder_type.value)
                if student_id in fully_paid or key in seen:
                    continue
                db.add(
                    ReminderLog(
                        student_id=student_id,
                        fee_head_id=fee_head.id,
                        reminder_type=reminder_type.value,
                        reminder_date=today,
                        message=message,
                        is_sent=False,
                    )
                )
                seen.add(key)
                created += 1

    try:
        await db.commit()
    except IntegrityError:
        # A concurrent writer already queued today's reminders for some of these students.
        await db.rollback()
        logger.warning("Fee reminder pass for %s lost a race with another writer; nothing stored", today)
        return 0
    logger.info(
        "Fee reminders generated for %s: %d created (%d overdue heads, %d upcoming heads)",
        today, created, len(overdue), len(upcoming),
    )
    return created


async def list_pending_reminders(db: AsyncSession, limit: int = 200) -> List[ReminderResponse]:
    """Unsent reminders, newest first."""
    result = await db.execute(
        select(ReminderLog, Student.first_name, Student.last_name)
        .outerjoin(Student, Student.id == ReminderLog.student_id)
        .where(ReminderLog.is_sent.is_(False))
        .order_by(ReminderLog.created_at.desc())
        .limit(limit)
    )
    out: List[ReminderResponse] = []
    for log, first_name, last_name in result.all():
        name = f"{first_name} {last_name}" if first_name is not None else None
        out.append(_to_response(log, name))
    return out


async def mark_reminder_sent(db: AsyncSession, reminder_id: UUID) -> ReminderResponse:
    log = await db.get(ReminderLog, reminder_id)
    if not log:
        raise NotFoundError("Reminder not found")
    if not log.is_sent:
        log.is_sent = True
        log.sent_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(log)
    return _to_response(log)
