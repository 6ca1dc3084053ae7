"""Fees service: fee heads, payments, per-student statements and receipt data."""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.auth.schemas import AccessScope
from school_erp.core.enums import FeeStatus, PaymentStatus
from school_erp.core.exceptions import NotFoundError, ValidationError
from school_erp.core.grading import round_2, to_decimal
from school_erp.core.models import AcademicYear, Enrollment, FeeHead, FeePayment, Student

from .schemas import (
    FeeHeadCreate,
    FeeHeadResponse,
    FeeHeadUpdate,
    FeeReceiptData,
    FeeReceiptItem,
    PaymentCreate,
    PaymentResponse,
    StudentFeeItem,
    StudentFeeStatement,
)

logger = logging.getLogger(__name__)


def _fee_head_to_response(fh: FeeHead) -> FeeHeadResponse:
    return FeeHeadResponse(
        id=fh.id,
        name=fh.name,
        amount=to_decimal(fh.amount),
        applicable_class=fh.applicable_class,
        due_date=fh.due_date,
        academic_year_id=fh.academic_year_id,
        is_active=fh.is_active,
        created_at=fh.created_at,
    )


def receipt_number(payment: FeePayment) -> str:
    return f"RCP-{payment.id.hex[:8].upper()}"


def _payment_to_response(
    p: FeePayment,
    student_name: Optional[str] = None,
    fee_head_name: Optional[str] = None,
) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        receipt_number=receipt_number(p),
        student_id=p.student_id,
        student_name=student_name,
        fee_head_id=p.fee_head_id,
        fee_head_name=fee_head_name,
        amount_paid=to_decimal(p.amount_paid),
        payment_date=p.payment_date,
        payment_method=p.payment_method,
        transaction_id=p.transaction_id,
        status=p.status,
    )


def _clean_class(applicable_class: Optional[str]) -> Optional[str]:
    if applicable_class is None:
        return None
    return applicable_class.strip() or None


# --- Fee heads ---
async def create_fee_head(
    db: AsyncSession,
    payload: FeeHeadCreate,
    active_year: Optional[AcademicYear],
) -> FeeHeadResponse:
    if payload.academic_year_id is not None:
        year = await db.get(AcademicYear, payload.academic_year_id)
        if not year:
            raise NotFoundError("Academic year not found")
    else:
        year = active_year
    if year is None:
        raise ValidationError("No active academic year set. Please set an active year first.")
    fh = FeeHead(
        name=payload.name.strip(),
        amount=round_2(payload.amount),
        applicable_class=_clean_class(payload.applicable_class),
        due_date=payload.due_date,
        academic_year_id=year.id,
        is_active=True,
    )
    db.add(fh)
    await db.commit()
    await db.refresh(fh)
    logger.info("Created fee head %s (%s) for %s", fh.name, fh.amount, year.name)
    return _fee_head_to_response(fh)


async def list_fee_heads(
    db: AsyncSession,
    academic_year_id: UUID,
    include_inactive: bool = False,
) -> List[FeeHeadResponse]:
    stmt = select(FeeHead).where(FeeHead.academic_year_id == academic_year_id)
    if not include_inactive:
        stmt = stmt.where(FeeHead.is_active.is_(True))
    result = await db.execute(stmt.order_by(FeeHead.due_date, FeeHead.name))
    return [_fee_head_to_response(fh) for fh in result.scalars().all()]


async def get_fee_head(db: AsyncSession, fee_head_id: UUID) -> Optional[FeeHeadResponse]:
    fh = await db.get(FeeHead, fee_head_id)
    return _fee_head_to_response(fh) if fh else None


async def update_fee_head(db: AsyncSession, fee_head_id: UUID, payload: FeeHeadUpdate) -> FeeHeadResponse:
    fh = await db.get(FeeHead, fee_head_id)
    if not fh:
        raise NotFoundError("Fee head not found")
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        fh.name = data["name"].strip()
    if "amount" in data and data["amount"] is not None:
        fh.amount = round_2(data["amount"])
    if "applicable_class" in data:
        fh.applicable_class = _clean_class(data["applicable_class"])
    if "due_date" in data and data["due_date"] is not None:
        fh.due_date = data["due_date"]
    if "is_active" in data and data["is_active"] is not None:
        fh.is_active = data["is_active"]
    await db.commit()
    await db.refresh(fh)
    return _fee_head_to_response(fh)


async def delete_fee_head(db: AsyncSession, fee_head_id: UUID) -> bool:
    """
    Remove a fee head. With recorded payments it is only deactivated so history stays intact.
    Returns True when hard-deleted, False when deactivated.
    """
    fh = await db.get(FeeHead, fee_head_id)
    if not fh:
        raise NotFoundError("Fee head not found")
    has_payments = (
        await db.execute(select(FeePayment.id).where(FeePayment.fee_head_id == fee_head_id).limit(1))
    ).scalar_one_or_none()
    if has_payments:
        fh.is_active = False
        await db.commit()
        logger.info("Fee head %s deactivated (payments exist)", fh.name)
        return False
    await db.delete(fh)
    await db.commit()
    return True


# --- Payments ---
async def record_payment(db: AsyncSession, payload: PaymentCreate, scope: AccessScope) -> PaymentResponse:
    """Record a payment. Students may pay only their own fees and their payments are always Completed."""
    scope.ensure_can_view_student(payload.student_id)
    student = await db.get(Student, payload.student_id)
    if not student or not student.is_active:
        raise NotFoundError("Student not found")
    fh = await db.get(FeeHead, payload.fee_head_id)
    if not fh or not fh.is_active:
        raise NotFoundError("Fee head not found")

    status_value = payload.status.value if scope.is_staff else PaymentStatus.COMPLETED.value
    now = datetime.now(timezone.utc)
    payment = FeePayment(
        student_id=student.id,
        fee_head_id=fh.id,
        amount_paid=round_2(payload.amount_paid),
        payment_date=now,
        payment_method=payload.payment_method.value,
        transaction_id=payload.transaction_id or f"TXN-{now.strftime('%Y%m%d%H%M%S%f')}",
        status=status_value,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    logger.info(
        "Recorded %s payment of %s for student %s against %s",
        payment.status, payment.amount_paid, student.admission_number, fh.name,
    )
    return _payment_to_response(payment, student.full_name, fh.name)


async def list_payments(
    db: AsyncSession,
    scope: AccessScope,
    student_id: Optional[UUID] = None,
    fee_head_id: Optional[UUID] = None,
    limit: int = 100,
) -> List[PaymentResponse]:
    if not scope.is_staff:
        student_id = scope.student_id
        if student_id is None:
            return []
    stmt = (
        select(FeePayment, Student.first_name, Student.last_name, FeeHead.name)
        .join(Student, Student.id == FeePayment.student_id)
        .join(FeeHead, FeeHead.id == FeePayment.fee_head_id)
    )
    if student_id is not None:
        stmt = stmt.where(FeePayment.student_id == student_id)
    if fee_head_id is not None:
        stmt = stmt.where(FeePayment.fee_head_id == fee_head_id)
    result = await db.execute(stmt.order_by(FeePayment.payment_date.desc()).limit(limit))
    return [
        _payment_to_response(p, f"{first} {last}", head_name)
        for p, first, last, head_name in result.all()
    ]


async def _current_class(db: AsyncSession, student_id: UUID, year: AcademicYear) -> Optional[Enrollment]:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.academic_year_id == year.id,
            Enrollment.is_active.is_(True),
        )
    )
    return result.scalars().first()


def _fee_status(paid: Decimal, amount: Decimal, due_date: date, today: date) -> FeeStatus:
    if paid >= amount:
        return FeeStatus.PAID
    if due_date < today:
        return FeeStatus.OVERDUE
    return FeeStatus.PENDING


async def get_student_fee_statement(
    db: AsyncSession,
    year: AcademicYear,
    scope: AccessScope,
    student_id: UUID,
    today: Optional[date] = None,
) -> StudentFeeStatement:
    """
    Fee heads of the year that apply to the student's class, with Completed payments against
    each and a Paid / Overdue / Pending status.
    """
    scope.ensure_can_view_student(student_id)
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    today = today or datetime.now(timezone.utc).date()

    enrollment = await _current_class(db, student_id, year)
    heads_stmt = select(FeeHead).where(FeeHead.academic_year_id == year.id, FeeHead.is_active.is_(True))
    if enrollment is not None:
        heads_stmt = heads_stmt.where(
            or_(
                FeeHead.applicable_class.is_(None),
                FeeHead.applicable_class == enrollment.class_section.class_name,
            )
        )
    else:
        heads_stmt = heads_stmt.where(FeeHead.applicable_class.is_(None))
    heads = list((await db.execute(heads_stmt.order_by(FeeHead.due_date, FeeHead.name))).scalars().all())

    paid_by_head: Dict[UUID, Decimal] = {}
    if heads:
        paid_result = await db.execute(
            select(FeePayment.fee_head_id, func.sum(FeePayment.amount_paid))
            .where(
                FeePayment.student_id == student_id,
                FeePayment.fee_head_id.in_([h.id for h in heads]),
                FeePayment.status == PaymentStatus.COMPLETED.value,
            )
            .group_by(FeePayment.fee_head_id)
        )
        paid_by_head = {head_id: to_decimal(total) for head_id, total in paid_result.all()}

    items: List[StudentFeeItem] = []
    total_due = Decimal("0")
    total_paid = Decimal("0")
    overdue_amount = Decimal("0")
    for fh in heads:
        amount = to_decimal(fh.amount)
        paid = paid_by_head.get(fh.id, Decimal("0"))
        balance = max(amount - paid, Decimal("0"))
        status = _fee_status(paid, amount, fh.due_date, today)
        items.append(
            StudentFeeItem(
                fee_head_id=fh.id,
                name=fh.name,
                amount=round_2(amount),
                due_date=fh.due_date,
                paid=round_2(paid),
                balance=round_2(balance),
                status=status,
            )
        )
        total_due += amount
        total_paid += paid
        if status == FeeStatus.OVERDUE:
            overdue_amount += balance

    recent = await list_payments(db, scope, student_id=student_id, limit=10)
    return StudentFeeStatement(
        student_id=student.id,
        student_name=student.full_name,
        class_name=enrollment.class_section.display_name if enrollment else "N/A",
        academic_year=year.name,
        items=items,
        total_due=round_2(total_due),
        total_paid=round_2(total_paid),
        balance=round_2(max(total_due - total_paid, Decimal("0"))),
        overdue_amount=round_2(overdue_amount),
        recent_payments=recent,
    )


async def get_fee_receipt_data(db: AsyncSession, payment_id: UUID, scope: AccessScope) -> FeeReceiptData:
    payment = await db.get(FeePayment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    scope.ensure_can_view_student(payment.student_id)
    student = await db.get(Student, payment.student_id)
    fh = await db.get(FeeHead, payment.fee_head_id)
    enrollment = (
        await db.execute(
            select(Enrollment)
            .where(Enrollment.student_id == payment.student_id, Enrollment.is_active.is_(True))
            .order_by(Enrollment.created_at.desc())
        )
    ).scalars().first()
    return FeeReceiptData(
        receipt_number=receipt_number(payment),
        student_name=student.full_name,
        admission_number=student.admission_number,
        class_name=enrollment.class_section.display_name if enrollment else "N/A",
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        transaction_id=payment.transaction_id,
        items=[
            FeeReceiptItem(
                fee_name=fh.name,
                amount_due=round_2(fh.amount),
                amount_paid=round_2(payment.amount_paid),
            )
        ],
    )
