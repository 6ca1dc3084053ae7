from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.enums import SalaryStatus
from school_erp.core.exceptions import NotFoundError, ValidationError
from school_erp.core.grading import round_2, to_decimal
from school_erp.core.models import Salary, Teacher

from .schemas import SalaryCreate, SalaryResponse, SalaryUpdate


def _to_response(s: Salary) -> SalaryResponse:
    return SalaryResponse(
        id=s.id,
        teacher_id=s.teacher_id,
        teacher_name=s.teacher.full_name,
        basic_salary=to_decimal(s.basic_salary),
        allowances=to_decimal(s.allowances),
        deductions=to_decimal(s.deductions),
        net_salary=to_decimal(s.net_salary),
        payment_date=s.payment_date,
        month=s.month,
        status=s.status,
        created_at=s.created_at,
    )


def compute_net_salary(basic: Decimal, allowances: Decimal, deductions: Decimal) -> Decimal:
    net = to_decimal(basic) + to_decimal(allowances) - to_decimal(deductions)
    if net < 0:
        raise ValidationError("Deductions cannot exceed basic salary plus allowances")
    return round_2(net)


async def _load(db: AsyncSession, salary_id: UUID) -> Salary:
    result = await db.execute(
        select(Salary).where(Salary.id == salary_id).execution_options(populate_existing=True)
    )
    return result.scalars().one()


async def create_salary(db: AsyncSession, payload: SalaryCreate) -> SalaryResponse:
    teacher = await db.get(Teacher, payload.teacher_id)
    if not teacher or not teacher.is_active:
        raise NotFoundError("Teacher not found")
    salary = Salary(
        teacher_id=teacher.id,
        basic_salary=round_2(payload.basic_salary),
        allowances=round_2(payload.allowances),
        deductions=round_2(payload.deductions),
        net_salary=compute_net_salary(payload.basic_salary, payload.allowances, payload.deductions),
        payment_date=payload.payment_date,
        month=payload.month.strip(),
        status=payload.status.value,
    )
    db.add(salary)
    await db.commit()
    return _to_response(await _load(db, salary.id))


async def list_salaries(
    db: AsyncSession,
    teacher_id: Optional[UUID] = None,
    status_filter: Optional[SalaryStatus] = None,
) -> List[SalaryResponse]:
    stmt = select(Salary)
    if teacher_id is not None:
        stmt = stmt.where(Salary.teacher_id == teacher_id)
    if status_filter is not None:
        stmt = stmt.where(Salary.status == status_filter.value)
    result = await db.execute(stmt.order_by(Salary.payment_date.desc()))
    return [_to_response(s) for s in result.scalars().all()]


async def get_salary(db: AsyncSession, salary_id: UUID) -> Optional[SalaryResponse]:
    result = await db.execute(
        select(Salary).where(Salary.id == salary_id).execution_options(populate_existing=True)
    )
    salary = result.scalars().first()
    return _to_response(salary) if salary else None


async def update_salary(db: AsyncSession, salary_id: UUID, payload: SalaryUpdate) -> SalaryResponse:
    salary = await db.get(Salary, salary_id)
    if not salary:
        raise NotFoundError("Salary record not found")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    amounts = {
        key: round_2(data.get(key, getattr(salary, key)))
        for key in ("basic_salary", "allowances", "deductions")
    }
    net = compute_net_salary(amounts["basic_salary"], amounts["allowances"], amounts["deductions"])
    for key, value in amounts.items():
        setattr(salary, key, value)
    salary.net_salary = net
    if "payment_date" in data:
        salary.payment_date = data["payment_date"]
    if "month" in data:
        salary.month = data["month"].strip()
    if "status" in data:
        salary.status = data["status"].value
    await db.commit()
    return _to_response(await _load(db, salary_id))


async def mark_salary_paid(db: AsyncSession, salary_id: UUID) -> SalaryResponse:
    salary = await db.get(Salary, salary_id)
    if not salary:
        raise NotFoundError("Salary record not found")
    salary.status = SalaryStatus.PAID.value
    salary.payment_date = datetime.now(timezone.utc).date()
    await db.commit()
    return _to_response(await _load(db, salary_id))


async def delete_salary(db: AsyncSession, salary_id: UUID) -> None:
    salary = await db.get(Salary, salary_id)
    if not salary:
        raise NotFoundError("Salary record not found")
    await db.delete(salary)
    await db.commit()
