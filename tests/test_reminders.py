from datetime import date, datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.reminders import service
from school_erp.core.enums import ReminderType
from school_erp.core.models import ReminderLog
from school_erp.reminders.scheduler import FeeReminderRunner, start_scheduler

NOW = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


async def _reminders(db: AsyncSession):
    result = await db.execute(select(ReminderLog))
    return list(result.scalars().all())


async def _class_with_students(factory, year, count, class_name="10"):
    section = await factory.class_section(class_name=class_name)
    students = []
    for _ in range(count):
        student = await factory.student()
        await factory.enroll(student, section, year)
        students.append(student)
    return students


@pytest.mark.asyncio
async def test_overdue_reminders_skip_full_payers_only(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    paid, partial, unpaid = await _class_with_students(factory, year, 3)
    head = await factory.fee_head(year, amount="15000", due_date=date(2026, 1, 5))
    await factory.payment(paid, head, 10000)
    await factory.payment(paid, head, 5000)
    await factory.payment(partial, head, 5000)
    await factory.payment(unpaid, head, 15000, status="Failed")

    created = await service.generate_reminders(db_session, now=NOW)

    assert created == 2
    logs = await _reminders(db_session)
    assert {log.student_id for log in logs} == {partial.id, unpaid.id}
    assert all(log.reminder_type == ReminderType.FEE_OVERDUE.value for log in logs)
    assert all(log.reminder_date == date(2026, 1, 10) for log in logs)
    assert all(log.fee_head_id == head.id for log in logs)
    assert logs[0].message == "Fee 'Tuition' of ₹15000.00 is overdue (due: 05-Jan-2026)"


@pytest.mark.asyncio
async def test_second_pass_same_day_creates_nothing(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    await _class_with_students(factory, year, 2)
    await factory.fee_head(year, due_date=date(2026, 1, 5))

    assert await service.generate_reminders(db_session, now=NOW) == 2
    assert await service.generate_reminders(db_session, now=NOW) == 0
    assert len(await _reminders(db_session)) == 2

    next_day = datetime(2026, 1, 11, 9, 0, tzinfo=timezone.utc)
    assert await service.generate_reminders(db_session, now=next_day) == 2


@pytest.mark.asyncio
async def test_settling_the_balance_stops_later_reminders(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    settled, owing = await _class_with_students(factory, year, 2)
    head = await factory.fee_head(year, amount="15000", due_date=date(2026, 1, 5))
    await factory.payment(settled, head, 6000)

    assert await service.generate_reminders(db_session, now=NOW) == 2

    await factory.payment(settled, head, 9000)
    next_day = datetime(2026, 1, 11, 9, 0, tzinfo=timezone.utc)
    assert await service.generate_reminders(db_session, now=next_day) == 1

    next_day_logs = [log for log in await _reminders(db_session) if log.reminder_date == date(2026, 1, 11)]
    assert [log.student_id for log in next_day_logs] == [owing.id]


@pytest.mark.asyncio
async def test_one_reminder_per_type_per_day(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    (student,) = await _class_with_students(factory, year, 1)
    await factory.fee_head(year, name="Tuition", due_date=date(2026, 1, 2))
    await factory.fee_head(year, name="Library", amount="500", due_date=date(2026, 1, 5))
    await factory.fee_head(year, name="Transport", amount="2000", due_date=date(2026, 1, 15))

    created = await service.generate_reminders(db_session, now=NOW, upcoming_days=7)

    assert created == 2
    types = sorted(log.reminder_type for log in await _reminders(db_session))
    assert types == [ReminderType.FEE_OVERDUE.value, ReminderType.FEE_UPCOMING.value]


@pytest.mark.asyncio
async def test_upcoming_message(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    await _class_with_students(factory, year, 1)
    await factory.fee_head(year, name="Exam Fee", amount="750", due_date=date(2026, 1, 12))

    assert await service.generate_reminders(db_session, now=NOW, upcoming_days=7) == 1
    (log,) = await _reminders(db_session)
    assert log.reminder_type == ReminderType.FEE_UPCOMING.value
    assert log.message == "Fee 'Exam Fee' of ₹750.00 is due on 12-Jan-2026"


@pytest.mark.asyncio
async def test_class_specific_heads_only_remind_that_class(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    tenth = await _class_with_students(factory, year, 2, class_name="10")
    await _class_with_students(factory, year, 3, class_name="9")
    await factory.fee_head(year, name="Lab", amount="500", due_date=date(2026, 1, 5), applicable_class="10")

    assert await service.generate_reminders(db_session, now=NOW) == 2
    assert {log.student_id for log in await _reminders(db_session)} == {s.id for s in tenth}


@pytest.mark.asyncio
async def test_inactive_students_and_heads_are_ignored(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    (active,) = await _class_with_students(factory, year, 1)
    await factory.student(is_active=False)
    head = await factory.fee_head(year, due_date=date(2026, 1, 5))
    inactive_head = await factory.fee_head(year, name="Old", due_date=date(2026, 1, 6))
    inactive_head.is_active = False
    await db_session.commit()

    assert await service.generate_reminders(db_session, now=NOW) == 1
    (log,) = await _reminders(db_session)
    assert log.student_id == active.id
    assert log.fee_head_id == head.id


@pytest.mark.asyncio
async def test_due_fee_head_queries(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    await factory.fee_head(year, name="Past", due_date=date(2026, 1, 9))
    await factory.fee_head(year, name="Today", due_date=date(2026, 1, 10))
    await factory.fee_head(year, name="Edge", due_date=date(2026, 1, 17))
    await factory.fee_head(year, name="Later", due_date=date(2026, 1, 18))

    overdue = await service.get_overdue_fee_heads(db_session, today=date(2026, 1, 10))
    upcoming = await service.get_upcoming_fee_heads(db_session, days_ahead=7, today=date(2026, 1, 10))

    assert [h.name for h in overdue] == ["Past"]
    assert [h.name for h in upcoming] == ["Today", "Edge"]


@pytest.mark.asyncio
async def test_mark_sent(client: AsyncClient, db_session: AsyncSession, admin_headers, factory) -> None:
    year = await factory.year()
    await _class_with_students(factory, year, 1)
    await factory.fee_head(year, due_date=date(2026, 1, 5))
    await service.generate_reminders(db_session, now=NOW)

    pending = await client.get("/api/v1/reminders", headers=admin_headers)
    assert pending.status_code == 200
    assert len(pending.json()) == 1
    reminder_id = pending.json()[0]["id"]

    sent = await client.post(f"/api/v1/reminders/{reminder_id}/mark-sent", headers=admin_headers)
    assert sent.status_code == 200
    assert sent.json()["is_sent"] is True
    assert sent.json()["sent_at"] is not None

    assert (await client.get("/api/v1/reminders", headers=admin_headers)).json() == []


@pytest.mark.asyncio
async def test_runner_skips_while_a_pass_is_running(session_factory, factory) -> None:
    year = await factory.year()
    await _class_with_students(factory, year, 1)
    await factory.fee_head(year, due_date=date(2026, 1, 5))
    runner = FeeReminderRunner(session_factory=session_factory)

    async with runner._lock:
        assert runner.is_running
        assert await runner.run_once(now=NOW) is False
    assert runner.last_created is None

    assert await runner.run_once(now=NOW) is True
    assert runner.last_created == 1
    assert runner.last_run_at is not None


@pytest.mark.asyncio
async def test_runner_swallows_errors_unless_asked() -> None:
    def broken_factory():
        raise RuntimeError("database unavailable")

    runner = FeeReminderRunner(session_factory=broken_factory)
    assert await runner.run_once(now=NOW) is True
    assert runner.last_created is None

    with pytest.raises(RuntimeError):
        await runner.run_once(now=NOW, raise_errors=True)
    assert not runner.is_running


@pytest.mark.asyncio
async def test_run_endpoint(client: AsyncClient, admin_headers, teacher_headers, factory) -> None:
    year = await factory.year()
    await _class_with_students(factory, year, 2)
    await factory.fee_head(year, due_date=date(2020, 1, 5))

    forbidden = await client.post("/api/v1/reminders/run", headers=teacher_headers)
    assert forbidden.status_code == 403

    response = await client.post("/api/v1/reminders/run", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["created"] == 2


def test_scheduler_disabled_by_flag() -> None:
    assert start_scheduler() is None
