import uuid
from datetime import date

import pytest
from fastapi import HTTPException
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years import service
from school_erp.auth.dependencies import get_active_year_scope
from school_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from school_erp.core.models import AcademicYear, Enrollment


async def _active_ids(db: AsyncSession):
    result = await db.execute(select(AcademicYear.id).where(AcademicYear.is_active.is_(True)))
    return [row[0] for row in result.all()]


@pytest.mark.asyncio
async def test_create_year_as_active_deactivates_others(
    client: AsyncClient, db_session: AsyncSession, admin_headers, factory
) -> None:
    old = await factory.year(name="2024-25", start=date(2024, 4, 1), end=date(2025, 3, 31))

    response = await client.post(
        "/api/v1/academic-years",
        json={
            "name": "2025-26",
            "start_date": "2025-04-01",
            "end_date": "2026-03-31",
            "set_as_active": True,
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["is_active"] is True

    active = await _active_ids(db_session)
    assert active == [uuid.UUID(data["id"])]
    await db_session.refresh(old)
    assert old.is_active is False


@pytest.mark.asyncio
async def test_set_active_leaves_exactly_one_active(db_session: AsyncSession, factory) -> None:
    first = await factory.year(name="2023-24", start=date(2023, 4, 1), end=date(2024, 3, 31))
    second = await factory.year(name="2024-25", start=date(2024, 4, 1), end=date(2025, 3, 31), is_active=False)
    third = await factory.year(name="2025-26", is_active=False)

    for year in (second, third, first):
        await service.set_active_year(db_session, year.id)
        assert await _active_ids(db_session) == [year.id]


@pytest.mark.asyncio
async def test_set_active_with_unknown_id_changes_nothing(db_session: AsyncSession, factory) -> None:
    year = await factory.year()

    with pytest.raises(NotFoundError):
        await service.set_active_year(db_session, uuid.uuid4())

    assert await _active_ids(db_session) == [year.id]


@pytest.mark.asyncio
async def test_create_rejects_bad_dates_and_duplicate_names(
    client: AsyncClient, admin_headers, factory
) -> None:
    await factory.year(name="2025-26")

    bad_dates = await client.post(
        "/api/v1/academic-years",
        json={"name": "2026-27", "start_date": "2027-03-31", "end_date": "2026-04-01"},
        headers=admin_headers,
    )
    assert bad_dates.status_code == 400

    duplicate = await client.post(
        "/api/v1/academic-years",
        json={"name": "2025-26", "start_date": "2025-04-01", "end_date": "2026-03-31"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_teacher_cannot_create_year(client: AsyncClient, teacher_headers) -> None:
    response = await client.post(
        "/api/v1/academic-years",
        json={"name": "2025-26", "start_date": "2025-04-01", "end_date": "2026-03-31"},
        headers=teacher_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_active_year_when_none_set(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/v1/academic-years/active", headers=teacher_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_request_scope_follows_active_year(db_session: AsyncSession, factory) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await get_active_year_scope(db_session)
    assert exc_info.value.status_code == 404

    first = await factory.year(name="2024-25", start=date(2024, 4, 1), end=date(2025, 3, 31), is_active=False)
    second = await factory.year(is_active=False)
    await service.set_active_year(db_session, first.id)
    assert (await get_active_year_scope(db_session)).id == first.id

    await service.set_active_year(db_session, second.id)
    assert (await get_active_year_scope(db_session)).id == second.id


@pytest.mark.asyncio
async def test_delete_guards(db_session: AsyncSession, factory) -> None:
    active = await factory.year()
    old = await factory.year(name="2024-25", start=date(2024, 4, 1), end=date(2025, 3, 31), is_active=False)
    student = await factory.student()
    section = await factory.class_section()
    await factory.enroll(student, section, old)

    with pytest.raises(ConflictError):
        await service.delete_academic_year(db_session, active.id)
    with pytest.raises(ConflictError):
        await service.delete_academic_year(db_session, old.id)

    empty = await factory.year(name="2019-20", start=date(2019, 4, 1), end=date(2020, 3, 31), is_active=False)
    assert await service.delete_academic_year(db_session, empty.id) == "2019-20"
    assert await db_session.get(AcademicYear, empty.id) is None


@pytest.mark.asyncio
async def test_rollover_copies_active_enrollments_without_duplicates(
    db_session: AsyncSession, factory
) -> None:
    source = await factory.year(name="2024-25", start=date(2024, 4, 1), end=date(2025, 3, 31), is_active=False)
    target = await factory.year(name="2025-26")
    section = await factory.class_section()
    students = [await factory.student() for _ in range(3)]
    for roll, s in enumerate(students, start=1):
        await factory.enroll(s, section, source, roll_number=roll)
    withdrawn = await factory.student()
    await factory.enroll(withdrawn, section, source, roll_number=4, is_active=False)
    # already present in the target year, holding roll number 2
    await factory.enroll(students[0], section, target, roll_number=2)

    result = await service.rollover_enrollments(db_session, source.id, target.id)
    assert result.created == 2
    assert result.skipped == 1
    assert result.message == "Rolled over 2 students to new academic year!"

    rows = (
        await db_session.execute(
            select(Enrollment.student_id, Enrollment.roll_number).where(Enrollment.academic_year_id == target.id)
        )
    ).all()
    assert len(rows) == 3
    assert len({sid for sid, _ in rows}) == 3
    assert len({roll for _, roll in rows}) == 3
    assert withdrawn.id not in {sid for sid, _ in rows}

    again = await service.rollover_enrollments(db_session, source.id, target.id)
    assert again.created == 0
    count = (
        await db_session.execute(
            select(func.count(Enrollment.id)).where(Enrollment.academic_year_id == target.id)
        )
    ).scalar()
    assert count == 3


@pytest.mark.asyncio
async def test_rollover_validation(db_session: AsyncSession, factory) -> None:
    year = await factory.year()
    with pytest.raises(ValidationError):
        await service.rollover_enrollments(db_session, year.id, year.id)
    with pytest.raises(NotFoundError) as exc:
        await service.rollover_enrollments(db_session, year.id, uuid.uuid4())
    assert exc.value.message == "Target academic year not found."
