from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.models import AttendanceRecord, Enrollment, FeeHead, MarkEntry


# ----- Students -----
@pytest.mark.asyncio
async def test_student_crud_and_soft_delete(client: AsyncClient, admin_headers) -> None:
    payload = {
        "admission_number": "ADM1001",
        "first_name": "Asha",
        "last_name": "Verma",
        "email": "asha@example.com",
        "guardian_name": "R. Verma",
    }
    created = await client.post("/api/v1/students", json=payload, headers=admin_headers)
    assert created.status_code == 201
    student = created.json()
    assert student["full_name"] == "Asha Verma"
    assert student["is_active"] is True

    duplicate = await client.post("/api/v1/students", json=payload, headers=admin_headers)
    assert duplicate.status_code == 409

    found = await client.get("/api/v1/students", params={"search": "verm"}, headers=admin_headers)
    assert [s["id"] for s in found.json()] == [student["id"]]

    updated = await client.put(
        f"/api/v1/students/{student['id']}", json={"phone": "9876543210"}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert updated.json()["phone"] == "9876543210"

    removed = await client.delete(f"/api/v1/students/{student['id']}", headers=admin_headers)
    assert removed.status_code == 200
    assert removed.json()["is_active"] is False

    active_only = await client.get("/api/v1/students", headers=admin_headers)
    assert active_only.json() == []
    with_inactive = await client.get("/api/v1/students", params={"include_inactive": True}, headers=admin_headers)
    assert len(with_inactive.json()) == 1


@pytest.mark.asyncio
async def test_students_only_read_their_own_record(client: AsyncClient, student_headers_for, factory) -> None:
    me = await factory.student(user_id="stu-1")
    other = await factory.student()
    headers = student_headers_for("stu-1")

    own = await client.get(f"/api/v1/students/{me.id}", headers=headers)
    assert own.status_code == 200
    assert own.json()["id"] == str(me.id)

    forbidden = await client.get(f"/api/v1/students/{other.id}", headers=headers)
    assert forbidden.status_code == 403

    listing = await client.get("/api/v1/students", headers=headers)
    assert listing.status_code == 403


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/students")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/students", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


# ----- Class sections, courses, teachers -----
@pytest.mark.asyncio
async def test_class_section_unique_pair_and_delete_guard(
    client: AsyncClient, admin_headers, factory
) -> None:
    created = await client.post(
        "/api/v1/class-sections", json={"class_name": "10", "section": "a"}, headers=admin_headers
    )
    assert created.status_code == 201
    assert created.json()["display_name"] == "10-A"

    duplicate = await client.post(
        "/api/v1/class-sections", json={"class_name": "10", "section": "A"}, headers=admin_headers
    )
    assert duplicate.status_code == 409

    year = await factory.year()
    student = await factory.student()
    section_id = created.json()["id"]
    await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(student.id), "class_section_id": section_id},
        headers=admin_headers,
    )
    listing = await client.get("/api/v1/class-sections", headers=admin_headers)
    assert listing.json()[0]["enrolled_count"] == 1

    blocked = await client.delete(f"/api/v1/class-sections/{section_id}", headers=admin_headers)
    assert blocked.status_code == 409
    assert year.is_active


@pytest.mark.asyncio
async def test_course_with_teacher_and_delete_guard(client: AsyncClient, admin_headers, factory) -> None:
    teacher = await client.post(
        "/api/v1/teachers",
        json={"employee_id": "EMP01", "first_name": "Ravi", "last_name": "Kumar"},
        headers=admin_headers,
    )
    assert teacher.status_code == 201
    teacher_id = teacher.json()["id"]

    duplicate_teacher = await client.post(
        "/api/v1/teachers",
        json={"employee_id": "EMP01", "first_name": "Other", "last_name": "Person"},
        headers=admin_headers,
    )
    assert duplicate_teacher.status_code == 409

    course = await client.post(
        "/api/v1/courses",
        json={"name": "Physics", "code": "phy101", "credits": 4, "teacher_id": teacher_id},
        headers=admin_headers,
    )
    assert course.status_code == 201
    assert course.json()["code"] == "PHY101"
    assert course.json()["teacher_name"] == "Ravi Kumar"

    await client.post(
        "/api/v1/exams",
        json={"name": "Unit Test", "course_id": course.json()["id"], "exam_date": "2025-08-01"},
        headers=admin_headers,
    )
    blocked = await client.delete(f"/api/v1/courses/{course.json()['id']}", headers=admin_headers)
    assert blocked.status_code == 409


# ----- Enrollments -----
@pytest.mark.asyncio
async def test_enrollment_roll_numbers_and_duplicates(
    client: AsyncClient, db_session: AsyncSession, admin_headers, factory
) -> None:
    year = await factory.year()
    section = await factory.class_section()
    first = await factory.student()
    second = await factory.student()
    third = await factory.student()

    one = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(first.id), "class_section_id": str(section.id)},
        headers=admin_headers,
    )
    assert one.status_code == 201
    assert one.json()["roll_number"] == 1
    assert one.json()["academic_year_id"] == str(year.id)

    two = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(second.id), "class_section_id": str(section.id), "roll_number": 5},
        headers=admin_headers,
    )
    assert two.json()["roll_number"] == 5

    three = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(third.id), "class_section_id": str(section.id)},
        headers=admin_headers,
    )
    assert three.json()["roll_number"] == 6

    again = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(first.id), "class_section_id": str(section.id)},
        headers=admin_headers,
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "Student is already enrolled in this class for the selected year."

    taken = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str((await factory.student()).id), "class_section_id": str(section.id), "roll_number": 5},
        headers=admin_headers,
    )
    assert taken.status_code == 409

    withdrawn = await client.post(f"/api/v1/enrollments/{one.json()['id']}/withdraw", headers=admin_headers)
    assert withdrawn.json()["is_active"] is False
    listing = await client.get("/api/v1/enrollments", headers=admin_headers)
    assert [e["roll_number"] for e in listing.json()] == [5, 6]

    rejoined = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(first.id), "class_section_id": str(section.id)},
        headers=admin_headers,
    )
    assert rejoined.status_code == 201
    assert rejoined.json()["id"] == one.json()["id"]
    rows = (await db_session.execute(select(Enrollment).where(Enrollment.student_id == first.id))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_enrollment_without_active_year(client: AsyncClient, admin_headers, factory) -> None:
    student = await factory.student()
    section = await factory.class_section()
    response = await client.post(
        "/api/v1/enrollments",
        json={"student_id": str(student.id), "class_section_id": str(section.id)},
        headers=admin_headers,
    )
    assert response.status_code == 400


# ----- Fees -----
@pytest.mark.asyncio
async def test_fee_head_payment_statement_and_receipt(
    client: AsyncClient, admin_headers, student_headers_for, factory
) -> None:
    year = await factory.year()
    section = await factory.class_section(class_name="10")
    student = await factory.student(user_id="stu-7")
    await factory.enroll(student, section, year)

    tuition = await client.post(
        "/api/v1/fees/heads",
        json={"name": "Tuition", "amount": "15000", "due_date": "2025-06-30"},
        headers=admin_headers,
    )
    assert tuition.status_code == 201
    assert tuition.json()["academic_year_id"] == str(year.id)
    await client.post(
        "/api/v1/fees/heads",
        json={"name": "Lab", "amount": "500", "due_date": "2099-06-30", "applicable_class": "9"},
        headers=admin_headers,
    )

    student_headers = student_headers_for("stu-7")
    payment = await client.post(
        "/api/v1/fees/payments",
        json={
            "student_id": str(student.id),
            "fee_head_id": tuition.json()["id"],
            "amount_paid": "5000",
            "payment_method": "Online",
            "status": "Pending",
        },
        headers=student_headers,
    )
    assert payment.status_code == 201
    body = payment.json()
    assert body["status"] == "Completed"
    assert body["transaction_id"].startswith("TXN-")
    assert body["receipt_number"].startswith("RCP-")

    statement = await client.get(f"/api/v1/fees/students/{student.id}/statement", headers=student_headers)
    assert statement.status_code == 200
    data = statement.json()
    assert [item["name"] for item in data["items"]] == ["Tuition"]
    assert data["items"][0]["status"] == "Overdue"
    assert Decimal(data["total_paid"]) == Decimal("5000")
    assert Decimal(data["balance"]) == Decimal("10000")
    assert Decimal(data["overdue_amount"]) == Decimal("10000")

    receipt = await client.get(f"/api/v1/fees/payments/{body['id']}/receipt.pdf", headers=student_headers)
    assert receipt.status_code == 200
    assert receipt.headers["content-type"] == "application/pdf"
    assert receipt.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_students_cannot_pay_or_view_for_others(
    client: AsyncClient, student_headers_for, factory
) -> None:
    year = await factory.year()
    await factory.student(user_id="stu-1")
    other = await factory.student()
    head = await factory.fee_head(year)
    headers = student_headers_for("stu-1")

    pay = await client.post(
        "/api/v1/fees/payments",
        json={"student_id": str(other.id), "fee_head_id": str(head.id), "amount_paid": "100"},
        headers=headers,
    )
    assert pay.status_code == 403
    statement = await client.get(f"/api/v1/fees/students/{other.id}/statement", headers=headers)
    assert statement.status_code == 403


@pytest.mark.asyncio
async def test_fee_head_delete_is_soft_when_paid(
    client: AsyncClient, db_session: AsyncSession, admin_headers, factory
) -> None:
    year = await factory.year()
    student = await factory.student()
    paid_head = await factory.fee_head(year, name="Tuition")
    unused_head = await factory.fee_head(year, name="Sports")
    await factory.payment(student, paid_head, 100)

    soft = await client.delete(f"/api/v1/fees/heads/{paid_head.id}", headers=admin_headers)
    assert soft.json()["deleted"] is False
    hard = await client.delete(f"/api/v1/fees/heads/{unused_head.id}", headers=admin_headers)
    assert hard.json()["deleted"] is True

    await db_session.refresh(paid_head)
    assert paid_head.is_active is False
    assert await db_session.get(FeeHead, unused_head.id) is None


# ----- Attendance -----
@pytest.mark.asyncio
async def test_attendance_register_replaces_day(
    client: AsyncClient, db_session: AsyncSession, teacher_headers, factory
) -> None:
    year = await factory.year()
    section = await factory.class_section()
    first = await factory.student()
    second = await factory.student()
    await factory.enroll(first, section, year, roll_number=1)
    await factory.enroll(second, section, year, roll_number=2)

    empty = await client.get(
        "/api/v1/attendance/register",
        params={"class_section_id": str(section.id), "date": "2025-07-01"},
        headers=teacher_headers,
    )
    assert empty.json()["is_saved"] is False
    assert empty.json()["present"] == 2

    register = {
        "class_section_id": str(section.id),
        "date": "2025-07-01",
        "records": [
            {"student_id": str(first.id), "is_present": True},
            {"student_id": str(second.id), "is_present": False, "remarks": "Sick"},
        ],
    }
    saved = await client.post("/api/v1/attendance/register", json=register, headers=teacher_headers)
    assert saved.status_code == 200
    assert saved.json()["absent"] == 1

    register["records"][1]["is_present"] = True
    resaved = await client.post("/api/v1/attendance/register", json=register, headers=teacher_headers)
    assert resaved.json()["present"] == 2

    rows = (
        await db_session.execute(select(AttendanceRecord).where(AttendanceRecord.date == date(2025, 7, 1)))
    ).scalars().all()
    assert len(rows) == 2
    assert all(r.is_present for r in rows)


@pytest.mark.asyncio
async def test_attendance_register_validation(client: AsyncClient, teacher_headers, factory) -> None:
    year = await factory.year()
    section = await factory.class_section()
    enrolled = await factory.student()
    outsider = await factory.student()
    await factory.enroll(enrolled, section, year)

    def register(day, student):
        return {
            "class_section_id": str(section.id),
            "date": day,
            "records": [{"student_id": str(student.id), "is_present": True}],
        }

    future = await client.post(
        "/api/v1/attendance/register", json=register("2099-01-01", enrolled), headers=teacher_headers
    )
    assert future.status_code == 400
    outside_year = await client.post(
        "/api/v1/attendance/register", json=register("2024-07-01", enrolled), headers=teacher_headers
    )
    assert outside_year.status_code == 400
    not_enrolled = await client.post(
        "/api/v1/attendance/register", json=register("2025-07-01", outsider), headers=teacher_headers
    )
    assert not_enrolled.status_code == 400


# ----- Exams and marks -----
@pytest.mark.asyncio
async def test_marks_upsert_publish_and_visibility(
    client: AsyncClient, db_session: AsyncSession, teacher_headers, student_headers_for, factory
) -> None:
    year = await factory.year()
    section = await factory.class_section()
    me = await factory.student(user_id="stu-9")
    classmate = await factory.student()
    await factory.enroll(me, section, year)
    await factory.enroll(classmate, section, year)
    course = await factory.course(credits=3)

    exam = await client.post(
        "/api/v1/exams",
        json={"name": "Mid-Term", "course_id": str(course.id), "exam_date": "2025-09-15", "total_marks": 50},
        headers=teacher_headers,
    )
    assert exam.status_code == 201
    exam_id = exam.json()["id"]

    too_high = await client.put(
        f"/api/v1/exams/{exam_id}/marks",
        json={"entries": [{"student_id": str(me.id), "marks_obtained": "51"}]},
        headers=teacher_headers,
    )
    assert too_high.status_code == 400

    first = await client.put(
        f"/api/v1/exams/{exam_id}/marks",
        json={
            "entries": [
                {"student_id": str(me.id), "marks_obtained": "40"},
                {"student_id": str(classmate.id), "marks_obtained": "20"},
            ]
        },
        headers=teacher_headers,
    )
    assert first.json()["created"] == 2

    second = await client.put(
        f"/api/v1/exams/{exam_id}/marks",
        json={"entries": [{"student_id": str(me.id), "marks_obtained": "46"}]},
        headers=teacher_headers,
    )
    assert second.json() == {"created": 0, "updated": 1, "message": "Marks saved successfully!"}

    entry = (
        await db_session.execute(select(MarkEntry).where(MarkEntry.student_id == me.id))
    ).scalars().one()
    assert entry.letter_grade == "A+"
    assert entry.grade_point == Decimal("4.00")

    student_headers = student_headers_for("stu-9")
    hidden = await client.get(f"/api/v1/exams/{exam_id}/marks", headers=student_headers)
    assert hidden.json() == []

    published = await client.post(f"/api/v1/exams/{exam_id}/publish", headers=teacher_headers)
    assert published.json() == {"published": 2}

    visible = await client.get(f"/api/v1/exams/{exam_id}/marks", headers=student_headers)
    assert [m["student_id"] for m in visible.json()] == [str(me.id)]

    gpa = await client.get(f"/api/v1/exams/students/{me.id}/gpa", headers=student_headers)
    assert gpa.status_code == 200
    assert Decimal(gpa.json()["gpa"]) == Decimal("4.00")
    assert gpa.json()["total_credits"] == 3

    locked = await client.put(f"/api/v1/exams/{exam_id}", json={"total_marks": 100}, headers=teacher_headers)
    assert locked.status_code == 409


@pytest.mark.asyncio
async def test_students_cannot_enter_marks(client: AsyncClient, student_headers_for, factory) -> None:
    await factory.year()
    student = await factory.student(user_id="stu-3")
    exam = await factory.exam(await factory.course())
    response = await client.put(
        f"/api/v1/exams/{exam.id}/marks",
        json={"entries": [{"student_id": str(student.id), "marks_obtained": "99"}]},
        headers=student_headers_for("stu-3"),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_exam_includes_course_name(client: AsyncClient, teacher_headers, factory) -> None:
    exam = await factory.exam(await factory.course(name="Physics"))
    response = await client.get(f"/api/v1/exams/{exam.id}", headers=teacher_headers)
    assert response.status_code == 200
    assert response.json()["course_name"] == "Physics"


# ----- Salaries -----
@pytest.mark.asyncio
async def test_salary_net_is_computed_and_mark_paid(client: AsyncClient, admin_headers) -> None:
    teacher = await client.post(
        "/api/v1/teachers",
        json={"employee_id": "EMP02", "first_name": "Meena", "last_name": "Iyer"},
        headers=admin_headers,
    )
    teacher_id = teacher.json()["id"]

    created = await client.post(
        "/api/v1/salaries",
        json={
            "teacher_id": teacher_id,
            "basic_salary": "50000",
            "allowances": "5000",
            "deductions": "2000",
            "payment_date": "2025-07-31",
            "month": "July 2025",
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    salary = created.json()
    assert Decimal(salary["net_salary"]) == Decimal("53000")
    assert salary["status"] == "Pending"
    assert salary["teacher_name"] == "Meena Iyer"

    updated = await client.put(
        f"/api/v1/salaries/{salary['id']}", json={"deductions": "7000"}, headers=admin_headers
    )
    assert Decimal(updated.json()["net_salary"]) == Decimal("48000")

    negative = await client.put(
        f"/api/v1/salaries/{salary['id']}", json={"deductions": "60000"}, headers=admin_headers
    )
    assert negative.status_code == 400

    paid = await client.post(f"/api/v1/salaries/{salary['id']}/mark-paid", headers=admin_headers)
    assert paid.json()["status"] == "Paid"
    assert paid.json()["payment_date"] == datetime.now(timezone.utc).date().isoformat()

    listing = await client.get("/api/v1/salaries", params={"status": "Paid"}, headers=admin_headers)
    assert [s["id"] for s in listing.json()] == [salary["id"]]


@pytest.mark.asyncio
async def test_salaries_are_admin_only(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/v1/salaries", headers=teacher_headers)
    assert response.status_code == 403
