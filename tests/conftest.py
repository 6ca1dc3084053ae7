import os
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable, Dict

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["FEE_REMINDERS_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from school_erp.auth.security import create_access_token
from school_erp.core.grading import get_grade
from school_erp.core.models import (
    AcademicYear,
    AttendanceRecord,
    ClassSection,
    Course,
    Enrollment,
    Exam,
    FeeHead,
    FeePayment,
    MarkEntry,
    Student,
)
from school_erp.db.session import Base, get_db
from school_erp.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test; StaticPool keeps every session on one connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async with session_factory() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _auth_headers(sub: str, role: str) -> Dict[str, str]:
    token = create_access_token(subject={"sub": sub, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return _auth_headers("admin-1", "ADMIN")


@pytest.fixture()
def teacher_headers() -> Dict[str, str]:
    return _auth_headers("teacher-1", "TEACHER")


@pytest.fixture()
def student_headers_for() -> Callable[[str], Dict[str, str]]:
    """Headers for a STUDENT token whose sub matches Student.user_id."""

    def _make(user_id: str) -> Dict[str, str]:
        return _auth_headers(user_id, "STUDENT")

    return _make


class Factory:
    """Inserts rows directly through the session; each helper commits."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def year(self, name="2025-26", start=date(2025, 4, 1), end=date(2026, 3, 31), is_active=True):
        return await self._save(AcademicYear(name=name, start_date=start, end_date=end, is_active=is_active))

    async def student(self, first_name="Student", user_id=None, is_active=True):
        n = self._next()
        return await self._save(
            Student(
                admission_number=f"ADM{n:04d}",
                first_name=first_name,
                last_name=f"No{n}",
                user_id=user_id,
                is_active=is_active,
            )
        )

    async def class_section(self, class_name="10", section="A"):
        return await self._save(ClassSection(class_name=class_name, section=section))

    async def enroll(self, student, class_section, year, roll_number=None, is_active=True):
        return await self._save(
            Enrollment(
                student_id=student.id,
                class_section_id=class_section.id,
                academic_year_id=year.id,
                roll_number=roll_number or self._next(),
                is_active=is_active,
            )
        )

    async def fee_head(self, year, name="Tuition", amount="15000", due_date=date(2026, 1, 5), applicable_class=None):
        return await self._save(
            FeeHead(
                name=name,
                amount=Decimal(amount),
                academic_year_id=year.id,
                due_date=due_date,
                applicable_class=applicable_class,
                is_active=True,
            )
        )

    async def payment(self, student, fee_head, amount, status="Completed"):
        return await self._save(
            FeePayment(
                student_id=student.id,
                fee_head_id=fee_head.id,
                amount_paid=Decimal(str(amount)),
                payment_method="Cash",
                status=status,
            )
        )

    async def course(self, name="Mathematics", credits=1):
        return await self._save(Course(name=name, code=f"C{self._next():03d}", credits=credits))

    async def exam(self, course, name="Mid-Term", exam_date=date(2025, 9, 15), total_marks=100):
        return await self._save(Exam(name=name, course_id=course.id, exam_date=exam_date, total_marks=total_marks))

    async def mark(self, student, exam, marks, is_published=True):
        letter, grade_point = get_grade(marks, exam.total_marks)
        return await self._save(
            MarkEntry(
                student_id=student.id,
                exam_id=exam.id,
                course_id=exam.course_id,
                marks_obtained=Decimal(str(marks)),
                letter_grade=letter,
                grade_point=grade_point,
                is_published=is_published,
            )
        )

    async def attendance(self, student, class_section, day, is_present=True):
        return await self._save(
            AttendanceRecord(
                student_id=student.id,
                class_section_id=class_section.id,
                date=day,
                is_present=is_present,
            )
        )


@pytest.fixture()
def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)
