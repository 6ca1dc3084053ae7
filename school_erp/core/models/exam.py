"""Exams and per-student mark entries."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class Exam(Base):
    """Unit Test 1, Mid-Term... Belongs to the academic year whose date range contains exam_date."""

    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    exam_date = Column(Date, nullable=False)
    total_marks = Column(Integer, nullable=False, default=100)
    room = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    course = relationship("Course", lazy="joined")


class MarkEntry(Base):
    """Marks of one student in one exam/course. grade_point and letter_grade come from the grading policy."""

    __tablename__ = "mark_entries"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", "course_id", name="uq_mark_entry_student_exam_course"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="RESTRICT"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    marks_obtained = Column(Numeric(6, 2), nullable=False)
    grade_point = Column(Numeric(3, 2), nullable=True)
    letter_grade = Column(String(5), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    exam = relationship("Exam")
    course = relationship("Course")
