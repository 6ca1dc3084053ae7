import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class Enrollment(Base):
    """
    Binding of a student to a class section (and optional course) within one academic year.
    Withdrawal sets is_active = false; the row is kept for reporting.
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_section_id", "academic_year_id",
            name="uq_enrollment_student_class_year",
        ),
        UniqueConstraint(
            "class_section_id", "academic_year_id", "roll_number",
            name="uq_enrollment_roll_number",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_section_id = Column(Uuid, ForeignKey("class_sections.id", ondelete="RESTRICT"), nullable=False)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    roll_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", lazy="joined")
    class_section = relationship("ClassSection", lazy="joined")
    academic_year = relationship("AcademicYear")
    course = relationship("Course")
