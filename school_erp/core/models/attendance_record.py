import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class AttendanceRecord(Base):
    """One row per (student, class_section, date). A student may attend more than one class context."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_section_id", "date",
            name="uq_attendance_student_class_date",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_section_id = Column(Uuid, ForeignKey("class_sections.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    is_present = Column(Boolean, nullable=False)
    remarks = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    class_section = relationship("ClassSection")
