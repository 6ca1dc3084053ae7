import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, Uuid

from school_erp.db.session import Base


class AcademicYear(Base):
    """
    School year period. Only one row may have is_active = true; the academic year
    service enforces this (not the database).
    Enrollments and fee heads reference it, so it cannot be deleted while referenced.
    """

    __tablename__ = "academic_years"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(20), nullable=False, unique=True)  # e.g. "2025-26"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
