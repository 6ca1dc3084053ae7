import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, Uuid

from school_erp.db.session import Base


class Student(Base):
    """Student profile. Deactivated (is_active = false) instead of deleted to keep payment history."""

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admission_number = Column(String(50), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)
    address = Column(String(500), nullable=True)
    guardian_name = Column(String(200), nullable=True)
    guardian_phone = Column(String(20), nullable=True)
    admission_date = Column(Date, nullable=False, default=date.today)
    # Subject (sub claim) of the linked login account at the identity provider
    user_id = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
