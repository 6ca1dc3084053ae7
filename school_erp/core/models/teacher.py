import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, Uuid

from school_erp.db.session import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id = Column(String(50), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    specialization = Column(String(100), nullable=True)
    qualification = Column(String(100), nullable=True)
    joining_date = Column(Date, nullable=False, default=date.today)
    user_id = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
