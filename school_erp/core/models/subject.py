import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid

from school_erp.db.session import Base


class Subject(Base):
    """Catalog entry of a subject taught in a standard (1 to 12)."""

    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("standard", "name", name="uq_subject_standard_name"),
        CheckConstraint("standard BETWEEN 1 AND 12", name="ck_subject_standard_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    standard = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)
    code = Column(String(20), nullable=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
