import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, Uuid

from school_erp.db.session import Base


class ClassSection(Base):
    __tablename__ = "class_sections"
    __table_args__ = (
        UniqueConstraint("class_name", "section", name="uq_class_section_name_section"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    class_name = Column(String(50), nullable=False)  # e.g. "10"
    section = Column(String(10), nullable=False)  # e.g. "A"
    capacity = Column(Integer, nullable=False, default=40)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.class_name}-{self.section}"
