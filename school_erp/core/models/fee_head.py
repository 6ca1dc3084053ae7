"""Fee head: a named fee line item for one academic year."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class FeeHead(Base):
    """Tuition, Lab, Library... applicable_class = null means every class pays it."""

    __tablename__ = "fee_heads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    applicable_class = Column(String(50), nullable=True)  # matches ClassSection.class_name
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False)
    due_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    academic_year = relationship("AcademicYear")
