"""Fee payment: records payments against a fee head for one student."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class FeePayment(Base):
    """Payment against a fee head. Supports partial payments; only Completed rows count as collected."""

    __tablename__ = "fee_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_head_id = Column(Uuid, ForeignKey("fee_heads.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    payment_method = Column(String(50), nullable=False, default="Cash")  # Cash, Online, Cheque
    transaction_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="Completed")  # Completed, Pending, Failed
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    fee_head = relationship("FeeHead")
