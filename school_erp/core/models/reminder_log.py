import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from school_erp.db.session import Base


class ReminderLog(Base):
    """Notification queued by the fee reminder sweep. At most one per (student, reminder_type, reminder_date)."""

    __tablename__ = "reminder_logs"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "reminder_type", "reminder_date",
            name="uq_reminder_student_type_day",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=True)
    fee_head_id = Column(Uuid, ForeignKey("fee_heads.id", ondelete="SET NULL"), nullable=True)
    reminder_type = Column(String(50), nullable=False)  # FeeOverdue, FeeUpcoming
    reminder_date = Column(Date, nullable=False)
    message = Column(String(500), nullable=False, default="")
    is_sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
