"""Directed pen pal edges produced by the pairing engine. Added, never edited."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class StudentPenpal(Base):
    __tablename__ = "student_penpals"
    __table_args__ = (
        UniqueConstraint("student_id", "penpal_id", name="uq_student_penpal_pair"),
        CheckConstraint("student_id <> penpal_id", name="chk_student_penpal_not_self"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    penpal_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    match_score = Column(Integer, nullable=False, default=0)
    shared_interests = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])
    penpal = relationship("Student", foreign_keys=[penpal_id])
