import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import PenpalPreference
from app.db.session import Base


class Student(Base):
    """Student of a school. Only active, profile-complete students are paired."""

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("penpal_preference IN ('ONE','MULTIPLE')", name="chk_student_penpal_preference"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_initial = Column(String(5), nullable=False)
    grade = Column(String(20), nullable=False)
    interests = Column(JSON, nullable=False, default=list)
    other_interests = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    profile_completed = Column(Boolean, nullable=False, default=False)
    penpal_preference = Column(String(20), nullable=False, default=PenpalPreference.ONE.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school = relationship("School", foreign_keys=[school_id])

    @property
    def display_name(self) -> str:
        """Privacy-friendly name, e.g. "Sarah J."."""
        return f"{self.first_name} {self.last_initial}."
