"""Schools (one teacher's classroom) enrolled in the pen pal exchange."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Uuid

from app.core.enums import SchoolStatus
from app.core.match_partner import partner_from_columns
from app.db.session import Base


class School(Base):
    """A classroom enrollment unit. Matched alone, or through its group when grouped."""

    __tablename__ = "schools"
    __table_args__ = (
        CheckConstraint(
            "matched_school_id IS NULL OR matched_group_id IS NULL",
            name="chk_school_single_partner",
        ),
        CheckConstraint(
            "status IN ('COLLECTING','READY','MATCHED','CORRESPONDING','DONE')",
            name="chk_school_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_name = Column(String(255), nullable=False)
    teacher_first_name = Column(String(100), nullable=False)
    teacher_last_name = Column(String(100), nullable=False)
    teacher_email = Column(String(255), nullable=False, unique=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    # One of app.core.enums.Region
    region = Column(String(50), nullable=False)
    # Grade tokens, e.g. ["4", "5"]
    grade_levels = Column(JSON, nullable=False, default=list)
    expected_class_size = Column(Integer, nullable=False, default=0)
    start_month = Column(String(20), nullable=False)
    letter_frequency = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=SchoolStatus.COLLECTING.value)
    # Set once by the pairing run; guards against a second run for the same match
    penpals_assigned_at = Column(DateTime(timezone=True), nullable=True)
    school_group_id = Column(Uuid, ForeignKey("school_groups.id"), nullable=True, index=True)
    # Partner: at most one of the two is set (chk_school_single_partner)
    matched_school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True)
    matched_group_id = Column(Uuid, ForeignKey("school_groups.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def matched_partner(self):
        return partner_from_columns(self.matched_school_id, self.matched_group_id)

    @property
    def teacher_name(self) -> str:
        return f"{self.teacher_first_name} {self.teacher_last_name}".strip()
