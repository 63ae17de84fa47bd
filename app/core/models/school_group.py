"""School groups: coalitions of two or more schools matched as one unit."""
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Uuid

from app.core.match_partner import partner_from_columns
from app.db.session import Base


class SchoolGroup(Base):
    """Named coalition of schools. Membership is held by School.school_group_id.

    version is bumped on every membership change so concurrent edits can
    compare-and-set against it.
    """

    __tablename__ = "school_groups"
    __table_args__ = (
        CheckConstraint(
            "matched_school_id IS NULL OR matched_group_id IS NULL",
            name="chk_school_group_single_partner",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # No FK: schools already reference school_groups, keep the table graph acyclic
    matched_school_id = Column(Uuid, nullable=True)
    matched_group_id = Column(Uuid, ForeignKey("school_groups.id"), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def matched_partner(self):
        return partner_from_columns(self.matched_school_id, self.matched_group_id)
