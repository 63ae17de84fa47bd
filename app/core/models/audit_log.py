"""
Audit log for matching and group state changes. Every transition is logged.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, Uuid

from app.db.session import Base


class MatchAuditLog(Base):
    __tablename__ = "match_audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # SCHOOL | GROUP
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Uuid, nullable=False, index=True)
    action = Column(String(100), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)
    # Partner unit, when the action involves one
    related_type = Column(String(20), nullable=True)
    related_id = Column(Uuid, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    remarks = Column(Text, nullable=True)
