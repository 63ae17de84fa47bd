"""
Audit logging for match and group state changes. Call on every transition.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import AuditAction
from app.core.models import MatchAuditLog


async def log_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: AuditAction,
    *,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    related_type: Optional[str] = None,
    related_id: Optional[UUID] = None,
    remarks: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    entry = MatchAuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action.value,
        from_status=from_status,
        to_status=to_status,
        related_type=related_type,
        related_id=related_id,
        remarks=remarks,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)
