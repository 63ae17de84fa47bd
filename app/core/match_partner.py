"""Typed view of the partner a school or group is matched with."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from app.core.enums import UnitKind


@dataclass(frozen=True)
class MatchedPartner:
    kind: UnitKind
    id: UUID


def partner_from_columns(matched_school_id: Optional[UUID], matched_group_id: Optional[UUID]) -> Optional[MatchedPartner]:
    """Build the partner from the two nullable columns. At most one may be set."""
    if matched_school_id is not None and matched_group_id is not None:
        raise ValueError("A unit cannot be matched with both a school and a group")
    if matched_school_id is not None:
        return MatchedPartner(UnitKind.SCHOOL, matched_school_id)
    if matched_group_id is not None:
        return MatchedPartner(UnitKind.GROUP, matched_group_id)
    return None
