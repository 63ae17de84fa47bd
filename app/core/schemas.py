from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import UnitKind


class UnitRef(BaseModel):
    """Address of a matchable unit: a standalone school or a school group."""

    kind: UnitKind
    id: UUID


class MatchedPartnerInfo(BaseModel):
    kind: UnitKind
    id: UUID


class UnitSummary(BaseModel):
    """A unit as reported back to callers."""

    kind: UnitKind
    id: UUID
    name: str
    school_ids: List[UUID] = Field(default_factory=list)
    school_names: List[str] = Field(default_factory=list)
    # Status per member school, in the same order as school_ids
    statuses: List[str] = Field(default_factory=list)
    matched_partner: Optional[MatchedPartnerInfo] = None
