from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import MatchType
from app.core.schemas import UnitRef, UnitSummary
from app.api.v1.penpals.schemas import PairingEdgeResponse, PairingSummaryResponse


class MatchUnitsRequest(BaseModel):
    """Exactly two units: two schools, two groups, or one of each."""

    school_ids: List[UUID] = Field(default_factory=list, description="Standalone schools to match")
    group_ids: List[UUID] = Field(default_factory=list, description="School groups to match")

    def unit_refs(self) -> List[UnitRef]:
        refs = [UnitRef(kind="school", id=sid) for sid in self.school_ids]
        refs.extend(UnitRef(kind="group", id=gid) for gid in self.group_ids)
        return refs


class SchoolCandidate(BaseModel):
    id: UUID
    name: str
    teacher: str
    region: str
    grades: List[str]
    student_count: int
    start_month: str


class CompatibilityInfo(BaseModel):
    different_regions: bool
    same_start_month: bool
    shared_grades: List[str] = Field(default_factory=list)
    size_difference: int


class MatchSuggestion(BaseModel):
    """A suggested pair. Does not create a match; confirm it through match-units."""

    school1: SchoolCandidate
    school2: SchoolCandidate
    score: int
    reasons: List[str] = Field(default_factory=list)
    compatibility: CompatibilityInfo


class SuggestionsResponse(BaseModel):
    suggestions: List[MatchSuggestion] = Field(default_factory=list)
    algorithm: str = "cross-regional-compatibility"
    total_ready_schools: int
    matched_schools: int
    unmatched_schools: int
    message: Optional[str] = None


class MatchUnitsResponse(BaseModel):
    success: bool = True
    message: str
    match_type: MatchType
    unit1: UnitSummary
    unit2: UnitSummary
    # School-school matches only
    score: Optional[int] = None
    reasons: List[str] = Field(default_factory=list)


class MatchNotice(BaseModel):
    """Per-school payload for the notification collaborator."""

    school_id: UUID
    school_name: str
    teacher_name: str
    teacher_email: str
    partner_school_names: List[str] = Field(default_factory=list)


class AssignPenpalsResponse(BaseModel):
    success: bool = True
    message: str
    match_type: MatchType
    unit1: UnitSummary
    unit2: UnitSummary
    total_matches: int
    summary: PairingSummaryResponse
    matches: List[PairingEdgeResponse] = Field(default_factory=list)
    notices: List[MatchNotice] = Field(default_factory=list)
