from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import PenpalPreference


class PairingEdgeResponse(BaseModel):
    student_id: UUID
    penpal_id: UUID
    match_score: int
    shared_interests: List[str] = Field(default_factory=list)


class StudentDistributionResponse(BaseModel):
    student_id: UUID
    name: str
    penpal_count: int
    preference: PenpalPreference


class PairingSummaryResponse(BaseModel):
    """Outcome of one pairing run between two units."""

    total_matches: int
    average_match_score: float
    unit1_students_with_penpals: int
    unit2_students_with_penpals: int
    unit1_students_without_penpals: int
    unit2_students_without_penpals: int
    top_shared_interests: List[str] = Field(default_factory=list)
    unit1_distribution: List[StudentDistributionResponse] = Field(default_factory=list)
    unit2_distribution: List[StudentDistributionResponse] = Field(default_factory=list)


class PenpalInfo(BaseModel):
    student_id: UUID
    name: str
    grade: str
    school_id: UUID
    school_name: str
    city: Optional[str] = None
    state: Optional[str] = None
    teacher_name: Optional[str] = None
    in_group: bool = False
    interests: List[str] = Field(default_factory=list)
    shared_interests: List[str] = Field(default_factory=list)


class StudentPenpalsResponse(BaseModel):
    student_id: UUID
    name: str
    grade: str
    penpal_preference: PenpalPreference
    interests: List[str] = Field(default_factory=list)
    penpals: List[PenpalInfo] = Field(default_factory=list)


class SchoolPenpalListResponse(BaseModel):
    """Roster view: every active student of a school with their pen pals, from either edge direction."""

    school_id: UUID
    school_name: str
    teacher_name: str
    students: List[StudentPenpalsResponse] = Field(default_factory=list)
    students_with_penpals: int = 0
    students_without_penpals: int = 0
    total_penpal_connections: int = 0
    average_penpals_per_student: float = 0.0


class PairingStatusResponse(BaseModel):
    school_id: UUID
    has_pairings: bool
