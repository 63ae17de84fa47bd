from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.schemas import MatchedPartnerInfo


class StudentCounts(BaseModel):
    expected: int
    registered: int = Field(..., description="Active students")
    ready: int = Field(..., description="Active students with completed profiles")


class SchoolResponse(BaseModel):
    id: UUID
    school_name: str
    teacher_name: str
    teacher_email: str
    city: Optional[str] = None
    state: Optional[str] = None
    region: str
    grade_levels: List[str] = Field(default_factory=list)
    start_month: str
    letter_frequency: Optional[str] = None
    status: str
    school_group_id: Optional[UUID] = None
    matched_partner: Optional[MatchedPartnerInfo] = None
    penpals_assigned_at: Optional[datetime] = None
    student_counts: StudentCounts
    created_at: datetime
