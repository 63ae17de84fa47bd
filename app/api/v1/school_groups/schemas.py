from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import GroupEditOutcome
from app.core.schemas import MatchedPartnerInfo


class SchoolGroupCreate(BaseModel):
    name: str = Field(..., max_length=255)
    school_ids: List[UUID] = Field(..., description="At least two ungrouped schools without pen pal assignments")


class GroupMembershipChange(BaseModel):
    school_ids: List[UUID] = Field(..., min_length=1)


class GroupMemberResponse(BaseModel):
    id: UUID
    school_name: str
    teacher_name: str
    region: str
    status: str
    student_count: int = Field(0, description="Active students")


class SchoolGroupResponse(BaseModel):
    id: UUID
    name: str
    version: int
    matched_partner: Optional[MatchedPartnerInfo] = None
    members: List[GroupMemberResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class GroupMembershipResult(BaseModel):
    """Outcome of a membership edit. DISSOLVED means the group no longer exists."""

    outcome: GroupEditOutcome
    message: str
    group: Optional[SchoolGroupResponse] = None
    released_school_ids: List[UUID] = Field(default_factory=list)
