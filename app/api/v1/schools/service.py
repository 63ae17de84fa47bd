from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SchoolStatus
from app.core.models import School, Student
from app.core.schemas import MatchedPartnerInfo

from .schemas import SchoolResponse, StudentCounts


async def _student_counts(db: AsyncSession, school_ids: List[UUID]) -> Dict[UUID, Tuple[int, int]]:
    """Map school_id -> registered (active) and ready (active, profile complete) counts."""
    if not school_ids:
        return {}
    r = await db.execute(
        select(
            Student.school_id,
            func.count(Student.id).label("registered"),
            func.sum(case((Student.profile_completed.is_(True), 1), else_=0)).label("ready"),
        )
        .where(Student.school_id.in_(school_ids), Student.is_active.is_(True))
        .group_by(Student.school_id)
    )
    return {row.school_id: (row.registered, int(row.ready or 0)) for row in r.all()}


def _school_to_response(s: School, counts) -> SchoolResponse:
    registered, ready = counts or (0, 0)
    partner = s.matched_partner
    return SchoolResponse(
        id=s.id,
        school_name=s.school_name,
        teacher_name=s.teacher_name,
        teacher_email=s.teacher_email,
        city=s.city,
        state=s.state,
        region=s.region,
        grade_levels=list(s.grade_levels or []),
        start_month=s.start_month,
        letter_frequency=s.letter_frequency,
        status=s.status,
        school_group_id=s.school_group_id,
        matched_partner=MatchedPartnerInfo(kind=partner.kind, id=partner.id) if partner else None,
        penpals_assigned_at=s.penpals_assigned_at,
        student_counts=StudentCounts(expected=s.expected_class_size or 0, registered=registered, ready=ready),
        created_at=s.created_at,
    )


async def list_schools(
    db: AsyncSession,
    status: Optional[SchoolStatus] = None,
    ungrouped_only: bool = False,
) -> List[SchoolResponse]:
    stmt = select(School).execution_options(populate_existing=True)
    if status is not None:
        stmt = stmt.where(School.status == status.value)
    if ungrouped_only:
        stmt = stmt.where(School.school_group_id.is_(None))
    stmt = stmt.order_by(School.created_at, School.school_name)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    counts = await _student_counts(db, [s.id for s in rows])
    return [_school_to_response(s, counts.get(s.id)) for s in rows]


async def get_school(db: AsyncSession, school_id: UUID) -> Optional[SchoolResponse]:
    obj = await db.get(School, school_id, populate_existing=True)
    if not obj:
        return None
    counts = await _student_counts(db, [obj.id])
    return _school_to_response(obj, counts.get(obj.id))
