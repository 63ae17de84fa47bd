import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import School, Student, StudentPenpal

from .pairing import PairingEdge, PairingSummary
from .schemas import (
    PairingEdgeResponse,
    PairingSummaryResponse,
    PenpalInfo,
    SchoolPenpalListResponse,
    StudentDistributionResponse,
    StudentPenpalsResponse,
)

logger = logging.getLogger(__name__)


async def locked_school_ids(db: AsyncSession, school_ids: Iterable[UUID]) -> Set[UUID]:
    """Schools with at least one pen pal edge touching their students, in either direction."""
    ids = list(school_ids)
    if not ids:
        return set()
    student_ids = select(Student.id).where(Student.school_id.in_(ids))
    result = await db.execute(
        select(StudentPenpal.student_id, StudentPenpal.penpal_id).where(
            or_(
                StudentPenpal.student_id.in_(student_ids),
                StudentPenpal.penpal_id.in_(student_ids),
            )
        )
    )
    touched: Set[UUID] = set()
    for row in result.all():
        touched.add(row.student_id)
        touched.add(row.penpal_id)
    if not touched:
        return set()
    owners = await db.execute(
        select(Student.school_id).where(Student.id.in_(touched), Student.school_id.in_(ids)).distinct()
    )
    return set(owners.scalars().all())


async def has_pairings(db: AsyncSession, school_id: UUID) -> bool:
    return bool(await locked_school_ids(db, [school_id]))


def add_pairing_edges(db: AsyncSession, edges: Sequence[PairingEdge]) -> List[StudentPenpal]:
    """Stage one StudentPenpal row per edge. Caller flushes and commits as one transaction."""
    rows = [
        StudentPenpal(
            student_id=edge.student_id,
            penpal_id=edge.penpal_id,
            match_score=edge.match_score,
            shared_interests=list(edge.shared_interests),
            status="active",
        )
        for edge in edges
    ]
    db.add_all(rows)
    return rows


def edge_to_response(edge: PairingEdge) -> PairingEdgeResponse:
    return PairingEdgeResponse(
        student_id=edge.student_id,
        penpal_id=edge.penpal_id,
        match_score=edge.match_score,
        shared_interests=list(edge.shared_interests),
    )


def summary_to_response(summary: PairingSummary) -> PairingSummaryResponse:
    def dist(items):
        return [
            StudentDistributionResponse(
                student_id=d.student_id, name=d.name, penpal_count=d.penpal_count, preference=d.preference
            )
            for d in items
        ]

    return PairingSummaryResponse(
        total_matches=summary.total_matches,
        average_match_score=round(summary.average_match_score, 2),
        unit1_students_with_penpals=summary.side_a_with_penpals,
        unit2_students_with_penpals=summary.side_b_with_penpals,
        unit1_students_without_penpals=summary.side_a_without_penpals,
        unit2_students_without_penpals=summary.side_b_without_penpals,
        top_shared_interests=summary.top_shared_interests,
        unit1_distribution=dist(summary.side_a_distribution),
        unit2_distribution=dist(summary.side_b_distribution),
    )


def _penpal_info(other: Student, school: School, shared: Optional[List[str]]) -> PenpalInfo:
    return PenpalInfo(
        student_id=other.id,
        name=other.display_name,
        grade=other.grade,
        school_id=school.id,
        school_name=school.school_name,
        city=school.city,
        state=school.state,
        teacher_name=school.teacher_name,
        in_group=school.school_group_id is not None,
        interests=list(other.interests or []),
        shared_interests=list(shared or []),
    )


async def list_school_penpals(db: AsyncSession, school_id: UUID) -> Optional[SchoolPenpalListResponse]:
    """Every active student of the school with pen pals found through edges in both directions."""
    school = await db.get(School, school_id, populate_existing=True)
    if not school:
        return None
    students_result = await db.execute(
        select(Student)
        .where(Student.school_id == school_id, Student.is_active.is_(True))
        .order_by(Student.first_name, Student.last_initial, Student.id)
    )
    students = list(students_result.scalars().all())
    student_ids = [s.id for s in students]

    edges: List[StudentPenpal] = []
    if student_ids:
        edges_result = await db.execute(
            select(StudentPenpal)
            .where(
                or_(
                    StudentPenpal.student_id.in_(student_ids),
                    StudentPenpal.penpal_id.in_(student_ids),
                )
            )
            .order_by(StudentPenpal.created_at, StudentPenpal.id)
        )
        edges = list(edges_result.scalars().all())

    own = set(student_ids)
    links: Dict[UUID, List[tuple]] = {sid: [] for sid in student_ids}
    other_ids: Set[UUID] = set()
    for edge in edges:
        if edge.student_id in own:
            links[edge.student_id].append((edge.penpal_id, edge.shared_interests))
            other_ids.add(edge.penpal_id)
        if edge.penpal_id in own:
            links[edge.penpal_id].append((edge.student_id, edge.shared_interests))
            other_ids.add(edge.student_id)

    others: Dict[UUID, Student] = {}
    schools: Dict[UUID, School] = {school.id: school}
    if other_ids:
        others_result = await db.execute(select(Student).where(Student.id.in_(other_ids)))
        others = {s.id: s for s in others_result.scalars().all()}
        missing_school_ids = {s.school_id for s in others.values()} - set(schools)
        if missing_school_ids:
            schools_result = await db.execute(select(School).where(School.id.in_(missing_school_ids)))
            schools.update({s.id: s for s in schools_result.scalars().all()})

    entries: List[StudentPenpalsResponse] = []
    total = 0
    with_penpals = 0
    for student in students:
        penpals = [
            _penpal_info(others[pid], schools[others[pid].school_id], shared)
            for pid, shared in links[student.id]
            if pid in others
        ]
        total += len(penpals)
        if penpals:
            with_penpals += 1
        entries.append(
            StudentPenpalsResponse(
                student_id=student.id,
                name=student.display_name,
                grade=student.grade,
                penpal_preference=student.penpal_preference,
                interests=list(student.interests or []),
                penpals=penpals,
            )
        )

    return SchoolPenpalListResponse(
        school_id=school.id,
        school_name=school.school_name,
        teacher_name=school.teacher_name,
        students=entries,
        students_with_penpals=with_penpals,
        students_without_penpals=len(students) - with_penpals,
        total_penpal_connections=total,
        average_penpals_per_student=round(total / len(students), 2) if students else 0.0,
    )
