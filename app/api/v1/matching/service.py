"""
Unit matching state machine.

A unit goes from unmatched to matched once, through one of two sequential steps:
record_match links two units; assign_penpals links them if needed, promotes every
involved school to MATCHED and persists the pen pal edges, all in one transaction.

Every write is a conditional UPDATE against the stored row (partner still empty,
status still allowed, group version unchanged). A row count that differs from the
expected one means another request won; the transaction is rolled back and the
caller gets a ConflictError.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit_service import log_audit
from app.core.config import settings
from app.core.enums import (
    ASSIGN_PENPALS_STATUSES,
    RECORD_MATCH_STATUSES,
    AuditAction,
    MatchType,
    SchoolStatus,
    UnitKind,
)
from app.core.exceptions import ConflictError, EmptyRosterError, InfrastructureError, ValidationError
from app.core.models import School, SchoolGroup, Student
from app.core.units import Unit, load_roster, match_type_for, resolve_unit

from app.api.v1.penpals import service as penpal_service
from app.api.v1.penpals.pairing import PairingCandidate, pair_students, summarize_pairings

from .auto_matcher import suggest_matches
from .notifications import build_match_notices
from .schemas import (
    AssignPenpalsResponse,
    CompatibilityInfo,
    MatchSuggestion,
    MatchUnitsRequest,
    MatchUnitsResponse,
    SchoolCandidate,
    SuggestionsResponse,
)
from .scoring import CompatibilityBreakdown, SchoolProfile, explain_compatibility

logger = logging.getLogger(__name__)


async def registered_counts(db: AsyncSession, school_ids: Iterable[UUID]) -> Dict[UUID, int]:
    """Map school_id -> number of active students."""
    ids = list(school_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Student.school_id, func.count(Student.id).label("cnt"))
        .where(Student.school_id.in_(ids), Student.is_active.is_(True))
        .group_by(Student.school_id)
    )
    return {row.school_id: row.cnt for row in result.all()}


def _candidate(profile: SchoolProfile) -> SchoolCandidate:
    return SchoolCandidate(
        id=profile.id,
        name=profile.name,
        teacher=profile.teacher_name,
        region=profile.region,
        grades=sorted(profile.grade_levels),
        student_count=profile.student_count,
        start_month=profile.start_month,
    )


def _compatibility(breakdown: CompatibilityBreakdown) -> CompatibilityInfo:
    return CompatibilityInfo(
        different_regions=breakdown.different_regions,
        same_start_month=breakdown.same_start_month,
        shared_grades=list(breakdown.shared_grades),
        size_difference=breakdown.size_difference,
    )


async def get_suggestions(db: AsyncSession) -> SuggestionsResponse:
    """Suggest pairs among READY standalone schools that are not matched yet. Read-only."""
    result = await db.execute(
        select(School)
        .where(
            School.status == SchoolStatus.READY.value,
            School.school_group_id.is_(None),
            School.matched_school_id.is_(None),
            School.matched_group_id.is_(None),
        )
        .order_by(School.created_at, School.school_name)
    )
    schools = list(result.scalars().all())
    counts = await registered_counts(db, [s.id for s in schools])
    profiles = [SchoolProfile.from_school(s, counts.get(s.id, 0)) for s in schools]

    run = suggest_matches(profiles, settings.min_suggestion_candidates)
    suggestions = [
        MatchSuggestion(
            school1=_candidate(pair.first),
            school2=_candidate(pair.second),
            score=pair.score,
            reasons=list(pair.breakdown.reasons),
            compatibility=_compatibility(pair.breakdown),
        )
        for pair in run.pairs
    ]
    logger.info("Suggested %d pair(s) from %d ready schools", len(suggestions), run.candidate_count)
    return SuggestionsResponse(
        suggestions=suggestions,
        total_ready_schools=run.candidate_count,
        matched_schools=run.paired_count,
        unmatched_schools=len(run.unpaired),
        message=run.message,
    )


async def _resolve_pair(db: AsyncSession, payload: MatchUnitsRequest) -> Tuple[Unit, Unit]:
    refs = payload.unit_refs()
    if len(refs) != 2:
        raise ValidationError(
            f"Exactly two units are required (two schools, two groups, or one of each); got {len(refs)}",
            rule="unit_count",
        )
    if refs[0] == refs[1]:
        raise ValidationError(
            "Cannot match a unit with itself",
            entity="School" if refs[0].kind == UnitKind.SCHOOL else "SchoolGroup",
            entity_id=refs[0].id,
            rule="self_match",
        )
    unit1 = await resolve_unit(db, refs[0])
    unit2 = await resolve_unit(db, refs[1])
    return unit1, unit2


def _entity_name(unit: Unit) -> str:
    return "SchoolGroup" if unit.kind == UnitKind.GROUP else "School"


def _ensure_unmatched(unit: Unit) -> None:
    if unit.matched_partner is not None:
        raise ConflictError(
            f"{unit.name} is already matched with another unit",
            entity=_entity_name(unit),
            entity_id=unit.id,
            rule="already_matched",
        )


def _ensure_statuses(units: Sequence[Unit], allowed: Sequence[str], action: str) -> None:
    for unit in units:
        if not unit.schools:
            raise ConflictError(
                f"{unit.name} has no member schools",
                entity=_entity_name(unit),
                entity_id=unit.id,
                rule="empty_group",
            )
        for school in unit.schools:
            if school.status not in allowed:
                raise ConflictError(
                    f"{school.school_name} cannot be {action} (current status: {school.status})",
                    entity="School",
                    entity_id=school.id,
                    rule="status",
                )


async def _lost_race(db: AsyncSession, unit: Unit) -> ConflictError:
    message = f"{unit.name} was changed by another request; reload and try again"
    entity, entity_id = _entity_name(unit), unit.id
    await db.rollback()
    logger.warning("Conditional update lost for %s %s", entity, entity_id)
    return ConflictError(message, entity=entity, entity_id=entity_id, rule="concurrent_update")


async def _link_units(db: AsyncSession, unit1: Unit, unit2: Unit, allowed: Sequence[str]) -> None:
    """Set both partner references, each guarded by a compare-and-set on the stored row."""
    now = datetime.utcnow()
    for own, other in ((unit1, unit2), (unit2, unit1)):
        values = {
            "matched_school_id": other.id if other.kind == UnitKind.SCHOOL else None,
            "matched_group_id": other.id if other.kind == UnitKind.GROUP else None,
            "updated_at": now,
        }
        if own.kind == UnitKind.SCHOOL:
            stmt = update(School).where(
                School.id == own.id,
                School.school_group_id.is_(None),
                School.matched_school_id.is_(None),
                School.matched_group_id.is_(None),
                School.status.in_(allowed),
            )
        else:
            stmt = update(SchoolGroup).where(
                SchoolGroup.id == own.id,
                SchoolGroup.version == own.group.version,
                SchoolGroup.matched_school_id.is_(None),
                SchoolGroup.matched_group_id.is_(None),
            )
        result = await db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount != 1:
            raise await _lost_race(db, own)

        if own.kind == UnitKind.GROUP:
            # Member statuses must still be allowed at commit time
            touched = await db.execute(
                update(School)
                .where(School.school_group_id == own.id, School.status.in_(allowed))
                .values(updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if touched.rowcount != len(own.schools):
                raise await _lost_race(db, own)


async def _audit_link(db: AsyncSession, unit1: Unit, unit2: Unit, action: AuditAction, remarks: Optional[str] = None) -> None:
    for own, other in ((unit1, unit2), (unit2, unit1)):
        await log_audit(
            db,
            own.kind.value.upper(),
            own.id,
            action,
            related_type=other.kind.value.upper(),
            related_id=other.id,
            remarks=remarks,
        )


async def _audit_promotions(db: AsyncSession, previous: Dict[UUID, str]) -> None:
    for school_id, from_status in previous.items():
        if from_status != SchoolStatus.MATCHED.value:
            await log_audit(
                db,
                "SCHOOL",
                school_id,
                AuditAction.STATUS_PROMOTED,
                from_status=from_status,
                to_status=SchoolStatus.MATCHED.value,
            )


async def _promote_to_matched(
    db: AsyncSession,
    units: Sequence[Unit],
    allowed: Sequence[str],
    *,
    claim_pairing_run: bool = False,
) -> None:
    """Set status MATCHED on every school of the units. With claim_pairing_run, also claim the one allowed pairing run."""
    ids = [sid for unit in units for sid in unit.school_ids]
    now = datetime.utcnow()
    stmt = update(School).where(School.id.in_(ids), School.status.in_(allowed))
    values = {"status": SchoolStatus.MATCHED.value, "updated_at": now}
    if claim_pairing_run:
        stmt = stmt.where(School.penpals_assigned_at.is_(None))
        values["penpals_assigned_at"] = now
    result = await db.execute(stmt.values(**values).execution_options(synchronize_session=False))
    if result.rowcount != len(ids):
        raise await _lost_race(db, units[0])


async def _reload(db: AsyncSession, unit: Unit) -> Unit:
    return await resolve_unit(db, unit.ref())


def _school_profiles_breakdown(unit1: Unit, unit2: Unit, counts: Dict[UUID, int]) -> CompatibilityBreakdown:
    a, b = unit1.schools[0], unit2.schools[0]
    return explain_compatibility(
        SchoolProfile.from_school(a, counts.get(a.id, 0)),
        SchoolProfile.from_school(b, counts.get(b.id, 0)),
    )


async def record_match(db: AsyncSession, payload: MatchUnitsRequest) -> MatchUnitsResponse:
    """Link two unmatched units. Status is only promoted when PROMOTE_ON_RECORD_MATCH is set."""
    unit1, unit2 = await _resolve_pair(db, payload)
    _ensure_unmatched(unit1)
    _ensure_unmatched(unit2)
    _ensure_statuses((unit1, unit2), RECORD_MATCH_STATUSES, "matched")

    kind = match_type_for(unit1, unit2)
    breakdown: Optional[CompatibilityBreakdown] = None
    if kind == MatchType.SCHOOL_SCHOOL:
        counts = await registered_counts(db, unit1.school_ids + unit2.school_ids)
        breakdown = _school_profiles_breakdown(unit1, unit2, counts)
    previous = {s.id: s.status for unit in (unit1, unit2) for s in unit.schools}

    try:
        await _link_units(db, unit1, unit2, RECORD_MATCH_STATUSES)
        if settings.promote_on_record_match:
            await _promote_to_matched(db, (unit1, unit2), RECORD_MATCH_STATUSES)
            await _audit_promotions(db, previous)
        await _audit_link(db, unit1, unit2, AuditAction.MATCH_RECORDED)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Match conflicts with the current stored state", rule="integrity")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to record match")
        raise InfrastructureError("Failed to record match")

    unit1, unit2 = await _reload(db, unit1), await _reload(db, unit2)
    logger.info("Recorded %s match: %s <-> %s", kind.value, unit1.label, unit2.label)
    return MatchUnitsResponse(
        message="Units successfully matched",
        match_type=kind,
        unit1=unit1.to_summary(),
        unit2=unit2.to_summary(),
        score=breakdown.score if breakdown else None,
        reasons=list(breakdown.reasons) if breakdown else [],
    )


async def assign_penpals(db: AsyncSession, payload: MatchUnitsRequest) -> AssignPenpalsResponse:
    """Match two units if needed, promote their schools to MATCHED and assign student pen pals.

    Runs at most once per match: schools that already took part in a pairing run,
    or already have pen pal edges, are rejected with a ConflictError.
    """
    unit1, unit2 = await _resolve_pair(db, payload)
    already_linked = unit1.is_matched_with(unit2)
    if not already_linked:
        _ensure_unmatched(unit1)
        _ensure_unmatched(unit2)
    _ensure_statuses((unit1, unit2), ASSIGN_PENPALS_STATUSES, "assigned pen pals")

    for unit in (unit1, unit2):
        claimed = [s for s in unit.schools if s.penpals_assigned_at is not None]
        locked = await penpal_service.locked_school_ids(db, unit.school_ids)
        if claimed or locked:
            raise ConflictError(
                f"Pen pals have already been assigned for {unit.name}",
                entity=_entity_name(unit),
                entity_id=unit.id,
                rule="penpals_already_assigned",
            )

    rosters = []
    for unit in (unit1, unit2):
        roster = [PairingCandidate.from_student(s) for s in await load_roster(db, unit)]
        if not roster:
            raise EmptyRosterError(
                f"{unit.name} has no active students with completed profiles",
                entity=_entity_name(unit),
                entity_id=unit.id,
                rule="empty_roster",
            )
        rosters.append(roster)
    roster1, roster2 = rosters

    edges = pair_students(roster1, roster2)
    summary = summarize_pairings(edges, roster1, roster2)
    kind = match_type_for(unit1, unit2)
    previous = {s.id: s.status for unit in (unit1, unit2) for s in unit.schools}

    try:
        if not already_linked:
            await _link_units(db, unit1, unit2, ASSIGN_PENPALS_STATUSES)
        await _promote_to_matched(db, (unit1, unit2), ASSIGN_PENPALS_STATUSES, claim_pairing_run=True)
        penpal_service.add_pairing_edges(db, edges)
        await db.flush()
        await _audit_promotions(db, previous)
        await _audit_link(db, unit1, unit2, AuditAction.PENPALS_ASSIGNED, remarks=f"{len(edges)} pen pal edge(s)")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(
            "Pen pals were assigned by another request for one of these units",
            rule="penpals_already_assigned",
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to assign pen pals")
        raise InfrastructureError("Failed to assign pen pals")

    unit1, unit2 = await _reload(db, unit1), await _reload(db, unit2)
    logger.info(
        "Assigned %d pen pal edge(s) for %s match %s <-> %s",
        len(edges),
        kind.value,
        unit1.label,
        unit2.label,
    )
    return AssignPenpalsResponse(
        message="Units matched and pen pals assigned successfully",
        match_type=kind,
        unit1=unit1.to_summary(),
        unit2=unit2.to_summary(),
        total_matches=len(edges),
        summary=penpal_service.summary_to_response(summary),
        matches=[penpal_service.edge_to_response(e) for e in edges],
        notices=build_match_notices(unit1, unit2),
    )
