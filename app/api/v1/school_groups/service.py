import logging
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit_service import log_audit
from app.core.enums import AuditAction, GroupEditOutcome
from app.core.exceptions import ConflictError, InfrastructureError, NotFoundError, ValidationError
from app.core.models import School, SchoolGroup
from app.core.schemas import MatchedPartnerInfo
from app.core.units import get_group_members

from app.api.v1.matching.service import registered_counts
from app.api.v1.penpals import service as penpal_service

from .schemas import (
    GroupMemberResponse,
    GroupMembershipChange,
    GroupMembershipResult,
    SchoolGroupCreate,
    SchoolGroupResponse,
)

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 2


def _distinct(ids: Sequence[UUID]) -> List[UUID]:
    seen = set()
    out = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


async def _get_group(db: AsyncSession, group_id: UUID) -> Optional[SchoolGroup]:
    result = await db.execute(
        select(SchoolGroup).where(SchoolGroup.id == group_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _require_group(db: AsyncSession, group_id: UUID) -> SchoolGroup:
    group = await _get_group(db, group_id)
    if not group:
        raise NotFoundError("School group not found", entity="SchoolGroup", entity_id=group_id)
    return group


async def _load_schools(db: AsyncSession, school_ids: Sequence[UUID]) -> List[School]:
    result = await db.execute(
        select(School).where(School.id.in_(school_ids)).execution_options(populate_existing=True)
    )
    by_id = {s.id: s for s in result.scalars().all()}
    missing = [sid for sid in school_ids if sid not in by_id]
    if missing:
        raise NotFoundError("One or more schools not found", entity="School", entity_id=missing[0])
    return [by_id[sid] for sid in school_ids]


def _ensure_free(schools: Sequence[School]) -> None:
    """Schools joining a group must be ungrouped and not matched on their own."""
    for school in schools:
        if school.school_group_id is not None:
            raise ConflictError(
                f"{school.school_name} is already in a group",
                entity="School",
                entity_id=school.id,
                rule="already_grouped",
            )
        if school.matched_partner is not None:
            raise ConflictError(
                f"{school.school_name} is already matched and cannot join a group",
                entity="School",
                entity_id=school.id,
                rule="already_matched",
            )


def _ensure_group_unmatched(group: SchoolGroup) -> None:
    if group.matched_partner is not None:
        raise ConflictError(
            f"Group {group.name} is matched; its membership can no longer change",
            entity="SchoolGroup",
            entity_id=group.id,
            rule="group_matched",
        )


async def _ensure_unlocked(db: AsyncSession, schools: Sequence[School]) -> None:
    locked = await penpal_service.locked_school_ids(db, [s.id for s in schools])
    for school in schools:
        if school.id in locked:
            raise ConflictError(
                f"{school.school_name} already has pen pal assignments and is locked",
                entity="School",
                entity_id=school.id,
                rule="locked",
            )


async def _bump_version(db: AsyncSession, group: SchoolGroup) -> None:
    result = await db.execute(
        update(SchoolGroup)
        .where(
            SchoolGroup.id == group.id,
            SchoolGroup.version == group.version,
            SchoolGroup.matched_school_id.is_(None),
            SchoolGroup.matched_group_id.is_(None),
        )
        .values(version=group.version + 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await _concurrent_edit(db, group.name, group.id)


async def _concurrent_edit(db: AsyncSession, name: str, group_id: UUID) -> None:
    await db.rollback()
    logger.warning("Concurrent membership change detected for group %s", group_id)
    raise ConflictError(
        f"Group {name} was changed by another request; reload and try again",
        entity="SchoolGroup",
        entity_id=group_id,
        rule="concurrent_update",
    )


async def _group_response(db: AsyncSession, group: SchoolGroup) -> SchoolGroupResponse:
    members = await get_group_members(db, group.id)
    counts = await registered_counts(db, [m.id for m in members])
    partner = group.matched_partner
    return SchoolGroupResponse(
        id=group.id,
        name=group.name,
        version=group.version,
        matched_partner=MatchedPartnerInfo(kind=partner.kind, id=partner.id) if partner else None,
        members=[
            GroupMemberResponse(
                id=m.id,
                school_name=m.school_name,
                teacher_name=m.teacher_name,
                region=m.region,
                status=m.status,
                student_count=counts.get(m.id, 0),
            )
            for m in members
        ],
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


async def create_group(db: AsyncSession, payload: SchoolGroupCreate) -> SchoolGroupResponse:
    name = payload.name.strip()
    school_ids = _distinct(payload.school_ids)
    if not name or len(school_ids) < MIN_GROUP_SIZE:
        raise ValidationError("Group name and at least 2 schools are required", rule="group_min_size")
    schools = await _load_schools(db, school_ids)
    _ensure_free(schools)
    await _ensure_unlocked(db, schools)

    try:
        group = SchoolGroup(name=name, version=1)
        db.add(group)
        await db.flush()
        result = await db.execute(
            update(School)
            .where(
                School.id.in_(school_ids),
                School.school_group_id.is_(None),
                School.matched_school_id.is_(None),
                School.matched_group_id.is_(None),
            )
            .values(school_group_id=group.id, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(school_ids):
            await db.rollback()
            raise ConflictError(
                "One or more schools were grouped or matched by another request",
                entity="School",
                rule="concurrent_update",
            )
        await log_audit(db, "GROUP", group.id, AuditAction.GROUP_CREATED, remarks=f"{len(school_ids)} school(s)")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Group conflicts with the current stored state", rule="integrity")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to create school group")
        raise InfrastructureError("Failed to create school group")

    logger.info("Created school group %s with %d schools", group.id, len(school_ids))
    group = await _require_group(db, group.id)
    return await _group_response(db, group)


async def list_groups(db: AsyncSession) -> List[SchoolGroupResponse]:
    result = await db.execute(select(SchoolGroup).order_by(SchoolGroup.created_at.desc(), SchoolGroup.name))
    return [await _group_response(db, g) for g in result.scalars().all()]


async def get_group(db: AsyncSession, group_id: UUID) -> Optional[SchoolGroupResponse]:
    group = await _get_group(db, group_id)
    if not group:
        return None
    return await _group_response(db, group)


async def add_members(db: AsyncSession, group_id: UUID, payload: GroupMembershipChange) -> GroupMembershipResult:
    group = await _require_group(db, group_id)
    _ensure_group_unmatched(group)
    school_ids = _distinct(payload.school_ids)
    members = await get_group_members(db, group.id)
    member_ids = {m.id for m in members}
    for sid in school_ids:
        if sid in member_ids:
            raise ValidationError("School is already a member of this group", entity="School", entity_id=sid, rule="already_member")
    schools = await _load_schools(db, school_ids)
    _ensure_free(schools)
    await _ensure_unlocked(db, list(members) + schools)

    group_name = group.name
    try:
        await _bump_version(db, group)
        result = await db.execute(
            update(School)
            .where(
                School.id.in_(school_ids),
                School.school_group_id.is_(None),
                School.matched_school_id.is_(None),
                School.matched_group_id.is_(None),
            )
            .values(school_group_id=group_id, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(school_ids):
            await _concurrent_edit(db, group_name, group_id)
        await log_audit(db, "GROUP", group_id, AuditAction.GROUP_MEMBERS_ADDED, remarks=f"{len(school_ids)} school(s)")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Membership change conflicts with the current stored state", rule="integrity")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to add schools to group %s", group_id)
        raise InfrastructureError("Failed to update school group")

    logger.info("Added %d school(s) to group %s", len(school_ids), group_id)
    group = await _require_group(db, group_id)
    return GroupMembershipResult(
        outcome=GroupEditOutcome.UPDATED,
        message=f"Added {len(school_ids)} school(s) to {group_name}",
        group=await _group_response(db, group),
    )


async def remove_members(db: AsyncSession, group_id: UUID, payload: GroupMembershipChange) -> GroupMembershipResult:
    """Remove schools from a group. Leaving exactly one member dissolves the group; leaving none is rejected."""
    group = await _require_group(db, group_id)
    _ensure_group_unmatched(group)
    school_ids = _distinct(payload.school_ids)
    members = await get_group_members(db, group.id)
    by_id = {m.id: m for m in members}
    for sid in school_ids:
        if sid not in by_id:
            raise ValidationError("School is not a member of this group", entity="School", entity_id=sid, rule="not_a_member")

    remaining = len(members) - len(school_ids)
    if remaining <= 0:
        raise ConflictError(
            f"Removing every school would leave {group.name} with no members; delete the group instead",
            entity="SchoolGroup",
            entity_id=group.id,
            rule="group_would_be_empty",
        )
    dissolve = remaining < MIN_GROUP_SIZE
    # Dissolving releases the last member as well
    affected = members if dissolve else [by_id[sid] for sid in school_ids]
    await _ensure_unlocked(db, affected)

    group_name = group.name
    released = [m.id for m in affected]
    try:
        await _bump_version(db, group)
        result = await db.execute(
            update(School)
            .where(School.id.in_(released), School.school_group_id == group_id)
            .values(school_group_id=None, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(released):
            await _concurrent_edit(db, group_name, group_id)
        if dissolve:
            await db.execute(delete(SchoolGroup).where(SchoolGroup.id == group_id).execution_options(synchronize_session=False))
            await log_audit(db, "GROUP", group_id, AuditAction.GROUP_DISSOLVED, remarks=f"{remaining} member(s) left")
        else:
            await log_audit(db, "GROUP", group_id, AuditAction.GROUP_MEMBERS_REMOVED, remarks=f"{len(released)} school(s)")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Membership change conflicts with the current stored state", rule="integrity")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to remove schools from group %s", group_id)
        raise InfrastructureError("Failed to update school group")

    if dissolve:
        db.expunge(group)
        logger.info("Group %s dissolved; released %d school(s)", group_id, len(released))
        return GroupMembershipResult(
            outcome=GroupEditOutcome.DISSOLVED,
            message=f"{group_name} had fewer than {MIN_GROUP_SIZE} schools left and was dissolved",
            released_school_ids=released,
        )

    logger.info("Removed %d school(s) from group %s", len(released), group_id)
    group = await _require_group(db, group_id)
    return GroupMembershipResult(
        outcome=GroupEditOutcome.UPDATED,
        message=f"Removed {len(released)} school(s) from {group_name}",
        group=await _group_response(db, group),
        released_school_ids=released,
    )


async def delete_group(db: AsyncSession, group_id: UUID) -> bool:
    """Detach every member and delete the group. Rejected while any member is locked."""
    group = await _get_group(db, group_id)
    if not group:
        return False
    _ensure_group_unmatched(group)
    members = await get_group_members(db, group.id)
    await _ensure_unlocked(db, members)

    group_name = group.name
    try:
        await _bump_version(db, group)
        await db.execute(
            update(School)
            .where(School.school_group_id == group_id)
            .values(school_group_id=None, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(SchoolGroup).where(SchoolGroup.id == group_id).execution_options(synchronize_session=False))
        await log_audit(db, "GROUP", group_id, AuditAction.GROUP_DELETED, remarks=group_name)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete school group %s", group_id)
        raise InfrastructureError("Failed to delete school group")

    db.expunge(group)
    logger.info("Deleted school group %s", group_id)
    return True
