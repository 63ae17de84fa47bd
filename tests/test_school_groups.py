from uuid import uuid4

import pytest
from sqlalchemy import select

from app.api.v1.matching import service as matching_service
from app.api.v1.matching.schemas import MatchUnitsRequest
from app.api.v1.school_groups import service
from app.api.v1.school_groups.schemas import GroupMembershipChange, SchoolGroupCreate
from app.core.enums import AuditAction, GroupEditOutcome, Region
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import MatchAuditLog, School, SchoolGroup


async def group_row(db, group_id):
    result = await db.execute(
        select(SchoolGroup).where(SchoolGroup.id == group_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_create_group_attaches_members(db_session, make_school):
    a = await make_school("A", students=3)
    b = await make_school("B", students=2)

    group = await service.create_group(db_session, SchoolGroupCreate(name=" West ", school_ids=[a.id, b.id]))

    assert group.name == "West"
    assert group.version == 1
    assert {m.school_name: m.student_count for m in group.members} == {"A": 3, "B": 2}
    await db_session.refresh(a)
    assert a.school_group_id == group.id
    logged = (await db_session.execute(
        select(MatchAuditLog).where(MatchAuditLog.action == AuditAction.GROUP_CREATED.value)
    )).scalars().all()
    assert len(logged) == 1


@pytest.mark.asyncio
async def test_create_group_needs_two_distinct_schools(db_session, make_school):
    a = await make_school()
    with pytest.raises(ValidationError) as exc:
        await service.create_group(db_session, SchoolGroupCreate(name="Solo", school_ids=[a.id, a.id]))
    assert exc.value.rule == "group_min_size"


@pytest.mark.asyncio
async def test_create_group_rejects_grouped_and_matched_schools(db_session, make_school, make_group):
    a = await make_school(region=Region.PACIFIC)
    b = await make_school(region=Region.PACIFIC)
    c = await make_school(region=Region.NORTHEAST)
    d = await make_school(region=Region.MIDWEST)
    await make_group("Existing", [a, b])

    with pytest.raises(ConflictError) as exc:
        await service.create_group(db_session, SchoolGroupCreate(name="New", school_ids=[a.id, c.id]))
    assert exc.value.rule == "already_grouped"

    await matching_service.record_match(db_session, MatchUnitsRequest(school_ids=[c.id, d.id]))
    e = await make_school(region=Region.SOUTHEAST)
    with pytest.raises(ConflictError) as exc:
        await service.create_group(db_session, SchoolGroupCreate(name="New", school_ids=[c.id, e.id]))
    assert exc.value.rule == "already_matched"


@pytest.mark.asyncio
async def test_create_group_rejects_locked_school(db_session, make_school, lock_school):
    a = await make_school()
    b = await make_school()
    await lock_school(a)
    with pytest.raises(ConflictError) as exc:
        await service.create_group(db_session, SchoolGroupCreate(name="Locked", school_ids=[a.id, b.id]))
    assert exc.value.rule == "locked"


@pytest.mark.asyncio
async def test_create_group_with_unknown_school(db_session, make_school):
    a = await make_school()
    with pytest.raises(NotFoundError):
        await service.create_group(db_session, SchoolGroupCreate(name="Ghost", school_ids=[a.id, uuid4()]))


@pytest.mark.asyncio
async def test_add_members_bumps_version(db_session, make_school, make_group):
    a, b, c = await make_school(), await make_school(), await make_school()
    group = await make_group("Trio", [a, b])

    result = await service.add_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))

    assert result.outcome == GroupEditOutcome.UPDATED
    assert result.group.version == 2
    assert len(result.group.members) == 3

    with pytest.raises(ValidationError) as exc:
        await service.add_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))
    assert exc.value.rule == "already_member"


@pytest.mark.asyncio
async def test_remove_members_keeps_group_with_two_left(db_session, make_school, make_group):
    a, b, c = await make_school(), await make_school(), await make_school()
    group = await make_group("Trio", [a, b, c])

    result = await service.remove_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))

    assert result.outcome == GroupEditOutcome.UPDATED
    assert result.released_school_ids == [c.id]
    assert {m.id for m in result.group.members} == {a.id, b.id}
    await db_session.refresh(c)
    assert c.school_group_id is None


@pytest.mark.asyncio
async def test_removing_down_to_one_dissolves_the_group(db_session, make_school, make_group):
    a, b = await make_school(), await make_school()
    group = await make_group("Pair", [a, b])

    result = await service.remove_members(db_session, group.id, GroupMembershipChange(school_ids=[b.id]))

    assert result.outcome == GroupEditOutcome.DISSOLVED
    assert result.group is None
    assert set(result.released_school_ids) == {a.id, b.id}
    assert await group_row(db_session, group.id) is None
    remaining = (await db_session.execute(
        select(School).where(School.school_group_id.is_not(None))
    )).scalars().all()
    assert remaining == []


@pytest.mark.asyncio
async def test_removing_every_member_is_rejected(db_session, make_school, make_group):
    a, b = await make_school(), await make_school()
    group = await make_group("Pair", [a, b])

    with pytest.raises(ConflictError) as exc:
        await service.remove_members(db_session, group.id, GroupMembershipChange(school_ids=[a.id, b.id]))
    assert exc.value.rule == "group_would_be_empty"
    assert await group_row(db_session, group.id) is not None


@pytest.mark.asyncio
async def test_remove_non_member(db_session, make_school, make_group):
    a, b, c = await make_school(), await make_school(), await make_school()
    group = await make_group("Pair", [a, b])
    with pytest.raises(ValidationError) as exc:
        await service.remove_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))
    assert exc.value.rule == "not_a_member"


@pytest.mark.asyncio
async def test_locked_member_cannot_leave(db_session, make_school, make_group, lock_school):
    a, b, c = await make_school(), await make_school(), await make_school()
    group = await make_group("Trio", [a, b, c])
    await lock_school(c)
    with pytest.raises(ConflictError) as exc:
        await service.remove_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))
    assert exc.value.rule == "locked"


@pytest.mark.asyncio
async def test_matched_group_membership_is_frozen(db_session, make_school, make_group):
    a = await make_school(region=Region.PACIFIC)
    b = await make_school(region=Region.PACIFIC)
    c = await make_school(region=Region.NORTHEAST)
    extra = await make_school(region=Region.MOUNTAIN)
    group = await make_group("West", [a, b])
    await matching_service.record_match(db_session, MatchUnitsRequest(school_ids=[c.id], group_ids=[group.id]))

    with pytest.raises(ConflictError) as exc:
        await service.add_members(db_session, group.id, GroupMembershipChange(school_ids=[extra.id]))
    assert exc.value.rule == "group_matched"
    with pytest.raises(ConflictError):
        await service.delete_group(db_session, group.id)


@pytest.mark.asyncio
async def test_delete_group_releases_members(db_session, make_school, make_group):
    a, b = await make_school(), await make_school()
    group = await make_group("Pair", [a, b])

    assert await service.delete_group(db_session, group.id) is True
    assert await group_row(db_session, group.id) is None
    await db_session.refresh(a)
    assert a.school_group_id is None
    assert await service.delete_group(db_session, group.id) is False


@pytest.mark.asyncio
async def test_add_locked_school_is_rejected(db_session, make_school, make_group, lock_school):
    a, b, c = await make_school(), await make_school(), await make_school()
    group = await make_group("Pair", [a, b])
    await lock_school(c)

    with pytest.raises(ConflictError) as exc:
        await service.add_members(db_session, group.id, GroupMembershipChange(school_ids=[c.id]))
    assert exc.value.rule == "locked"
    assert exc.value.entity_id == c.id

    stored = await group_row(db_session, group.id)
    assert stored.version == 1
    await db_session.refresh(c)
    assert c.school_group_id is None


@pytest.mark.asyncio
async def test_delete_group_with_locked_member_is_rejected(db_session, make_school, make_group, lock_school):
    a, b = await make_school(), await make_school()
    group = await make_group("Pair", [a, b])
    await lock_school(a)

    with pytest.raises(ConflictError) as exc:
        await service.delete_group(db_session, group.id)
    assert exc.value.rule == "locked"

    assert await group_row(db_session, group.id) is not None
    members = (await db_session.execute(
        select(School.id).where(School.school_group_id == group.id)
    )).scalars().all()
    assert set(members) == {a.id, b.id}
