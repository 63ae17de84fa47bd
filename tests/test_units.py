from uuid import uuid4

import pytest

from app.core.enums import MatchType, UnitKind
from app.core.match_partner import MatchedPartner, partner_from_columns
from app.core.schemas import UnitRef
from app.core.units import match_type_for, resolve_unit


def test_partner_from_columns():
    school_id, group_id = uuid4(), uuid4()
    assert partner_from_columns(None, None) is None
    assert partner_from_columns(school_id, None) == MatchedPartner(UnitKind.SCHOOL, school_id)
    assert partner_from_columns(None, group_id) == MatchedPartner(UnitKind.GROUP, group_id)
    with pytest.raises(ValueError):
        partner_from_columns(school_id, group_id)


@pytest.mark.asyncio
async def test_resolve_group_unit_lists_members(db_session, make_school, make_group):
    a = await make_school("Aspen")
    b = await make_school("Birch")
    c = await make_school("Cedar")
    group = await make_group("Trees", [a, b])

    unit = await resolve_unit(db_session, UnitRef(kind="group", id=group.id))
    assert unit.kind == UnitKind.GROUP
    assert unit.name == "Trees"
    assert sorted(s.school_name for s in unit.schools) == ["Aspen", "Birch"]

    single = await resolve_unit(db_session, UnitRef(kind="school", id=c.id))
    assert single.school_ids == [c.id]
    assert match_type_for(unit, single) == MatchType.GROUP_SCHOOL
    assert match_type_for(unit, unit) == MatchType.GROUP_GROUP

    summary = unit.to_summary()
    assert summary.matched_partner is None
    assert summary.school_names and len(summary.statuses) == 2
