import pytest
from sqlalchemy import func, select

from app.api.v1.matching import service as matching_service
from app.core.models import School, SchoolGroup, Student
from app.db.seed_demo_data import DEMO_SCHOOLS, seed_demo_data


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session):
    assert await seed_demo_data(db_session) == len(DEMO_SCHOOLS)
    assert await seed_demo_data(db_session) == 0

    schools = (await db_session.execute(select(func.count(School.id)))).scalar_one()
    students = (await db_session.execute(select(func.count(Student.id)))).scalar_one()
    assert schools == len(DEMO_SCHOOLS)
    assert students == sum(row[-1] for row in DEMO_SCHOOLS)


@pytest.mark.asyncio
async def test_seed_creates_demo_group(db_session):
    await seed_demo_data(db_session)
    group = (await db_session.execute(select(SchoolGroup))).scalar_one()
    members = (await db_session.execute(
        select(School.school_name).where(School.school_group_id == group.id).order_by(School.school_name)
    )).scalars().all()
    assert members == ["Desert Bloom Elementary", "Prairie Wind Academy"]


@pytest.mark.asyncio
async def test_seeded_schools_produce_suggestions(db_session):
    await seed_demo_data(db_session)
    result = await matching_service.get_suggestions(db_session)
    assert result.total_ready_schools == 3
    assert result.suggestions
    assert all(s.score > 0 for s in result.suggestions)
