import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from itertools import count
from typing import AsyncGenerator, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.enums import PenpalPreference, Region, SchoolStatus
from app.core.models import School, SchoolGroup, Student, StudentPenpal
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_sequence = count(1)


@pytest.fixture()
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test; StaticPool keeps one shared connection."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_school(db_session: AsyncSession):
    """Factory: insert a school and optionally its students (all active, profile complete)."""

    async def _make(
        name: Optional[str] = None,
        *,
        region: Region = Region.PACIFIC,
        grades: Optional[List[str]] = None,
        start_month: str = "September",
        status: SchoolStatus = SchoolStatus.READY,
        students: int = 0,
        preferences: Optional[List[PenpalPreference]] = None,
        interests: Optional[List[List[str]]] = None,
    ) -> School:
        n = next(_sequence)
        school = School(
            school_name=name or f"School {n}",
            teacher_first_name="Pat",
            teacher_last_name=f"Teacher{n}",
            teacher_email=f"teacher{n}@example.com",
            city="Springfield",
            state="OR",
            region=region.value,
            grade_levels=grades or ["4", "5"],
            expected_class_size=students,
            start_month=start_month,
            status=status.value,
        )
        db_session.add(school)
        await db_session.flush()
        for i in range(students):
            pref = preferences[i] if preferences and i < len(preferences) else PenpalPreference.ONE
            db_session.add(
                Student(
                    school_id=school.id,
                    first_name=f"Kid{i}",
                    last_initial="Z",
                    grade=school.grade_levels[0],
                    interests=interests[i] if interests and i < len(interests) else [],
                    is_active=True,
                    profile_completed=True,
                    penpal_preference=pref.value,
                )
            )
        await db_session.commit()
        return school

    return _make


@pytest.fixture()
def make_group(db_session: AsyncSession):
    """Factory: attach existing schools to a new group directly in the database."""

    async def _make(name: str, schools: List[School]) -> SchoolGroup:
        group = SchoolGroup(name=name, version=1)
        db_session.add(group)
        await db_session.flush()
        for school in schools:
            school.school_group_id = group.id
        await db_session.commit()
        return group

    return _make


@pytest.fixture()
def lock_school(db_session: AsyncSession, make_school):
    """Factory: give a school a pen pal edge so it counts as locked."""

    async def _lock(school: School) -> None:
        other = await make_school(region=Region.MIDWEST, students=1)
        own = Student(
            school_id=school.id,
            first_name="Locked",
            last_initial="L",
            grade="4",
            interests=[],
            is_active=True,
            profile_completed=True,
        )
        db_session.add(own)
        await db_session.flush()
        other_student = (await db_session.execute(
            Student.__table__.select().where(Student.school_id == other.id)
        )).first()
        db_session.add(StudentPenpal(student_id=own.id, penpal_id=other_student.id))
        await db_session.commit()

    return _lock
