"""
Seed a small demo exchange: schools across regions, one school group, and students
with mixed pen pal preferences.

Idempotent: schools are keyed on teacher email and skipped when already present.
Usage: python -m app.db.seed_demo_data
"""
import asyncio
import logging
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import PenpalPreference, Region, SchoolStatus
from app.core.logging_config import configure_logging
from app.core.models import School, SchoolGroup, Student
from app.db.session import AsyncSessionLocal, Base, engine

logger = logging.getLogger(__name__)

# (school_name, teacher first, teacher last, email, city, state, region, grades, start month, class size)
DEMO_SCHOOLS: List[Tuple[str, str, str, str, str, str, Region, List[str], str, int]] = [
    ("Harbor View Elementary", "Dana", "Reyes", "dreyes@harborview.example", "Seattle", "WA", Region.PACIFIC, ["4", "5"], "September", 6),
    ("Maple Ridge School", "Sam", "Okafor", "sokafor@mapleridge.example", "Burlington", "VT", Region.NORTHEAST, ["4", "5"], "September", 6),
    ("Prairie Wind Academy", "Lee", "Nguyen", "lnguyen@prairiewind.example", "Omaha", "NE", Region.MIDWEST, ["5"], "September", 4),
    ("Desert Bloom Elementary", "Alex", "Martin", "amartin@desertbloom.example", "Tucson", "AZ", Region.SOUTHWEST, ["5"], "September", 3),
    ("Bayou Creek School", "Jordan", "Price", "jprice@bayoucreek.example", "Lafayette", "LA", Region.SOUTHEAST, ["5", "6"], "September", 5),
]

DEMO_GROUP = ("Southwest Partners", ["amartin@desertbloom.example", "lnguyen@prairiewind.example"])

FIRST_NAMES = ["Ava", "Ben", "Cleo", "Dev", "Ema", "Finn", "Gia", "Hugo", "Ivy", "Jai"]
INTERESTS = ["sports", "music", "art", "reading", "animals", "science", "games", "cooking"]


def demo_students(school: School, count: int) -> List[Student]:
    students = []
    for i in range(count):
        students.append(
            Student(
                school_id=school.id,
                first_name=FIRST_NAMES[i % len(FIRST_NAMES)],
                last_initial=chr(ord("A") + i % 26),
                grade=school.grade_levels[i % len(school.grade_levels)],
                interests=[INTERESTS[i % len(INTERESTS)], INTERESTS[(i + 3) % len(INTERESTS)]],
                is_active=True,
                profile_completed=True,
                penpal_preference=(PenpalPreference.MULTIPLE if i % 3 == 0 else PenpalPreference.ONE).value,
            )
        )
    return students


async def seed_demo_data(session: AsyncSession) -> int:
    """Insert missing demo schools, their students and the demo group. Returns the number of schools created."""
    existing = await session.execute(select(School.teacher_email))
    have = set(existing.scalars().all())
    created = 0
    by_email = {}
    for name, first, last, email, city, state, region, grades, month, size in DEMO_SCHOOLS:
        if email in have:
            continue
        school = School(
            school_name=name,
            teacher_first_name=first,
            teacher_last_name=last,
            teacher_email=email,
            city=city,
            state=state,
            region=region.value,
            grade_levels=grades,
            expected_class_size=size,
            start_month=month,
            status=SchoolStatus.READY.value,
        )
        session.add(school)
        await session.flush()
        session.add_all(demo_students(school, size))
        by_email[email] = school
        created += 1

    group_name, member_emails = DEMO_GROUP
    if all(email in by_email for email in member_emails):
        group = SchoolGroup(name=group_name, version=1)
        session.add(group)
        await session.flush()
        for email in member_emails:
            by_email[email].school_group_id = group.id

    await session.commit()
    return created


async def main() -> None:
    configure_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        created = await seed_demo_data(session)
    logger.info("Seeded %d demo school(s)", created)


if __name__ == "__main__":
    asyncio.run(main())
