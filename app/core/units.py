"""
Uniform view over the two matchable entity kinds: a standalone School and a SchoolGroup.
Matching code works on Unit and never special-cases the kind beyond this module.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import MatchType, UnitKind
from app.core.exceptions import NotFoundError, ValidationError
from app.core.match_partner import MatchedPartner
from app.core.models import School, SchoolGroup, Student
from app.core.schemas import MatchedPartnerInfo, UnitRef, UnitSummary


@dataclass
class Unit:
    kind: UnitKind
    id: UUID
    name: str
    schools: List[School] = field(default_factory=list)
    group: Optional[SchoolGroup] = None

    @property
    def entity(self) -> Union[School, SchoolGroup]:
        return self.group if self.kind == UnitKind.GROUP else self.schools[0]

    @property
    def key(self) -> MatchedPartner:
        return MatchedPartner(self.kind, self.id)

    @property
    def matched_partner(self) -> Optional[MatchedPartner]:
        return self.entity.matched_partner

    @property
    def school_ids(self) -> List[UUID]:
        return [s.id for s in self.schools]

    @property
    def label(self) -> str:
        return f"{'Group' if self.kind == UnitKind.GROUP else 'School'} {self.name}"

    def ref(self) -> UnitRef:
        return UnitRef(kind=self.kind, id=self.id)

    def is_matched_with(self, other: "Unit") -> bool:
        return self.matched_partner == other.key and other.matched_partner == self.key

    def to_summary(self) -> UnitSummary:
        partner = self.matched_partner
        return UnitSummary(
            kind=self.kind,
            id=self.id,
            name=self.name,
            school_ids=self.school_ids,
            school_names=[s.school_name for s in self.schools],
            statuses=[s.status for s in self.schools],
            matched_partner=MatchedPartnerInfo(kind=partner.kind, id=partner.id) if partner else None,
        )


async def get_group_members(db: AsyncSession, group_id: UUID) -> List[School]:
    result = await db.execute(
        select(School)
        .where(School.school_group_id == group_id)
        .order_by(School.created_at, School.school_name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def resolve_unit(db: AsyncSession, ref: UnitRef) -> Unit:
    """Load the unit a reference points at. Always reads the stored state."""
    if ref.kind == UnitKind.SCHOOL:
        result = await db.execute(
            select(School).where(School.id == ref.id).execution_options(populate_existing=True)
        )
        school = result.scalar_one_or_none()
        if not school:
            raise NotFoundError("School not found", entity="School", entity_id=ref.id)
        if school.school_group_id is not None:
            raise ValidationError(
                f"{school.school_name} belongs to a group and must be matched through its group",
                entity="School",
                entity_id=school.id,
                rule="school_in_group",
            )
        return Unit(kind=UnitKind.SCHOOL, id=school.id, name=school.school_name, schools=[school])

    result = await db.execute(
        select(SchoolGroup).where(SchoolGroup.id == ref.id).execution_options(populate_existing=True)
    )
    group = result.scalar_one_or_none()
    if not group:
        raise NotFoundError("School group not found", entity="SchoolGroup", entity_id=ref.id)
    members = await get_group_members(db, group.id)
    return Unit(kind=UnitKind.GROUP, id=group.id, name=group.name, schools=members, group=group)


async def load_roster(db: AsyncSession, unit: Unit) -> List[Student]:
    """Active, profile-complete students of every member school, in registration order."""
    if not unit.schools:
        return []
    result = await db.execute(
        select(Student)
        .where(
            Student.school_id.in_(unit.school_ids),
            Student.is_active.is_(True),
            Student.profile_completed.is_(True),
        )
        .order_by(Student.created_at, Student.id)
    )
    return list(result.scalars().all())


def match_type_for(unit1: Unit, unit2: Unit) -> MatchType:
    kinds = {unit1.kind, unit2.kind}
    if kinds == {UnitKind.SCHOOL}:
        return MatchType.SCHOOL_SCHOOL
    if kinds == {UnitKind.GROUP}:
        return MatchType.GROUP_GROUP
    return MatchType.GROUP_SCHOOL
