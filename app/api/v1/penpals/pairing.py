"""
Student pen pal assignment between the rosters of two matched units.

Every student starts with a capacity of one pen pal. When the opposite roster is
larger, the surplus is shared evenly among the students who asked for MULTIPLE
pen pals (remainder to the first of them in roster order), so ONE-preference
students are never starved. Pairs are then taken greedily by score: 10 per shared
interest, +5 for the same grade, +2 for adjacent grades. Ties keep roster order.

A final coverage pass gives any student still without a pen pal one partner from
the other side, preferring MULTIPLE-preference students, then the least loaded,
then the best score. This is the only case where a ONE-preference student ends up
with more than one pen pal: the other roster is too small to cover everyone.

Edges are oriented from roster A to roster B.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from app.core.enums import PenpalPreference
from app.core.exceptions import EmptyRosterError

SHARED_INTEREST_POINTS = 10
SAME_GRADE_BONUS = 5
ADJACENT_GRADE_BONUS = 2
TOP_SHARED_INTERESTS = 5


@dataclass(frozen=True)
class PairingCandidate:
    id: UUID
    first_name: str
    last_initial: str
    grade: str
    school_id: UUID
    interests: Tuple[str, ...] = ()
    preference: PenpalPreference = PenpalPreference.ONE

    @classmethod
    def from_student(cls, student) -> "PairingCandidate":
        preference = (
            PenpalPreference.MULTIPLE
            if student.penpal_preference == PenpalPreference.MULTIPLE.value
            else PenpalPreference.ONE
        )
        return cls(
            id=student.id,
            first_name=student.first_name,
            last_initial=student.last_initial,
            grade=student.grade,
            school_id=student.school_id,
            interests=tuple(student.interests or ()),
            preference=preference,
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_initial}."

    @property
    def wants_multiple(self) -> bool:
        return self.preference == PenpalPreference.MULTIPLE


@dataclass(frozen=True)
class PairingEdge:
    student_id: UUID
    penpal_id: UUID
    match_score: int
    shared_interests: Tuple[str, ...] = ()


@dataclass
class StudentDistribution:
    student_id: UUID
    name: str
    penpal_count: int
    preference: PenpalPreference


@dataclass
class PairingSummary:
    total_matches: int
    average_match_score: float
    side_a_with_penpals: int
    side_b_with_penpals: int
    side_a_without_penpals: int
    side_b_without_penpals: int
    top_shared_interests: List[str] = field(default_factory=list)
    side_a_distribution: List[StudentDistribution] = field(default_factory=list)
    side_b_distribution: List[StudentDistribution] = field(default_factory=list)


def _parse_grade(grade: Optional[str]) -> Optional[int]:
    try:
        return int(str(grade).strip())
    except (TypeError, ValueError):
        return None


def shared_interests(a: PairingCandidate, b: PairingCandidate) -> Tuple[str, ...]:
    theirs = set(b.interests)
    seen = set()
    shared = []
    for interest in a.interests:
        if interest in theirs and interest not in seen:
            shared.append(interest)
            seen.add(interest)
    return tuple(shared)


def pair_score(a: PairingCandidate, b: PairingCandidate) -> int:
    score = SHARED_INTEREST_POINTS * len(shared_interests(a, b))
    grade_a, grade_b = _parse_grade(a.grade), _parse_grade(b.grade)
    if grade_a is not None and grade_b is not None:
        diff = abs(grade_a - grade_b)
        if diff == 0:
            score += SAME_GRADE_BONUS
        elif diff == 1:
            score += ADJACENT_GRADE_BONUS
    return score


def plan_capacities(roster: Sequence[PairingCandidate], opposite_size: int) -> Dict[UUID, int]:
    """How many pen pals each student of one side may receive before the coverage pass."""
    capacities = {s.id: 1 for s in roster}
    multiple = [s for s in roster if s.wants_multiple]
    extra = max(0, max(len(roster), opposite_size) - len(roster))
    if not multiple or extra == 0:
        return capacities
    per_student, remainder = divmod(extra, len(multiple))
    for index, student in enumerate(multiple):
        bonus = per_student + (1 if index < remainder else 0)
        capacities[student.id] = min(1 + bonus, max(1, opposite_size))
    return capacities


def _coverage_partner(
    student: PairingCandidate,
    opposite: Sequence[PairingCandidate],
    load: Dict[UUID, int],
) -> PairingCandidate:
    ranked = sorted(
        enumerate(opposite),
        key=lambda item: (
            not item[1].wants_multiple,
            load[item[1].id],
            -pair_score(student, item[1]),
            item[0],
        ),
    )
    return ranked[0][1]


def pair_students(
    roster_a: Sequence[PairingCandidate],
    roster_b: Sequence[PairingCandidate],
) -> List[PairingEdge]:
    """Assign pen pals between two rosters. Raises EmptyRosterError before doing anything if either is empty.

    Every student ends with at least one pen pal. When the other roster is too
    small for that, the coverage pass gives some students on it a second edge
    even if they asked for ONE.
    """
    if not roster_a or not roster_b:
        side = "first" if not roster_a else "second"
        raise EmptyRosterError(
            f"The {side} unit has no active students with completed profiles",
            rule="empty_roster",
        )

    caps_a = plan_capacities(roster_a, len(roster_b))
    caps_b = plan_capacities(roster_b, len(roster_a))
    load: Dict[UUID, int] = {s.id: 0 for s in list(roster_a) + list(roster_b)}

    scored = [
        (pair_score(a, b), i, j)
        for i, a in enumerate(roster_a)
        for j, b in enumerate(roster_b)
    ]
    scored.sort(key=lambda item: item[0], reverse=True)

    edges: List[PairingEdge] = []
    for score, i, j in scored:
        a, b = roster_a[i], roster_b[j]
        if load[a.id] < caps_a[a.id] and load[b.id] < caps_b[b.id]:
            edges.append(PairingEdge(a.id, b.id, score, shared_interests(a, b)))
            load[a.id] += 1
            load[b.id] += 1

    for a in roster_a:
        if load[a.id] == 0:
            b = _coverage_partner(a, roster_b, load)
            edges.append(PairingEdge(a.id, b.id, pair_score(a, b), shared_interests(a, b)))
            load[a.id] += 1
            load[b.id] += 1
    for b in roster_b:
        if load[b.id] == 0:
            a = _coverage_partner(b, roster_a, load)
            edges.append(PairingEdge(a.id, b.id, pair_score(a, b), shared_interests(a, b)))
            load[a.id] += 1
            load[b.id] += 1

    return edges


def penpal_counts(edges: Sequence[PairingEdge]) -> Counter:
    """Pen pals per student, counting both edge directions."""
    counts: Counter = Counter()
    for edge in edges:
        counts[edge.student_id] += 1
        counts[edge.penpal_id] += 1
    return counts


def summarize_pairings(
    edges: Sequence[PairingEdge],
    roster_a: Sequence[PairingCandidate],
    roster_b: Sequence[PairingCandidate],
) -> PairingSummary:
    counts = penpal_counts(edges)
    interest_counts: Counter = Counter()
    for edge in edges:
        interest_counts.update(edge.shared_interests)

    def distribution(roster):
        return [StudentDistribution(s.id, s.display_name, counts.get(s.id, 0), s.preference) for s in roster]

    with_a = sum(1 for s in roster_a if counts.get(s.id, 0) > 0)
    with_b = sum(1 for s in roster_b if counts.get(s.id, 0) > 0)
    return PairingSummary(
        total_matches=len(edges),
        average_match_score=(sum(e.match_score for e in edges) / len(edges)) if edges else 0.0,
        side_a_with_penpals=with_a,
        side_b_with_penpals=with_b,
        side_a_without_penpals=len(roster_a) - with_a,
        side_b_without_penpals=len(roster_b) - with_b,
        top_shared_interests=[name for name, _ in interest_counts.most_common(TOP_SHARED_INTERESTS)],
        side_a_distribution=distribution(roster_a),
        side_b_distribution=distribution(roster_b),
    )
