"""
Compatibility scoring between two schools.

Hard constraints (any failure scores 0, "incompatible"):
- schools must be in different regions
- schools must start in the same month
- grade levels must overlap

Soft scoring from a base of 100:
- identical grade sets +50, otherwise +10 per shared grade
- registered class sizes within 5 of each other +30, identical +20 more
- sizes further apart -50 (the score may go negative; callers treat <= 0 as no candidate)
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

BASE_SCORE = 100
EXACT_GRADE_BONUS = 50
PER_GRADE_OVERLAP_BONUS = 10
SIZE_TOLERANCE = 5
SIZE_MATCH_BONUS = 30
EXACT_SIZE_BONUS = 20
SIZE_MISMATCH_PENALTY = 50


def normalize_grades(grades: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(str(g).strip() for g in (grades or []) if str(g).strip())


@dataclass(frozen=True)
class SchoolProfile:
    """Snapshot of the school fields the scorer reads."""

    id: UUID
    name: str
    region: str
    start_month: str
    grade_levels: FrozenSet[str]
    student_count: int
    teacher_name: str = ""

    @classmethod
    def from_school(cls, school, student_count: int) -> "SchoolProfile":
        return cls(
            id=school.id,
            name=school.school_name,
            region=school.region,
            start_month=school.start_month,
            grade_levels=normalize_grades(school.grade_levels),
            student_count=student_count,
            teacher_name=school.teacher_name,
        )


@dataclass(frozen=True)
class CompatibilityBreakdown:
    score: int
    different_regions: bool
    same_start_month: bool
    shared_grades: Tuple[str, ...]
    size_difference: int
    reasons: List[str] = field(default_factory=list)

    @property
    def compatible(self) -> bool:
        return self.score > 0


def _sorted_grades(grades: Iterable[str]) -> Tuple[str, ...]:
    def key(g: str):
        return (0, int(g), g) if g.isdigit() else (1, 0, g)

    return tuple(sorted(grades, key=key))


def explain_compatibility(a: SchoolProfile, b: SchoolProfile) -> CompatibilityBreakdown:
    """Score two schools and record a human-readable reason for every rule that fired."""
    different_regions = a.region != b.region
    same_start_month = a.start_month == b.start_month
    shared = _sorted_grades(a.grade_levels & b.grade_levels)
    size_difference = abs(a.student_count - b.student_count)

    reasons: List[str] = []
    if not different_regions:
        reasons.append(f"Both schools are in the {a.region} region; cross-regional matches are required")
    if not same_start_month:
        reasons.append(f"Start months differ ({a.start_month} vs {b.start_month})")
    if not shared:
        reasons.append("No grade levels in common")
    if reasons:
        return CompatibilityBreakdown(0, different_regions, same_start_month, shared, size_difference, reasons)

    score = BASE_SCORE
    reasons.append(f"Different regions ({a.region} / {b.region})")
    reasons.append(f"Same start month ({a.start_month})")

    if a.grade_levels == b.grade_levels:
        score += EXACT_GRADE_BONUS
        reasons.append(f"Identical grade levels ({', '.join(shared)})")
    else:
        score += PER_GRADE_OVERLAP_BONUS * len(shared)
        reasons.append(f"{len(shared)} overlapping grade level(s) ({', '.join(shared)})")

    smaller = min(a.student_count, b.student_count)
    larger = max(a.student_count, b.student_count)
    if smaller + SIZE_TOLERANCE >= larger:
        score += SIZE_MATCH_BONUS
        if smaller == larger:
            score += EXACT_SIZE_BONUS
            reasons.append(f"Identical class sizes ({smaller} students)")
        else:
            reasons.append(f"Class sizes within {SIZE_TOLERANCE} ({a.student_count} vs {b.student_count})")
    else:
        score -= SIZE_MISMATCH_PENALTY
        reasons.append(f"Class sizes differ by {size_difference} ({a.student_count} vs {b.student_count})")

    return CompatibilityBreakdown(score, different_regions, same_start_month, shared, size_difference, reasons)


def compatibility_score(a: SchoolProfile, b: SchoolProfile) -> int:
    return explain_compatibility(a, b).score
