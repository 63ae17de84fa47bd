"""
Greedy suggestion of school pairs from a pool of ready schools.

The result depends on input order and is not globally optimal: each school, in
turn, takes its best-scoring unprocessed partner (first encountered wins ties).
Read-only; suggestions never create matches.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set
from uuid import UUID

from .scoring import CompatibilityBreakdown, SchoolProfile, explain_compatibility


@dataclass(frozen=True)
class ScoredPair:
    first: SchoolProfile
    second: SchoolProfile
    breakdown: CompatibilityBreakdown

    @property
    def score(self) -> int:
        return self.breakdown.score


@dataclass
class SuggestionRun:
    pairs: List[ScoredPair] = field(default_factory=list)
    candidate_count: int = 0
    unpaired: List[SchoolProfile] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def paired_count(self) -> int:
        return 2 * len(self.pairs)


def suggest_matches(candidates: Sequence[SchoolProfile], min_candidates: int = 2) -> SuggestionRun:
    if len(candidates) < max(2, min_candidates):
        return SuggestionRun(
            candidate_count=len(candidates),
            unpaired=list(candidates),
            message=f"Need at least {max(2, min_candidates)} schools ready for matching (found {len(candidates)})",
        )

    processed: Set[UUID] = set()
    pairs: List[ScoredPair] = []
    for school in candidates:
        if school.id in processed:
            continue
        best: Optional[ScoredPair] = None
        for other in candidates:
            if other.id == school.id or other.id in processed:
                continue
            breakdown = explain_compatibility(school, other)
            if breakdown.score <= 0:
                continue
            if best is None or breakdown.score > best.score:
                best = ScoredPair(school, other, breakdown)
        if best is not None:
            pairs.append(best)
            processed.add(school.id)
            processed.add(best.second.id)

    pairs.sort(key=lambda p: p.score, reverse=True)
    unpaired = [c for c in candidates if c.id not in processed]
    return SuggestionRun(
        pairs=pairs,
        candidate_count=len(candidates),
        unpaired=unpaired,
        message=f"Suggested {len(pairs)} pair(s) from {len(candidates)} ready schools",
    )
