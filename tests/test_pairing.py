from uuid import uuid4

import pytest

from app.api.v1.penpals.pairing import (
    PairingCandidate,
    pair_score,
    pair_students,
    penpal_counts,
    plan_capacities,
    summarize_pairings,
)
from app.core.enums import PenpalPreference
from app.core.exceptions import EmptyRosterError


def roster(count, *, multiple=0, grade="4", interests=None):
    school_id = uuid4()
    students = []
    for i in range(count):
        students.append(
            PairingCandidate(
                id=uuid4(),
                first_name=f"Kid{i}",
                last_initial="Q",
                grade=grade,
                school_id=school_id,
                interests=tuple(interests[i]) if interests else (),
                preference=PenpalPreference.MULTIPLE if i < multiple else PenpalPreference.ONE,
            )
        )
    return students


def test_equal_rosters_of_one_preference_pair_one_to_one():
    a, b = roster(5), roster(5)
    edges = pair_students(a, b)
    counts = penpal_counts(edges)

    assert len(edges) == 5
    assert all(counts[s.id] == 1 for s in a + b)
    assert {e.student_id for e in edges} == {s.id for s in a}
    assert {e.penpal_id for e in edges} == {s.id for s in b}


def test_multiple_preference_absorbs_larger_opposite_roster():
    a = roster(3, multiple=2)
    b = roster(5)
    edges = pair_students(a, b)
    counts = penpal_counts(edges)

    assert all(counts[s.id] == 1 for s in b)
    assert [counts[s.id] for s in a] == [2, 2, 1]
    assert len(edges) == 5


def test_coverage_pass_gives_every_student_a_penpal():
    a, b = roster(5), roster(3)
    edges = pair_students(a, b)
    counts = penpal_counts(edges)

    assert all(counts[s.id] >= 1 for s in a + b)
    assert len(edges) == 5
    assert sum(counts[s.id] for s in b) == 5


def test_coverage_prefers_multiple_preference_partners():
    a = roster(4)
    b = roster(2, multiple=1)
    edges = pair_students(a, b)
    counts = penpal_counts(edges)
    assert counts[b[0].id] == 3
    assert counts[b[1].id] == 1


def test_no_duplicate_or_self_edges():
    a, b = roster(4, multiple=2), roster(7, multiple=3)
    edges = pair_students(a, b)
    pairs = [(e.student_id, e.penpal_id) for e in edges]
    assert len(pairs) == len(set(pairs))
    assert all(e.student_id != e.penpal_id for e in edges)


@pytest.mark.parametrize("first,second", [(0, 3), (3, 0)])
def test_empty_roster_is_rejected(first, second):
    with pytest.raises(EmptyRosterError) as exc:
        pair_students(roster(first), roster(second))
    assert exc.value.status_code == 422
    assert exc.value.rule == "empty_roster"


def test_shared_interests_drive_the_pairing():
    a = roster(2, interests=[["chess"], ["music", "soccer"]])
    b = roster(2, interests=[["art"], ["soccer", "music"]])
    edges = pair_students(a, b)
    by_student = {e.student_id: e for e in edges}

    best = by_student[a[1].id]
    assert best.penpal_id == b[1].id
    assert best.match_score == 25
    assert best.shared_interests == ("music", "soccer")


def test_pair_score_grade_bonuses():
    (same,) = roster(1, grade="4")
    (adjacent,) = roster(1, grade="5")
    (far,) = roster(1, grade="7")
    (odd,) = roster(1, grade="K")
    assert pair_score(same, same) == 5
    assert pair_score(same, adjacent) == 2
    assert pair_score(same, far) == 0
    assert pair_score(same, odd) == 0


def test_plan_capacities_splits_extra_among_multiple_students():
    students = roster(4, multiple=3)
    caps = plan_capacities(students, 9)
    assert [caps[s.id] for s in students] == [3, 3, 2, 1]


def test_plan_capacities_without_multiple_students_is_one_each():
    students = roster(2)
    assert set(plan_capacities(students, 10).values()) == {1}


def test_summary_counts_both_sides():
    a, b = roster(3, multiple=2), roster(5)
    edges = pair_students(a, b)
    summary = summarize_pairings(edges, a, b)

    assert summary.total_matches == 5
    assert summary.side_a_with_penpals == 3
    assert summary.side_b_with_penpals == 5
    assert summary.side_a_without_penpals == 0
    assert summary.average_match_score == 5.0
    assert [d.penpal_count for d in summary.side_a_distribution] == [2, 2, 1]
    assert summary.side_a_distribution[0].name == "Kid0 Q."
