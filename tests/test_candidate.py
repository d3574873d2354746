from __future__ import annotations

from datetime import timedelta

from ledger.candidate import (
    get_next_candidate,
    next_candidate,
    next_candidate_summary,
    unused_codes_sorted,
)
from ledger.status import attach_status_to_all
from tests.factories import BASE, day, make_code


def test_equal_order_breaks_tie_by_id() -> None:
    codes = [make_code("zzz", order=1), make_code("aaa", order=1)]

    candidate = next_candidate(codes, BASE)

    assert candidate is not None
    assert candidate.id == "aaa"


def test_lowest_order_wins_over_id() -> None:
    codes = [make_code("aaa", order=3), make_code("zzz", order=2)]

    assert next_candidate(codes, BASE).id == "zzz"


def test_only_unused_codes_are_candidates() -> None:
    codes = [
        make_code("expired", order=1, input_deadline=day(-1)),
        make_code("active", order=1, started_at=BASE - timedelta(hours=1)),
        make_code("unused", order=5),
    ]

    assert next_candidate(codes, BASE).id == "unused"


def test_no_candidate_when_nothing_unused() -> None:
    result = get_next_candidate([make_code("expired", input_deadline=day(-1))], BASE)

    assert result.has_candidate is False
    assert result.candidate is None
    assert next_candidate([], BASE) is None


def test_selection_is_independent_of_input_order_and_idempotent() -> None:
    codes = [make_code("b", order=2), make_code("c", order=1), make_code("a", order=1)]

    first = [c.id for c in unused_codes_sorted(codes, BASE)]
    second = [c.id for c in unused_codes_sorted(list(reversed(codes)), BASE)]

    assert first == second == ["a", "c", "b"]
    assert next_candidate(codes, BASE).id == next_candidate(codes, BASE).id == "a"


def test_summary_counts_remaining_unused() -> None:
    codes = [make_code("a", order=2, code="SECONDCODE01"), make_code("b", order=1, code="FIRSTCODE001")]
    summary = next_candidate_summary(codes, BASE)

    assert summary.has_candidate is True
    assert summary.candidate_code == "FIRSTCODE001"
    assert summary.candidate_order == 1
    assert summary.remaining_unused_count == 2


def test_status_views_are_accepted() -> None:
    views = attach_status_to_all([make_code("b", order=2), make_code("a", order=2)], BASE)

    assert next_candidate(views, BASE).id == "a"
