"""Selection of the next code to activate.

Unused codes are ranked by ``order`` and then by ``id`` so the choice does not
depend on insertion or storage order.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from api.models.schemas import (
    CodeRecord,
    CodeWithStatus,
    NextCandidateResult,
    NextCandidateSummary,
    utcnow,
)
from ledger.status import unused_codes


def _rank(code: CodeWithStatus):
    return (code.order, code.id)


def unused_codes_sorted(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> List[CodeWithStatus]:
    return sorted(unused_codes(codes, now), key=_rank)


def next_candidate(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> Optional[CodeWithStatus]:
    ranked = unused_codes_sorted(codes, now)
    return ranked[0] if ranked else None


def get_next_candidate(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> NextCandidateResult:
    candidate = next_candidate(codes, now)
    return NextCandidateResult(has_candidate=candidate is not None, candidate=candidate)


def next_candidate_summary(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> NextCandidateSummary:
    """Compact view for the overview screen."""

    ranked = unused_codes_sorted(codes, now or utcnow())
    if not ranked:
        return NextCandidateSummary(has_candidate=False)
    head = ranked[0]
    return NextCandidateSummary(
        has_candidate=True,
        candidate_code=head.code,
        candidate_order=head.order,
        remaining_unused_count=len(ranked),
    )
