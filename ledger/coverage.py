"""Continuous coverage across the intervals of active codes.

Every active code contributes the closed interval ``[started_at, expires_at]``.
Starting from the intervals that contain ``now``, coverage extends to the right
through any interval that starts at or before the current coverage end, so
touching and overlapping intervals are both contiguous. Only a strict gap
stops the chain, and the gap is reported at the coverage boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from api.models.schemas import CodeRecord, CoverageResult, utcnow
from ledger.status import active_codes

_MINUTE = timedelta(minutes=1)


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


def extract_intervals(codes: Sequence[CodeRecord], now: datetime) -> List[Interval]:
    """Intervals of the codes that are active at ``now``, sorted by start."""

    intervals = [
        Interval(start=code.started_at, end=code.expires_at)
        for code in active_codes(codes, now)
        if code.started_at is not None and code.expires_at is not None
    ]
    return sorted(intervals, key=lambda interval: interval.start)


def merge_forward(
    intervals: Sequence[Interval], now: datetime
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Return ``(coverage_end, gap_start)`` for the chain anchored at ``now``.

    ``coverage_end`` is ``None`` when no interval contains ``now``.
    """

    containing = [index for index, interval in enumerate(intervals) if interval.contains(now)]
    if not containing:
        return None, None

    coverage_end = max(intervals[index].end for index in containing)
    used = set(containing)

    extended = True
    while extended:
        extended = False
        for index, interval in enumerate(intervals):
            if index in used or interval.start > coverage_end:
                continue
            used.add(index)
            if interval.end > coverage_end:
                coverage_end = interval.end
                extended = True

    has_gap = any(
        index not in used and interval.start > coverage_end
        for index, interval in enumerate(intervals)
    )
    return coverage_end, (coverage_end if has_gap else None)


def calculate_coverage(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> CoverageResult:
    """Compute the coverage window reaching forward from ``now``."""

    now = now or utcnow()
    coverage_end, gap_start = merge_forward(extract_intervals(tuple(codes), now), now)
    if coverage_end is None:
        return CoverageResult(has_coverage=False)

    remaining_minutes = max(0, (coverage_end - now) // _MINUTE)
    return CoverageResult(
        has_coverage=True,
        coverage_end=coverage_end,
        remaining_minutes=remaining_minutes,
        has_gap=gap_start is not None,
        gap_start=gap_start,
    )
