"""Filtering and ordering of status-annotated code lists."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from api.models.schemas import CodeSortKey, CodeStatus, CodeWithStatus, SortDirection

STATUS_RANK = {
    CodeStatus.ACTIVE: 0,
    CodeStatus.UNUSED: 1,
    CodeStatus.CONSUMED: 2,
    CodeStatus.EXPIRED: 3,
}

_SORT_KEYS = {
    CodeSortKey.ORDER: lambda code: code.order,
    CodeSortKey.INPUT_DEADLINE: lambda code: code.input_deadline,
    CodeSortKey.STATUS: lambda code: STATUS_RANK[code.status],
    CodeSortKey.CREATED_AT: lambda code: code.created_at,
}


def apply_filter(
    codes: Sequence[CodeWithStatus],
    now: datetime,
    statuses: Optional[Iterable[CodeStatus]] = None,
    deadline_within_days: Optional[int] = None,
) -> List[CodeWithStatus]:
    """Keep codes whose status is listed and whose deadline falls within the window."""

    result = list(codes)
    wanted = set(statuses or ())
    if wanted:
        result = [code for code in result if code.status in wanted]
    if deadline_within_days is not None:
        limit = now + timedelta(days=deadline_within_days)
        result = [code for code in result if code.input_deadline <= limit]
    return result


def apply_sort(
    codes: Sequence[CodeWithStatus],
    key: CodeSortKey = CodeSortKey.ORDER,
    direction: SortDirection = SortDirection.ASC,
) -> List[CodeWithStatus]:
    return sorted(codes, key=_SORT_KEYS[key], reverse=direction == SortDirection.DESC)
