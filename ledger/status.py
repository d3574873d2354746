"""Lifecycle status of a promo code at a reference instant.

A code that was activated leaves deadline tracking for good: past its input
deadline it is ``active`` or ``consumed``, never ``expired``. Both boundaries
are inclusive, so a code is still ``unused`` (or ``active``) at the exact
instant of its deadline (or expiry).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from api.models.schemas import CodeRecord, CodeStatus, CodeWithStatus, utcnow


def determine_status(code: CodeRecord, now: Optional[datetime] = None) -> CodeStatus:
    """Return the status of ``code`` at ``now`` (defaults to the current time)."""

    now = now or utcnow()
    if code.started_at is not None and code.expires_at is not None:
        return CodeStatus.ACTIVE if now <= code.expires_at else CodeStatus.CONSUMED
    return CodeStatus.UNUSED if now <= code.input_deadline else CodeStatus.EXPIRED


def attach_status(code: CodeRecord, now: Optional[datetime] = None) -> CodeWithStatus:
    return CodeWithStatus(**code.model_dump(exclude={"status"}), status=determine_status(code, now))


def attach_status_to_all(
    codes: Sequence[CodeRecord], now: Optional[datetime] = None
) -> List[CodeWithStatus]:
    now = now or utcnow()
    return [attach_status(code, now) for code in tuple(codes)]


def filter_by_status(
    codes: Sequence[CodeRecord], status: CodeStatus, now: Optional[datetime] = None
) -> List[CodeWithStatus]:
    return [code for code in attach_status_to_all(codes, now) if code.status == status]


def active_codes(codes: Sequence[CodeRecord], now: Optional[datetime] = None) -> List[CodeWithStatus]:
    return filter_by_status(codes, CodeStatus.ACTIVE, now)


def unused_codes(codes: Sequence[CodeRecord], now: Optional[datetime] = None) -> List[CodeWithStatus]:
    return filter_by_status(codes, CodeStatus.UNUSED, now)


def consumed_codes(codes: Sequence[CodeRecord], now: Optional[datetime] = None) -> List[CodeWithStatus]:
    return filter_by_status(codes, CodeStatus.CONSUMED, now)


def expired_codes(codes: Sequence[CodeRecord], now: Optional[datetime] = None) -> List[CodeWithStatus]:
    return filter_by_status(codes, CodeStatus.EXPIRED, now)


def is_usable(code: CodeRecord, now: Optional[datetime] = None) -> bool:
    """Unused or active."""

    return determine_status(code, now) in (CodeStatus.UNUSED, CodeStatus.ACTIVE)


def is_finished(code: CodeRecord, now: Optional[datetime] = None) -> bool:
    """Consumed or expired."""

    return determine_status(code, now) in (CodeStatus.CONSUMED, CodeStatus.EXPIRED)
