"""Pure temporal logic over promo code records."""

from .candidate import get_next_candidate, next_candidate, next_candidate_summary, unused_codes_sorted
from .coverage import Interval, calculate_coverage
from .status import (
    active_codes,
    attach_status,
    attach_status_to_all,
    consumed_codes,
    determine_status,
    expired_codes,
    filter_by_status,
    is_finished,
    is_usable,
    unused_codes,
)

__all__ = [
    "Interval",
    "active_codes",
    "attach_status",
    "attach_status_to_all",
    "calculate_coverage",
    "consumed_codes",
    "determine_status",
    "expired_codes",
    "filter_by_status",
    "get_next_candidate",
    "is_finished",
    "is_usable",
    "next_candidate",
    "next_candidate_summary",
    "unused_codes",
    "unused_codes_sorted",
]
