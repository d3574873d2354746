"""Extraction of promo codes from pasted notification emails.

Emails often arrive as HTML tables that lose their layout when copied, so the
text is scanned line by line and headings are matched to nearby values.
Deadlines are written as ``YYYY年M月D日`` and are read as the last moment of
that day in Japan time.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from api.models.schemas import ParseEmailResponse, ParsedCode

logger = logging.getLogger(__name__)

JST = timezone(timedelta(hours=9), "JST")
DEFAULT_INPUT_DEADLINE_DAYS = 156
DEFAULT_VALIDITY_MINUTES = 7 * 24 * 60
SEARCH_RADIUS = 10

CODE_PATTERN = re.compile(r"\b[A-Z0-9]{10,20}\b", re.ASCII)
JAPANESE_DATE_PATTERN = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
SLASH_DATE_PATTERN = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})")
DEADLINE_HEADING = re.compile(r"(入力期限|有効期限|期限)")
VALIDITY_HEADING = re.compile(r"(データ使い放題|使い放題)")

KANJI_DIGITS = {"一": 1, "二": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 7, "八": 8, "九": 9, "十": 10}

VALIDITY_PATTERNS: Sequence[Tuple[re.Pattern, Callable[[str], int]]] = (
    (re.compile(r"(\d+)\s*日間?"), lambda value: int(value) * 24 * 60),
    (re.compile(r"(\d+)\s*時間"), lambda value: int(value) * 60),
    (re.compile(r"([一二三四五六七八九十]+)\s*時間"), lambda value: KANJI_DIGITS.get(value, 0) * 60),
)


def _end_of_day_jst(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, 23, 59, 59, 999000, tzinfo=JST)
    except ValueError:
        return None


def default_input_deadline(today: Optional[date] = None) -> datetime:
    today = today or datetime.now(JST).date()
    target = today + timedelta(days=DEFAULT_INPUT_DEADLINE_DAYS)
    return datetime(target.year, target.month, target.day, 23, 59, 59, 999000, tzinfo=JST)


def parse_japanese_date(text: str) -> Optional[datetime]:
    """``"2026年6月20日（金）"`` -> 2026-06-20 23:59:59.999 JST."""

    match = JAPANESE_DATE_PATTERN.search(text)
    if not match:
        return None
    return _end_of_day_jst(*(int(part) for part in match.groups()))


def parse_date_input(text: str) -> Optional[datetime]:
    """Parse a manually typed deadline in ISO, slash or Japanese form."""

    text = text.strip()
    for pattern in (ISO_DATE_PATTERN, SLASH_DATE_PATTERN):
        match = pattern.match(text)
        if match:
            return _end_of_day_jst(*(int(part) for part in match.groups()))
    return parse_japanese_date(text)


def extract_validity_minutes(text: str) -> Optional[int]:
    for pattern, to_minutes in VALIDITY_PATTERNS:
        match = pattern.search(text)
        if match:
            return to_minutes(match.group(1))
    return None


def parse_validity_input(text: str) -> Optional[int]:
    """Bare digits are minutes; anything else goes through the duration patterns."""

    stripped = text.strip()
    if stripped.isdigit():
        return int(stripped)
    return extract_validity_minutes(stripped)


def extract_codes(text: str) -> List[str]:
    """Code candidates in order of first appearance, without duplicates."""

    return list(dict.fromkeys(CODE_PATTERN.findall(text)))


def _window(lines: Sequence[str], index: int) -> Sequence[str]:
    start = max(0, index - SEARCH_RADIUS)
    return lines[start : index + SEARCH_RADIUS + 1]


def find_input_deadline(lines: Sequence[str], code_index: int) -> datetime:
    window_start = max(0, code_index - SEARCH_RADIUS)
    for offset, line in enumerate(_window(lines, code_index)):
        if not DEADLINE_HEADING.search(line):
            continue
        found = parse_japanese_date(line)
        if found is None:
            position = window_start + offset + 1
            if position < len(lines):
                found = parse_japanese_date(lines[position])
        if found is not None:
            return found

    for line in lines:
        found = parse_japanese_date(line)
        if found is not None:
            return found
    return default_input_deadline()


def find_validity_minutes(lines: Sequence[str], code_index: int) -> int:
    for line in _window(lines, code_index):
        if VALIDITY_HEADING.search(line):
            minutes = extract_validity_minutes(line)
            if minutes is not None:
                return minutes

    for line in lines:
        minutes = extract_validity_minutes(line)
        if minutes is not None:
            return minutes
    return DEFAULT_VALIDITY_MINUTES


def parse_email_text(text: str) -> List[ParsedCode]:
    lines = [line.strip() for line in re.split(r"\r?\n", text)]
    parsed: List[ParsedCode] = []
    for code in extract_codes(text):
        code_index = next((i for i, line in enumerate(lines) if code in line), 0)
        parsed.append(
            ParsedCode(
                code=code,
                input_deadline=find_input_deadline(lines, code_index),
                validity_duration_minutes=find_validity_minutes(lines, code_index),
            )
        )
    return parsed


def parse_email_for_registration(text: str) -> ParseEmailResponse:
    codes = parse_email_text(text)
    if not codes:
        return ParseEmailResponse(
            success=False,
            error="No promo code found. Paste text containing a 10-20 character alphanumeric code.",
        )
    logger.info("Parsed %d code(s) from email text", len(codes))
    return ParseEmailResponse(success=True, codes=codes)
