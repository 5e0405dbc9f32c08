"""Regex-based entity detection for OCR text (English and German)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

logger = logging.getLogger(__name__)

MONTHS: dict[str, int] = {
    # English
    "january": 1,
    "jan": 1,
    "february": 2,
    "feb": 2,
    "march": 3,
    "mar": 3,
    "april": 4,
    "apr": 4,
    "may": 5,
    "june": 6,
    "jun": 6,
    "july": 7,
    "jul": 7,
    "august": 8,
    "aug": 8,
    "september": 9,
    "sept": 9,
    "sep": 9,
    "october": 10,
    "oct": 10,
    "november": 11,
    "nov": 11,
    "december": 12,
    "dec": 12,
    # German
    "januar": 1,
    "jänner": 1,
    "februar": 2,
    "märz": 3,
    "maerz": 3,
    "mär": 3,
    "mai": 5,
    "juni": 6,
    "juli": 7,
    "oktober": 10,
    "okt": 10,
    "dezember": 12,
    "dez": 12,
}
MEDIUM_MONTH_NAMES = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_MONTH_ALTERNATION = "|".join(
    re.escape(name) for name in sorted(MONTHS, key=len, reverse=True)
)

DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # March 3, 2024 / Mar 3rd 2024 / März 3 2024
    re.compile(
        rf"\b(?P<month>{_MONTH_ALTERNATION})\.?\s+(?P<day>\d{{1,2}})"
        rf"(?:st|nd|rd|th)?\b,?(?:\s+(?P<year>\d{{4}})\b)?",
        re.IGNORECASE,
    ),
    # 3 March 2024 / 3. März 2024 / 3rd of March
    re.compile(
        rf"\b(?P<day>\d{{1,2}})(?:\.|st|nd|rd|th)?\s+(?:of\s+)?"
        rf"(?P<month>{_MONTH_ALTERNATION})\b\.?,?(?:\s+(?P<year>\d{{4}})\b)?",
        re.IGNORECASE,
    ),
    # 2024-03-03
    re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\b"),
    # 03/03/2024 (US order)
    re.compile(r"\b(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})\b"),
    # 03.03.2024 (German order)
    re.compile(r"\b(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4})\b"),
)

AMOUNT_PATTERN = re.compile(
    r"[$€£]\s*\d+[.,]?\d*|\d+[.,]\d+\s*(?:USD|EUR|GBP)", re.IGNORECASE
)

PHONE_PATTERN = re.compile(
    r"""
    (?<![\w+])
    (?:
        \+\d{1,3}[\s.-]?(?:\(\d{1,4}\)[\s.-]?)?\d{1,4}(?:[\s.-]?\d{2,4}){1,4}
      | \(\d{3}\)\s?\d{3}[\s.-]\d{4}
      | \d{3}[.-]\d{3}[.-]\d{4}
      | 0\d{2,4}[\s/-]?\d{3,8}(?:[\s-]\d{2,4})?
    )
    (?!\w)
    """,
    re.VERBOSE,
)
PHONE_MIN_DIGITS = 7
PHONE_MAX_DIGITS = 15


@dataclass(frozen=True)
class DateMatch:
    start: int
    end: int
    value: date
    text: str


def format_medium_date(value: date) -> str:
    """Format a date in medium style, e.g. ``Mar 3, 2024``."""
    return f"{MEDIUM_MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


def _resolve_month(raw: str) -> int:
    if raw.isdigit():
        return int(raw)
    return MONTHS[raw.lower()]


def find_dates(
    text: str, *, limit: int | None = None, reference: date | None = None
) -> list[DateMatch]:
    """Return non-overlapping dates in text order.

    A missing year resolves to the year of ``reference`` (today by default).
    Invalid calendar dates such as ``Feb 30`` are skipped.
    """
    default_year = (reference or date.today()).year
    candidates: list[DateMatch] = []

    for pattern in DATE_PATTERNS:
        for match in pattern.finditer(text):
            year = match.group("year")
            try:
                value = date(
                    int(year) if year else default_year,
                    _resolve_month(match.group("month")),
                    int(match.group("day")),
                )
            except (KeyError, ValueError):
                continue
            candidates.append(
                DateMatch(match.start(), match.end(), value, match.group(0))
            )

    # Earliest start wins; on equal starts prefer the longer match.
    candidates.sort(key=lambda item: (item.start, -item.end))
    selected: list[DateMatch] = []
    last_end = -1
    for candidate in candidates:
        if candidate.start < last_end:
            continue
        selected.append(candidate)
        last_end = candidate.end
        if limit is not None and len(selected) >= limit:
            break
    return selected


def find_amounts(text: str, *, limit: int | None = None) -> list[str]:
    """Return monetary amounts such as ``$42.50`` or ``19,99 EUR``."""
    amounts = [match.group(0).strip() for match in AMOUNT_PATTERN.finditer(text)]
    return amounts[:limit] if limit is not None else amounts


def _overlaps(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def find_phone_numbers(
    text: str,
    *,
    limit: int | None = None,
    exclude_spans: list[tuple[int, int]] | None = None,
) -> list[str]:
    """Return phone numbers with 7 to 15 digits, skipping excluded spans."""
    exclude_spans = exclude_spans or []
    phones: list[str] = []
    for match in PHONE_PATTERN.finditer(text):
        if _overlaps(match.start(), match.end(), exclude_spans):
            continue
        digit_count = sum(char.isdigit() for char in match.group(0))
        if not PHONE_MIN_DIGITS <= digit_count <= PHONE_MAX_DIGITS:
            continue
        phones.append(match.group(0).strip())
        if limit is not None and len(phones) >= limit:
            break
    return phones
