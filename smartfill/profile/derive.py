"""Pure lookup and range functions used to derive profile leaves.

None of these functions raise on bad input; anything that cannot be parsed
comes back as ``None`` and the caller leaves the derived leaf empty.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Optional, Sequence, Tuple

from ..utils.text import normalize_text

AGE_RANGES: Tuple[Tuple[int, str], ...] = (
    (18, "Under 18"),
    (25, "18-24"),
    (35, "25-34"),
    (45, "35-44"),
    (55, "45-54"),
    (65, "55-64"),
)
AGE_RANGE_TOP = "65+"

INCOME_BRACKETS: Tuple[Tuple[int, str], ...] = (
    (25_000, "Under $25,000"),
    (50_000, "$25,000-$49,999"),
    (75_000, "$50,000-$74,999"),
    (100_000, "$75,000-$99,999"),
    (150_000, "$100,000-$149,999"),
)
INCOME_BRACKET_TOP = "$150,000+"

EXPERIENCE_LEVELS: Tuple[Tuple[float, str], ...] = (
    (2, "entry"),
    (5, "mid"),
    (10, "senior"),
)
EXPERIENCE_LEVEL_TOP = "lead"

GENERATIONS: Tuple[Tuple[int, str], ...] = (
    (2013, "Gen Alpha"),
    (1997, "Gen Z"),
    (1981, "Millennial"),
    (1965, "Gen X"),
    (1946, "Baby Boomer"),
    (1928, "Silent Generation"),
)
GENERATION_BOTTOM = "Greatest Generation"

MALE_FIRST_NAMES = frozenset({"john", "michael", "david", "robert", "james", "william", "richard"})
FEMALE_FIRST_NAMES = frozenset({"mary", "jennifer", "linda", "elizabeth", "barbara", "susan", "jessica"})
MAX_AGE = 130

_DATE_FORMATS: Sequence[str] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_MAGNITUDE = {"k": 1_000, "m": 1_000_000}


def parse_number(value: Any) -> Optional[float]:
    """Parse ``85000``, ``"85,000"``, ``"$85k"`` or ``"8 years"``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    text = str(value).strip().lower().replace(",", "")
    match = _NUMBER.search(text)
    if match is None:
        return None
    number = float(match.group(0)) * _MAGNITUDE.get(text[match.end() : match.end() + 1], 1)
    return number if math.isfinite(number) else None


def parse_year(value: Any) -> Optional[int]:
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    year = int(number)
    return year if 1900 <= year <= 2100 else None


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def age_on(birth_date: date, today: date) -> Optional[int]:
    age = today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))
    return age if 0 <= age <= MAX_AGE else None


def age_range(age: Optional[float]) -> Optional[str]:
    if age is None or age < 0:
        return None
    for upper, label in AGE_RANGES:
        if age < upper:
            return label
    return AGE_RANGE_TOP


def income_bracket(income: Optional[float]) -> Optional[str]:
    if income is None or income < 0:
        return None
    for upper, label in INCOME_BRACKETS:
        if income < upper:
            return label
    return INCOME_BRACKET_TOP


def experience_level(years: Optional[float]) -> Optional[str]:
    if years is None:
        return None
    if years < 0:
        return EXPERIENCE_LEVELS[0][1]
    for upper, label in EXPERIENCE_LEVELS:
        if years <= upper:
            return label
    return EXPERIENCE_LEVEL_TOP


def generation(birth_year: Optional[int]) -> Optional[str]:
    if birth_year is None:
        return None
    for lower, label in GENERATIONS:
        if birth_year >= lower:
            return label
    return GENERATION_BOTTOM


def gender_from_first_name(first_name: Any) -> Optional[str]:
    tokens = normalize_text(first_name).split()
    if not tokens:
        return None
    if tokens[0] in MALE_FIRST_NAMES:
        return "male"
    if tokens[0] in FEMALE_FIRST_NAMES:
        return "female"
    return None


def split_full_name(full_name: Any) -> Tuple[Optional[str], Optional[str]]:
    parts = str(full_name or "").split()
    if len(parts) < 2:
        return None, None
    return parts[0], parts[-1]
