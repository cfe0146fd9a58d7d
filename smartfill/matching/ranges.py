"""Parse numeric ranges rendered as option text.

Handles the shapes seen on demographic and job forms: ``18-24``,
``25 to 34``, ``Under 18``, ``65+``, ``65 and over``, ``$25,000 - $49,999``,
``$25k-$49k`` and labels with a parenthesized range such as ``Senior (6-10)``.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

_NUMBER = re.compile(r"\$?\s*(\d+(?:\.\d+)?)(?:\s?([km])\b)?")
_THOUSANDS = re.compile(r"(?<=\d),(?=\d{3})")
_DASHES = re.compile(r"[‐-―−]")
_MAGNITUDE = {"k": 1_000.0, "m": 1_000_000.0}

_OPEN_ABOVE = re.compile(r"^\s*(?:\+|(?:and|or)\s+(?:over|above|older|more|up|greater)\b)")
_BELOW_EXCLUSIVE = re.compile(r"(?:under|less than|below|younger than|fewer than|lower than|<)\s*$")
_BELOW_INCLUSIVE = re.compile(r"(?:up to|at most|maximum of|max)\s*$")
_ABOVE_EXCLUSIVE = re.compile(r"(?:over|more than|above|older than|greater than|>)\s*$")
_JOINERS = frozenset({"-", "to", "through", "thru"})


@dataclass(frozen=True, slots=True)
class NumericRange:
    low: float = -math.inf
    high: float = math.inf
    low_inclusive: bool = True
    high_inclusive: bool = True

    def contains(self, value: float) -> bool:
        if value < self.low or (value == self.low and not self.low_inclusive):
            return False
        if math.isinf(self.high):
            return True
        if not self.high_inclusive:
            return value < self.high
        # Integer upper bounds cover the whole unit: "0-2" years includes 2.5.
        if float(self.high).is_integer():
            return value < self.high + 1
        return value <= self.high


def _numbers(text: str) -> List[Tuple[float, int, int]]:
    found: List[Tuple[float, int, int]] = []
    for match in _NUMBER.finditer(text):
        value = float(match.group(1)) * _MAGNITUDE.get(match.group(2) or "", 1.0)
        found.append((value, match.start(), match.end()))
    return found


def parse_range(text: Any) -> Optional[NumericRange]:
    """Return the numeric range described by ``text`` or ``None``."""

    if text is None:
        return None
    cleaned = _DASHES.sub("-", str(text).lower())
    cleaned = _THOUSANDS.sub("", cleaned)
    numbers = _numbers(cleaned)
    if not numbers:
        return None

    for (first, _, first_end), (second, second_start, _) in zip(numbers, numbers[1:]):
        joiner = cleaned[first_end:second_start].strip()
        between = joiner == "and" and "between" in cleaned[:first_end]
        if joiner in _JOINERS or between:
            low, high = sorted((first, second))
            return NumericRange(low=low, high=high)

    value, start, end = numbers[0]
    prefix, suffix = cleaned[:start], cleaned[end:]
    if _OPEN_ABOVE.match(suffix):
        return NumericRange(low=value)
    if _BELOW_INCLUSIVE.search(prefix):
        return NumericRange(high=value)
    if _BELOW_EXCLUSIVE.search(prefix):
        return NumericRange(high=value, high_inclusive=False)
    if _ABOVE_EXCLUSIVE.search(prefix):
        return NumericRange(low=value, low_inclusive=False)
    return None
