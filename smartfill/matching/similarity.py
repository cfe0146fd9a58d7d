"""Deterministic string similarity measures on normalized text.

All scores are floats in ``[0, 1]`` and depend only on their string inputs.
"""
from __future__ import annotations

from typing import Any

from rapidfuzz.distance import Levenshtein

from ..utils.text import keywords, normalize_text, tokenize


def edit_similarity(left: Any, right: Any) -> float:
    """Normalized Levenshtein similarity (1.0 for equal normalized strings)."""

    a, b = normalize_text(left), normalize_text(right)
    if not a or not b:
        return 0.0
    return float(Levenshtein.normalized_similarity(a, b))


def token_jaccard(left: Any, right: Any) -> float:
    a, b = set(tokenize(left)), set(tokenize(right))
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def keyword_overlap(source: Any, target: Any) -> float:
    """Share of ``target``'s keywords that also occur in ``source``."""

    wanted = keywords(target)
    if not wanted:
        return 0.0
    return len(keywords(source) & wanted) / len(wanted)


def combined_similarity(source: Any, target: Any) -> float:
    return max(edit_similarity(source, target), token_jaccard(source, target), keyword_overlap(source, target))
