"""Utility helpers shared across smartfill."""

from .text import (
    STOPWORDS,
    contains_phrase,
    fold_key,
    humanize_identifier,
    keywords,
    normalize_text,
    tokenize,
)

__all__ = [
    "STOPWORDS",
    "contains_phrase",
    "fold_key",
    "humanize_identifier",
    "keywords",
    "normalize_text",
    "tokenize",
]
