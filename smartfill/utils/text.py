"""Text normalization shared by the alias tables, the profile and the matchers.

Every comparison in the package goes through :func:`normalize_text` so that a
value typed by the user, a variant stored in an alias table and an option
rendered by a site are compared in the same shape: case folded, accents
stripped from latin letters, apostrophes dropped, thousands separators removed
and every run of punctuation collapsed to a single space.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, FrozenSet, List, Tuple

_APOSTROPHES = re.compile(r"['’‘`]")
_THOUSANDS = re.compile(r"(?<=\d),(?=\d{3}\b)")
_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

STOPWORDS: FrozenSet[str] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "has", "his", "how", "its",
        "may", "who", "did", "get", "yes", "with", "from", "this", "that",
        "your", "have", "what", "which", "will", "would", "there", "their",
        "please", "select", "choose", "option", "other", "none",
    }
)


def _fold_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    kept: List[str] = []
    for char in decomposed:
        if unicodedata.combining(char) and kept and ord(kept[-1]) < 128:
            continue
        kept.append(char)
    return unicodedata.normalize("NFC", "".join(kept))


def normalize_text(value: Any) -> str:
    """Return ``value`` as a lower-case, punctuation-free, single-spaced string."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = _fold_accents(str(value)).casefold()
    text = _APOSTROPHES.sub("", text)
    text = _THOUSANDS.sub("", text)
    return _NON_WORD.sub(" ", text).strip()


def tokenize(value: Any) -> Tuple[str, ...]:
    return tuple(normalize_text(value).split())


def keywords(value: Any) -> FrozenSet[str]:
    """Tokens longer than two characters that are not stopwords."""

    return frozenset(token for token in tokenize(value) if len(token) > 2 and token not in STOPWORDS)


def humanize_identifier(value: Any) -> str:
    """Turn ``firstName`` / ``first_name`` / ``first-name`` into ``first name``."""

    if value is None:
        return ""
    text = _CAMEL_BOUNDARY.sub(" ", str(value))
    return normalize_text(text)


def fold_key(value: Any) -> str:
    """Collapse a raw profile key so ``firstName`` and ``first_name`` compare equal."""

    return re.sub(r"[\s_\-.]+", "", str(value)).casefold()


def contains_phrase(haystack: Tuple[str, ...], needle: Tuple[str, ...]) -> bool:
    """True when ``needle`` occurs as a contiguous run of whole tokens in ``haystack``."""

    if not needle or len(needle) > len(haystack):
        return False
    width = len(needle)
    return any(haystack[start : start + width] == needle for start in range(len(haystack) - width + 1))
