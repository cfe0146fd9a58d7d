"""Static alias tables mapping canonical domain values to their textual variants.

Tables live as JSON documents under ``smartfill/aliases/data`` (one file per
category) and are loaded once into immutable :class:`AliasTable` records. The
registry never does fuzzy matching: a needle resolves to a canonical key only
when it equals a variant or code, when a variant occurs as whole tokens inside
the needle, or when the needle occurs as whole tokens inside a variant.

Region tables (``state``) carry a ``parent`` country on every entry so that
colliding abbreviations (``WA`` for Washington and Western Australia) can be
disambiguated by the caller.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from ..utils.text import contains_phrase, normalize_text

logger = logging.getLogger(__name__)

# Variants shorter than this only match exactly; "in" or "ca" would otherwise
# hit half the table as substrings.
MIN_PHRASE_LENGTH = 3


@dataclass(frozen=True, slots=True)
class AliasEntry:
    """One canonical value and every spelling it is known by."""

    key: str
    variants: Tuple[str, ...] = ()
    codes: Tuple[str, ...] = ()
    parent: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AliasEntry":
        key = payload.get("key")
        if not isinstance(key, str) or not key.strip():
            raise ValueError(f"Alias entry requires a non-empty 'key': {payload!r}")
        variants = tuple(str(item) for item in payload.get("variants") or ())
        codes = tuple(str(item) for item in payload.get("codes") or ())
        parent = payload.get("parent")
        extra = payload.get("extra") or {}
        if not isinstance(extra, Mapping):
            raise ValueError(f"Alias entry 'extra' must be an object: {payload!r}")
        return cls(
            key=key.strip().lower(),
            variants=variants,
            codes=codes,
            parent=parent.strip().lower() if isinstance(parent, str) else None,
            extra=MappingProxyType(dict(extra)),
        )

    @property
    def subcategories(self) -> Tuple[str, ...]:
        return tuple(str(item) for item in self.extra.get("subcategories", ()))

    def spellings(self) -> List[str]:
        """Key, variants, subcategories and codes in table order, without duplicates."""

        seen: Dict[str, None] = {}
        for item in (self.key, *self.variants, *self.subcategories, *self.codes):
            seen.setdefault(item, None)
        return list(seen)


@dataclass(frozen=True, slots=True)
class AliasTable:
    category: str
    entries: Tuple[AliasEntry, ...]
    version: int = 1
    hierarchical: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AliasTable":
        category = payload.get("category")
        if not isinstance(category, str) or not category:
            raise ValueError("Alias table requires a 'category'")
        raw_entries = payload.get("entries")
        if not isinstance(raw_entries, list):
            raise ValueError(f"Alias table {category!r} requires an 'entries' list")
        entries = tuple(AliasEntry.from_dict(item) for item in raw_entries)
        keys = [entry.key for entry in entries]
        duplicates = {key for key in keys if keys.count(key) > 1}
        if duplicates:
            raise ValueError(f"Alias table {category!r} has duplicate keys: {sorted(duplicates)}")
        hierarchical = bool(payload.get("hierarchical")) or any(entry.parent for entry in entries)
        return cls(category=category, entries=entries, version=int(payload.get("version", 1)), hierarchical=hierarchical)

    def get(self, key: str) -> Optional[AliasEntry]:
        wanted = key.strip().lower()
        for entry in self.entries:
            if entry.key == wanted:
                return entry
        return None

    def keys(self) -> List[str]:
        return [entry.key for entry in self.entries]


@dataclass(frozen=True, slots=True)
class AliasHit:
    """A canonical key matched by :meth:`AliasRegistry.lookup`.

    ``specificity`` is the length of the normalized text that produced the
    match, so a hit on ``"part time"`` outranks a hit on ``"employed"``.
    """

    key: str
    specificity: int
    exact: bool
    matched: str


@dataclass(frozen=True, slots=True)
class _CompiledEntry:
    entry: AliasEntry
    exact: FrozenSet[str]
    phrases: Tuple[Tuple[str, Tuple[str, ...]], ...]


class AliasRegistry:
    """Read-only collection of alias tables keyed by category."""

    def __init__(self, tables: Iterable[AliasTable]) -> None:
        self._tables: Dict[str, AliasTable] = {}
        self._compiled: Dict[str, Tuple[_CompiledEntry, ...]] = {}
        for table in tables:
            if table.category in self._tables:
                raise ValueError(f"Duplicate alias table for category {table.category!r}")
            self._tables[table.category] = table
            self._compiled[table.category] = tuple(self._compile(entry) for entry in table.entries)

    @staticmethod
    def _compile(entry: AliasEntry) -> _CompiledEntry:
        exact = {normalize_text(entry.key)}
        exact.update(normalize_text(code) for code in entry.codes)
        phrases: Dict[str, Tuple[str, ...]] = {}
        for spelling in (entry.key, *entry.variants, *entry.subcategories):
            normalized = normalize_text(spelling)
            if not normalized:
                continue
            exact.add(normalized)
            if len(normalized) >= MIN_PHRASE_LENGTH:
                phrases.setdefault(normalized, tuple(normalized.split()))
        exact.discard("")
        return _CompiledEntry(entry=entry, exact=frozenset(exact), phrases=tuple(phrases.items()))

    @classmethod
    def load(cls, directory: Optional[Path] = None) -> "AliasRegistry":
        """Load every ``*.json`` table from ``directory`` (defaults to the packaged data)."""

        tables: List[AliasTable] = []
        if directory is not None:
            paths = sorted(Path(directory).glob("*.json"))
            documents = [(path.name, path.read_text(encoding="utf-8")) for path in paths]
        else:
            data_root = resources.files("smartfill.aliases").joinpath("data")
            documents = sorted(
                (item.name, item.read_text(encoding="utf-8"))
                for item in data_root.iterdir()
                if item.name.endswith(".json")
            )
        for name, text in documents:
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Alias table {name} is not valid JSON") from exc
            tables.append(AliasTable.from_dict(payload))
        logger.debug("Loaded alias tables", extra={"categories": [table.category for table in tables]})
        return cls(tables)

    def categories(self) -> List[str]:
        return sorted(self._tables)

    def table(self, category: str) -> AliasTable:
        try:
            return self._tables[category]
        except KeyError:
            raise ValueError(f"Unknown alias category: {category!r}") from None

    def entry(self, category: str, key: str) -> Optional[AliasEntry]:
        return self.table(category).get(key)

    def variants_of(self, category: str, key: str) -> List[str]:
        entry = self.entry(category, key)
        if entry is None:
            return []
        return entry.spellings()

    def code_for(self, category: str, key: str) -> Optional[str]:
        entry = self.entry(category, key)
        if entry is None or not entry.codes:
            return None
        return entry.codes[0]

    def lookup(self, category: str, needle: Any, *, parent: Optional[str] = None) -> List[AliasHit]:
        """Return every key matched by ``needle``, most specific first."""

        compiled = self._compiled.get(category)
        if compiled is None:
            raise ValueError(f"Unknown alias category: {category!r}")
        normalized = normalize_text(needle)
        if not normalized:
            return []

        hits = self._scan(compiled, normalized, parent)
        if not hits and parent is not None:
            # A region the parent table does not list still resolves globally.
            hits = self._scan(compiled, normalized, None)
        hits.sort(key=lambda hit: (not hit.exact, -hit.specificity))
        return hits

    @staticmethod
    def _scan(compiled: Tuple[_CompiledEntry, ...], normalized: str, parent: Optional[str]) -> List[AliasHit]:
        wanted_parent = normalize_text(parent) if parent else None
        tokens = tuple(normalized.split())
        hits: List[AliasHit] = []
        for item in compiled:
            entry = item.entry
            if wanted_parent and entry.parent and normalize_text(entry.parent) != wanted_parent:
                continue
            if normalized in item.exact:
                hits.append(AliasHit(entry.key, len(normalized), True, normalized))
                continue
            best: Optional[AliasHit] = None
            for phrase, phrase_tokens in item.phrases:
                if contains_phrase(tokens, phrase_tokens):
                    candidate = AliasHit(entry.key, len(phrase), False, phrase)
                elif len(normalized) >= MIN_PHRASE_LENGTH and contains_phrase(phrase_tokens, tokens):
                    candidate = AliasHit(entry.key, len(normalized), False, phrase)
                else:
                    continue
                if best is None or candidate.specificity > best.specificity:
                    best = candidate
            if best is not None:
                hits.append(best)
        return hits

    def resolve(self, category: str, needle: Any, *, parent: Optional[str] = None) -> FrozenSet[str]:
        """Canonical keys whose variants or codes match ``needle``."""

        return frozenset(hit.key for hit in self.lookup(category, needle, parent=parent))

    def resolve_best(self, category: str, needle: Any, *, parent: Optional[str] = None) -> FrozenSet[str]:
        """Like :meth:`resolve` but keeps only the most specific matches.

        Exact matches win outright; otherwise the keys tied on the longest
        matched phrase are returned.
        """

        hits = self.lookup(category, needle, parent=parent)
        if not hits:
            return frozenset()
        exact = [hit.key for hit in hits if hit.exact]
        if exact:
            return frozenset(exact)
        top = hits[0].specificity
        return frozenset(hit.key for hit in hits if hit.specificity == top)


@lru_cache(maxsize=1)
def default_registry() -> AliasRegistry:
    """Return the registry built from the packaged tables (loaded once)."""

    return AliasRegistry.load()
