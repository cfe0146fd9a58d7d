from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..utils.text import keywords as text_keywords, normalize_text

SECTIONS: Tuple[str, ...] = (
    "identity",
    "contact",
    "address",
    "education",
    "employment",
    "skills",
    "personal",
    "preferences",
)

# Leaf confidence levels assigned by the normalizer.
EXACT = 1.0
ALIAS = 0.8
INFERRED = 0.6
HEURISTIC = 0.3
ABSENT = 0.0


@dataclass(frozen=True, slots=True)
class ProfileLeaf:
    """A single normalized profile value and where it came from."""

    value: Any = None
    confidence: float = ABSENT
    source_key: Optional[str] = None

    def __post_init__(self) -> None:
        clamped = min(max(float(self.confidence), 0.0), 1.0)
        if self.value is None:
            clamped = ABSENT
        object.__setattr__(self, "confidence", clamped)

    @property
    def present(self) -> bool:
        return self.value is not None and self.confidence > 0.0

    def texts(self) -> List[str]:
        """String forms of the value used for text comparison (booleans excluded)."""

        if not self.present or isinstance(self.value, bool):
            return []
        items = self.value if isinstance(self.value, tuple) else (self.value,)
        result: List[str] = []
        for item in items:
            if isinstance(item, bool) or item is None:
                continue
            if isinstance(item, float) and item.is_integer():
                item = int(item)
            text = str(item).strip()
            if text:
                result.append(text)
        return result

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"value": value, "confidence": self.confidence, "source_key": self.source_key}


EMPTY_LEAF = ProfileLeaf()

SectionItems = Tuple[Tuple[str, ProfileLeaf], ...]

SEARCHABLE_PATHS: Tuple[str, ...] = (
    "identity.full_name",
    "identity.first_name",
    "identity.last_name",
    "contact.email",
    "address.city",
    "address.state",
    "address.country",
    "employment.company",
    "employment.job_title",
    "employment.industry",
    "education.level",
    "education.institution",
    "skills.technical",
    "skills.languages",
    "personal.interests",
)


@dataclass(frozen=True)
class CanonicalProfile:
    """Immutable, confidence-annotated profile tree.

    ``sections`` is a tuple of ``(section_name, ((key, leaf), ...))`` pairs in
    schema order, which keeps the structure hashable and makes two profiles
    built from the same raw data compare equal.
    """

    sections: Tuple[Tuple[str, SectionItems], ...]
    _index: Dict[str, ProfileLeaf] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: Dict[str, ProfileLeaf] = {}
        for section, items in self.sections:
            for key, leaf in items:
                index[f"{section}.{key}"] = leaf
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_sections(cls, sections: Mapping[str, Mapping[str, ProfileLeaf]]) -> "CanonicalProfile":
        ordered = [name for name in SECTIONS if name in sections]
        ordered.extend(name for name in sections if name not in SECTIONS)
        return cls(
            sections=tuple(
                (name, tuple((key, leaf) for key, leaf in sections[name].items())) for name in ordered
            )
        )

    def get(self, path: str) -> ProfileLeaf:
        """Return the leaf at ``section.key`` or an empty leaf when unknown."""

        return self._index.get(path, EMPTY_LEAF)

    def value(self, path: str, default: Any = None) -> Any:
        leaf = self.get(path)
        return leaf.value if leaf.present else default

    def section(self, name: str) -> Dict[str, ProfileLeaf]:
        for section, items in self.sections:
            if section == name:
                return dict(items)
        raise KeyError(name)

    def paths(self) -> List[str]:
        return list(self._index)

    def leaves(self, *, present_only: bool = True) -> Iterator[Tuple[str, ProfileLeaf]]:
        for path, leaf in self._index.items():
            if present_only and not leaf.present:
                continue
            yield path, leaf

    def flat_view(self) -> Dict[str, Any]:
        """Dotted-path mapping of every non-empty leaf, JSON serializable."""

        flat: Dict[str, Any] = {}
        for path, leaf in self.leaves():
            flat[path] = list(leaf.value) if isinstance(leaf.value, tuple) else leaf.value
        return flat

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return {section: {key: leaf.to_dict() for key, leaf in items} for section, items in self.sections}

    def alternatives(self, path: str) -> List[Any]:
        """Other representations of the same datum (codes, normalized forms)."""

        related: Dict[str, Sequence[str]] = {
            "address.country": ("address.country_code",),
            "address.state": ("address.state_code",),
            "education.level": ("education.level_normalized", "education.category"),
            "employment.status": ("employment.status_normalized", "employment.category"),
            "employment.industry": ("employment.industry_normalized",),
            "identity.age": ("identity.age_range",),
            "employment.income": ("employment.income_bracket",),
            "employment.years_of_experience": ("employment.experience_level",),
        }
        current = self.value(path)
        values = [self.value(other) for other in related.get(path, ())]
        return [item for item in values if item is not None and item != current]

    def searchable_text(self) -> str:
        parts: List[str] = []
        for path in SEARCHABLE_PATHS:
            parts.extend(self.get(path).texts())
        return normalize_text(" ".join(parts))

    def keywords(self) -> List[str]:
        found: Dict[str, None] = {}
        for _, leaf in self.leaves():
            for text in leaf.texts():
                normalized = normalize_text(text)
                if normalized:
                    found.setdefault(normalized, None)
        return list(found)

    def tags(self) -> List[str]:
        """Category tags such as ``age_25_34`` or ``industry_technology``."""

        def _slug(value: Any) -> str:
            return normalize_text(value).replace(" ", "_")

        tags: List[str] = []
        pairs = (
            ("age", "identity.age_range"),
            ("gender", "identity.gender"),
            ("country", "address.country_code"),
            ("state", "address.state_code"),
            ("industry", "employment.industry_normalized"),
            ("experience", "employment.experience_level"),
            ("education", "education.category"),
            ("marital", "personal.marital_status_normalized"),
            ("communication", "preferences.preferred_contact"),
        )
        for prefix, path in pairs:
            value = self.value(path)
            if value is not None and _slug(value):
                tags.append(f"{prefix}_{_slug(value)}")
        if self.value("preferences.marketing") is True:
            tags.append("accepts_marketing")
        if self.value("preferences.newsletter") is True:
            tags.append("accepts_newsletter")
        return tags

    def search(self, query: str) -> List[Dict[str, Any]]:
        """Score how well ``query`` relates to this profile.

        Returns keyword, free-text and tag matches ordered by score.
        """

        needle = normalize_text(query)
        if not needle:
            return []
        results: List[Dict[str, Any]] = []
        matching_keywords = [item for item in self.keywords() if item in needle or needle in item]
        if matching_keywords:
            results.append(
                {"type": "keyword_match", "matches": matching_keywords, "score": min(len(matching_keywords) * 0.2, 1.0)}
            )
        if needle in self.searchable_text():
            results.append({"type": "text_match", "score": 0.6})
        query_words = text_keywords(needle)
        matching_tags = [
            tag for tag in self.tags() if needle in tag or set(tag.split("_")) & query_words
        ]
        if matching_tags:
            results.append(
                {"type": "category_match", "matches": matching_tags, "score": min(len(matching_tags) * 0.15, 1.0)}
            )
        results.sort(key=lambda item: -item["score"])
        return results
