"""Matching strategies run in order by :class:`~smartfill.matching.engine.MatchEngine`.

Every strategy exposes ``method``, ``minimum`` and ``requires_remote`` and
implements ``attempt(field, profile) -> MatchResult | None``. ``applies``
lets a stage step aside without producing a candidate (the semantic stage
does so when a category was recognized). A strategy that cannot reach its
collaborator raises :class:`StrategyUnavailable`; anything else it returns
is a candidate the engine compares against ``minimum``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from pydantic import ValidationError
from rapidfuzz import fuzz

from ..aliases import AliasRegistry, default_registry
from ..profile.models import CanonicalProfile, ProfileLeaf
from ..profile import derive
from ..profile.normalizer import PROFILE_SCHEMA
from ..remote.schema import OptionPayload, SuggestionRequest, SuggestionResponse
from ..utils.text import normalize_text
from .categories import CATEGORIES, OPTION_DETECTABLE, CategorySpec, recognize_categories
from .field_keys import referenced_paths
from .ranges import parse_range
from .similarity import edit_similarity, keyword_overlap, token_jaccard
from .types import (
    CATEGORY_MINIMUM,
    DIRECT_MINIMUM,
    REMOTE_MINIMUM,
    SEMANTIC_MINIMUM,
    FieldDescriptor,
    MatchMethod,
    MatchResult,
    Option,
    StrategyUnavailable,
)

logger = logging.getLogger(__name__)

# A perfect candidate from a zero-confidence leaf still keeps this share.
LEAF_WEIGHT_FLOOR = 0.75
SEMANTIC_CEILING = 0.75

CATEGORY_EXACT = 0.9
CATEGORY_CONTAINS = 0.8
CATEGORY_RANGE = 0.9
CATEGORY_FUZZY = 0.6
CATEGORY_FUZZY_CUTOFF = 85.0
CATEGORY_DETECTION_MIN_HITS = 2

BOOLEAN_PATHS = frozenset(definition.path for definition in PROFILE_SCHEMA if definition.kind == "bool")


def leaf_weighted(strength: float, leaf_confidence: float) -> float:
    """Scale a raw match strength by the confidence of the profile leaf behind it."""

    weight = LEAF_WEIGHT_FLOOR + (1.0 - LEAF_WEIGHT_FLOOR) * leaf_confidence
    return min(max(strength * weight, 0.0), 1.0)


def selectable_options(field: FieldDescriptor) -> List[Tuple[int, Option]]:
    return [(position, option) for position, option in enumerate(field.options) if option.selectable]


@dataclass(slots=True)
class _Candidate:
    confidence: float
    position: int
    option: Option
    reasoning: str
    source: Optional[str] = None

    def sort_key(self) -> Tuple[float, int, int]:
        return (-self.confidence, self.position, len(self.option.text))


def best_candidate(candidates: Iterable[_Candidate]) -> Optional[_Candidate]:
    """Highest confidence, then earlier option, then shorter option text."""

    ranked = sorted(candidates, key=_Candidate.sort_key)
    return ranked[0] if ranked else None


def _to_result(candidate: Optional[_Candidate], method: MatchMethod) -> Optional[MatchResult]:
    if candidate is None or candidate.confidence <= 0.0:
        return None
    return MatchResult(
        option=candidate.option,
        confidence=candidate.confidence,
        method=method,
        reasoning=candidate.reasoning,
        source=candidate.source,
    )


def _display(value: Any) -> str:
    if isinstance(value, tuple):
        return ", ".join(str(item) for item in value)
    return str(value)


class MatchStrategy(Protocol):
    method: MatchMethod
    minimum: float
    requires_remote: bool

    def applies(self, field: FieldDescriptor, profile: CanonicalProfile) -> bool:
        ...

    def attempt(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[MatchResult]:
        ...


class DirectStrategy:
    """The field names a profile key; pick the option closest to its value."""

    method = MatchMethod.DIRECT
    requires_remote = False

    def __init__(self, minimum: float = DIRECT_MINIMUM) -> None:
        self.minimum = minimum

    def applies(self, field: FieldDescriptor, profile: CanonicalProfile) -> bool:
        return True

    def attempt(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[MatchResult]:
        options = selectable_options(field)
        if not options:
            return None
        candidates: List[_Candidate] = []
        for reference in referenced_paths(field):
            leaf = profile.get(reference.path)
            # Booleans are answered by the yes/no intent category.
            if not leaf.present or isinstance(leaf.value, bool):
                continue
            texts = leaf.texts()
            for position, option in options:
                similarity = 0.0
                for text in texts:
                    similarity = max(similarity, edit_similarity(text, option.text), edit_similarity(text, option.value))
                if similarity <= 0.0:
                    continue
                confidence = leaf_weighted(similarity * reference.score, leaf.confidence)
                candidates.append(
                    _Candidate(
                        confidence=confidence,
                        position=position,
                        option=option,
                        reasoning=(
                            f"Field {reference.source} '{reference.matched}' refers to {reference.path}; "
                            f"value '{_display(leaf.value)}' is {similarity:.2f} similar to option '{option.text}'"
                        ),
                        source=reference.path,
                    )
                )
        return _to_result(best_candidate(candidates), self.method)


class CategoryStrategy:
    """The field names a semantic category; compare through the alias tables."""

    method = MatchMethod.CATEGORY
    requires_remote = False

    def __init__(self, registry: Optional[AliasRegistry] = None, minimum: float = CATEGORY_MINIMUM) -> None:
        self.registry = registry or default_registry()
        self.minimum = minimum

    def applies(self, field: FieldDescriptor, profile: CanonicalProfile) -> bool:
        return True

    def recognizes(self, field: FieldDescriptor) -> bool:
        """True when the field names a category or asks a yes/no preference question."""

        if self.categories_for(field):
            return True
        return bool(self._boolean_paths(field)) and self._intents(selectable_options(field)) is not None

    def attempt(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[MatchResult]:
        options = selectable_options(field)
        if not options:
            return None
        candidates: List[_Candidate] = []
        candidates.extend(self._yes_no_candidates(field, profile, options))
        for definition in self.categories_for(field):
            candidates.extend(self._category_candidates(definition, profile, options))
        return _to_result(best_candidate(candidates), self.method)

    def categories_for(self, field: FieldDescriptor) -> List[CategorySpec]:
        """Categories named by the label, else the one the option texts belong to."""

        recognized = recognize_categories(field)
        if recognized:
            return recognized
        detected = self.detect_from_options(selectable_options(field))
        return [detected] if detected is not None else []

    def detect_from_options(self, options: Sequence[Tuple[int, Option]]) -> Optional[CategorySpec]:
        """The alias category most option texts resolve exactly into, if a clear majority does."""

        worded = [option for _, option in options if any(char.isalpha() for char in option.text)]
        if len(worded) < CATEGORY_DETECTION_MIN_HITS:
            return None
        best: Optional[CategorySpec] = None
        best_count = 0
        known = set(self.registry.categories())
        for definition in CATEGORIES:
            if definition.name not in OPTION_DETECTABLE or definition.table not in known:
                continue
            count = sum(1 for option in worded if any(self._hits(definition.table, option.text).values()))
            if count > best_count:
                best, best_count = definition, count
        if best_count < CATEGORY_DETECTION_MIN_HITS or best_count * 2 <= len(worded):
            return None
        logger.debug("Category detected from options", extra={"category": best.name, "hits": best_count})
        return best

    # ------------------------------------------------------------------
    # Yes/no intent
    # ------------------------------------------------------------------
    def _boolean_paths(self, field: FieldDescriptor) -> List[str]:
        return [ref.path for ref in referenced_paths(field) if ref.method != "fuzzy" and ref.path in BOOLEAN_PATHS]

    def _intents(self, options: Sequence[Tuple[int, Option]]) -> Optional[Dict[int, Tuple[bool, bool]]]:
        """Map each option to ``(means_yes, exact)`` or ``None`` if any is not a yes/no answer."""

        if not options:
            return None
        intents: Dict[int, Tuple[bool, bool]] = {}
        for position, option in options:
            hits = self._hits("boolean", option.text or option.value)
            if len(hits) != 1:
                return None
            key, exact = next(iter(hits.items()))
            entry = self.registry.entry("boolean", key)
            intents[position] = (bool(entry.extra.get("value")) if entry else key == "yes", exact)
        return intents

    def _yes_no_candidates(
        self, field: FieldDescriptor, profile: CanonicalProfile, options: Sequence[Tuple[int, Option]]
    ) -> List[_Candidate]:
        paths = self._boolean_paths(field)
        if not paths:
            return []
        intents = self._intents(options)
        if intents is None:
            return []

        candidates: List[_Candidate] = []
        for path in paths:
            leaf = profile.get(path)
            if not leaf.present or not isinstance(leaf.value, bool):
                continue
            for position, option in options:
                intent, exact = intents[position]
                if intent is not leaf.value:
                    continue
                strength = CATEGORY_EXACT if exact else CATEGORY_CONTAINS
                candidates.append(
                    _Candidate(
                        confidence=leaf_weighted(strength, leaf.confidence),
                        position=position,
                        option=option,
                        reasoning=f"Yes/no intent: {path} is {leaf.value}, option '{option.text}' means {'yes' if intent else 'no'}",
                        source=path,
                    )
                )
        return candidates

    # ------------------------------------------------------------------
    # Alias categories
    # ------------------------------------------------------------------
    def _hits(self, category: str, text: Any, *, parent: Optional[str] = None) -> Dict[str, bool]:
        """Best canonical keys for ``text`` mapped to whether the match was exact."""

        hits = self.registry.lookup(category, text, parent=parent)
        if not hits:
            return {}
        if hits[0].exact:
            return {hit.key: True for hit in hits if hit.exact}
        top = hits[0].specificity
        return {hit.key: False for hit in hits if hit.specificity == top}

    def _parent_key(self, definition: CategorySpec, profile: CanonicalProfile) -> Optional[str]:
        if definition.parent_path is None:
            return None
        leaf = profile.get(definition.parent_path)
        if not leaf.present:
            return None
        keys = self.registry.resolve_best("country", leaf.value)
        return next(iter(keys)) if len(keys) == 1 else None

    def _category_candidates(
        self, definition: CategorySpec, profile: CanonicalProfile, options: Sequence[Tuple[int, Option]]
    ) -> List[_Candidate]:
        parent = self._parent_key(definition, profile)
        tabled = definition.table in self.registry.categories()
        option_hits = {
            position: self._hits(definition.table, option.text, parent=parent)
            or self._hits(definition.table, option.value, parent=parent)
            for position, option in options
            if tabled
        }
        candidates: List[_Candidate] = []
        for path in definition.profile_paths:
            leaf = profile.get(path)
            if not leaf.present or isinstance(leaf.value, bool):
                continue
            if definition.numeric and isinstance(leaf.value, (int, float)):
                candidates.extend(self._range_candidates(definition, path, leaf, options))
                continue
            if not tabled:
                continue
            values = leaf.value if isinstance(leaf.value, tuple) else (leaf.value,)
            for value in values:
                candidates.extend(self._alias_candidates(definition, path, leaf, value, options, option_hits, parent))
        return candidates

    def _range_candidates(
        self, definition: CategorySpec, path: str, leaf: ProfileLeaf, options: Sequence[Tuple[int, Option]]
    ) -> List[_Candidate]:
        number = float(leaf.value)
        candidates: List[_Candidate] = []
        for position, option in options:
            bounds = parse_range(option.text) or parse_range(option.value)
            if bounds is not None:
                if not bounds.contains(number):
                    continue
                relation = "falls within"
            elif number in (derive.parse_number(option.text), derive.parse_number(option.value)):
                relation = "equals"
            else:
                continue
            candidates.append(
                _Candidate(
                    confidence=leaf_weighted(CATEGORY_RANGE, leaf.confidence),
                    position=position,
                    option=option,
                    reasoning=f"Category '{definition.name}': {path}={_display(leaf.value)} {relation} option '{option.text}'",
                    source=path,
                )
            )
        return candidates

    def _alias_candidates(
        self,
        definition: CategorySpec,
        path: str,
        leaf: ProfileLeaf,
        value: Any,
        options: Sequence[Tuple[int, Option]],
        option_hits: Mapping[int, Dict[str, bool]],
        parent: Optional[str],
    ) -> List[_Candidate]:
        user_hits = self._hits(definition.table, value, parent=parent)
        candidates: List[_Candidate] = []
        if user_hits:
            for position, option in options:
                hits = option_hits.get(position) or {}
                shared = set(user_hits) & set(hits)
                if not shared:
                    continue
                key = sorted(shared)[0]
                exact = user_hits[key] and hits[key] and len(hits) == 1
                strength = CATEGORY_EXACT if exact else CATEGORY_CONTAINS
                comparison = "exactly" if exact else "by containment"
                candidates.append(
                    _Candidate(
                        confidence=leaf_weighted(strength, leaf.confidence),
                        position=position,
                        option=option,
                        reasoning=(
                            f"Category '{definition.name}': {path}='{_display(value)}' resolves to '{key}', "
                            f"option '{option.text}' matches {comparison}"
                        ),
                        source=path,
                    )
                )
        if candidates:
            return candidates
        return self._fuzzy_candidates(definition, path, leaf, value, user_hits, options)

    def _fuzzy_candidates(
        self,
        definition: CategorySpec,
        path: str,
        leaf: ProfileLeaf,
        value: Any,
        user_hits: Mapping[str, bool],
        options: Sequence[Tuple[int, Option]],
    ) -> List[_Candidate]:
        spellings = {normalize_text(value)}
        for key in user_hits:
            spellings.update(normalize_text(item) for item in self.registry.variants_of(definition.table, key))
        spellings.discard("")
        candidates: List[_Candidate] = []
        for position, option in options:
            text = normalize_text(option.text)
            if not text:
                continue
            score = max((fuzz.ratio(text, spelling) for spelling in spellings), default=0.0)
            if score < CATEGORY_FUZZY_CUTOFF:
                continue
            candidates.append(
                _Candidate(
                    confidence=leaf_weighted(CATEGORY_FUZZY * score / 100.0, leaf.confidence),
                    position=position,
                    option=option,
                    reasoning=f"Category '{definition.name}': option '{option.text}' is a close spelling of '{_display(value)}' ({score:.0f})",
                    source=path,
                )
            )
        return candidates


class SemanticStrategy:
    """No category recognized: compare every profile value with every option."""

    method = MatchMethod.SEMANTIC
    requires_remote = False

    def __init__(self, category: CategoryStrategy, minimum: float = SEMANTIC_MINIMUM) -> None:
        self.category = category
        self.minimum = minimum

    def applies(self, field: FieldDescriptor, profile: CanonicalProfile) -> bool:
        return not self.category.recognizes(field)

    def attempt(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[MatchResult]:
        options = selectable_options(field)
        if not options:
            return None
        candidates: List[_Candidate] = []
        for path, leaf in profile.leaves():
            for text in leaf.texts():
                for position, option in options:
                    scores = {
                        "edit distance": edit_similarity(text, option.text),
                        "token overlap": token_jaccard(text, option.text),
                        "keyword overlap": keyword_overlap(text, option.text),
                    }
                    measure, similarity = max(scores.items(), key=lambda item: item[1])
                    if similarity <= 0.0:
                        continue
                    confidence = min(leaf_weighted(similarity, leaf.confidence), SEMANTIC_CEILING)
                    candidates.append(
                        _Candidate(
                            confidence=confidence,
                            position=position,
                            option=option,
                            reasoning=(
                                f"Semantic: option '{option.text}' resembles {path}='{text}' "
                                f"({measure} {similarity:.2f})"
                            ),
                            source=path,
                        )
                    )
        return _to_result(best_candidate(candidates), self.method)


class SuggestionClient(Protocol):
    """Anything that can answer a suggestion request.

    ``suggest`` receives the JSON-ready request body and returns the decoded
    response mapping, its raw JSON text, or ``None`` when it has no answer.
    """

    def suggest(self, request: Mapping[str, Any]) -> Mapping[str, Any] | str | None:
        ...


def _decode_payload(payload: Mapping[str, Any] | str | None) -> Optional[Mapping[str, Any]]:
    if payload is None or isinstance(payload, Mapping):
        return payload
    cleaned = str(payload).strip()
    if cleaned.startswith("```") and cleaned.endswith("```"):
        cleaned = cleaned.strip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].lstrip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise StrategyUnavailable("Suggestion response was not valid JSON") from exc
    if not isinstance(data, Mapping):
        raise StrategyUnavailable("Suggestion response was not a JSON object")
    return data


class RemoteStrategy:
    """Ask an external suggestion service; its answers are validated, never trusted."""

    method = MatchMethod.AI
    requires_remote = True

    def __init__(self, client: Optional[SuggestionClient], minimum: float = REMOTE_MINIMUM) -> None:
        self.client = client
        self.minimum = minimum

    def applies(self, field: FieldDescriptor, profile: CanonicalProfile) -> bool:
        return True

    def build_request(self, field: FieldDescriptor, profile: CanonicalProfile) -> SuggestionRequest:
        return SuggestionRequest(
            field_context=field.context_text(),
            options=[OptionPayload(text=option.text, value=option.value) for option in field.options],
            profile_snapshot=profile.flat_view(),
        )

    def attempt(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[MatchResult]:
        if self.client is None:
            raise StrategyUnavailable("No suggestion client configured")
        if not selectable_options(field):
            return None
        request = self.build_request(field, profile)
        try:
            payload = self.client.suggest(request.model_dump(by_alias=True))
        except StrategyUnavailable:
            raise
        except Exception as exc:
            raise StrategyUnavailable(f"Suggestion client failed: {exc}") from exc

        data = _decode_payload(payload)
        if data is None:
            return None
        try:
            response = SuggestionResponse.model_validate(data)
        except ValidationError as exc:
            raise StrategyUnavailable(f"Suggestion response failed validation: {exc.error_count()} error(s)") from exc
        if not response.suggestions:
            return None

        candidates: List[_Candidate] = []
        rejected = 0
        for suggestion in response.suggestions:
            index = suggestion.option_index
            if index >= len(field.options) or not field.options[index].selectable:
                rejected += 1
                continue
            option = field.options[index]
            reasoning = suggestion.reasoning.strip() or "remote suggestion"
            candidates.append(
                _Candidate(
                    confidence=suggestion.confidence,
                    position=index,
                    option=option,
                    reasoning=f"Remote suggestion for option '{option.text}': {reasoning}",
                    source="remote",
                )
            )
        if not candidates:
            raise StrategyUnavailable(f"All {rejected} suggestion(s) referenced unusable options")
        if rejected:
            logger.warning("Ignoring unusable remote suggestions", extra={"rejected": rejected})
        return _to_result(best_candidate(candidates), self.method)
