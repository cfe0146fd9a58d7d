from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..utils.text import humanize_identifier, normalize_text

# Stage minimums: a stage's candidate is accepted only when strictly above.
DIRECT_MINIMUM = 0.7
CATEGORY_MINIMUM = 0.5
SEMANTIC_MINIMUM = 0.4
REMOTE_MINIMUM = 0.3

# A prompt verb alone or followed by a determiner; "Select Medical" is a real option.
_PLACEHOLDER_PROMPT = re.compile(
    r"^(?:please )?(?:select|choose|pick)(?: (?:one|an?|your|the|from|option|options|any|all)\b.*)?$"
)


class InvalidFieldError(ValueError):
    """Raised when a field descriptor cannot be built from its input."""


class StrategyUnavailable(RuntimeError):
    """Raised by a strategy whose backing collaborator cannot answer."""


class MatchMethod(str, Enum):
    DIRECT = "direct"
    CATEGORY = "category"
    SEMANTIC = "semantic"
    AI = "ai"
    NONE = "none"


@dataclass(eq=False, slots=True)
class Option:
    """One selectable choice of a control.

    Equality is identity: two options rendering the same text are still
    different options.
    """

    text: str = ""
    value: str = ""
    disabled: bool = False
    selected: bool = False
    index: Optional[int] = None
    # Labels of the parent entries to open first in a nested menu.
    path: Tuple[str, ...] = ()
    handle: Any = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, index: Optional[int] = None) -> "Option":
        if not isinstance(payload, Mapping):
            raise InvalidFieldError(f"Option must be a mapping, got {type(payload).__name__}")
        text = payload.get("text", payload.get("label", ""))
        value = payload.get("value", "")
        raw_index = payload.get("index", index)
        raw_path = payload.get("path") or ()
        if isinstance(raw_path, str):
            raw_path = raw_path.split(">")
        return cls(
            text="" if text is None else str(text).strip(),
            value="" if value is None else str(value),
            disabled=bool(payload.get("disabled", False)),
            selected=bool(payload.get("selected", payload.get("checked", False))),
            index=int(raw_index) if isinstance(raw_index, int) and not isinstance(raw_index, bool) else index,
            path=tuple(str(step).strip() for step in raw_path if str(step).strip()),
        )

    @property
    def is_placeholder(self) -> bool:
        text = normalize_text(self.text)
        if not text:
            return True
        if self.value.strip() and normalize_text(self.value) != text:
            return False
        if set(self.text.strip()) <= {"-", " ", "."}:
            return True
        return _PLACEHOLDER_PROMPT.match(text) is not None

    @property
    def selectable(self) -> bool:
        return not self.disabled and not self.is_placeholder

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "text": self.text,
            "value": self.value,
            "disabled": self.disabled,
            "selected": self.selected,
            "index": self.index,
        }
        if self.path:
            payload["path"] = list(self.path)
        return payload


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    label: str = ""
    name: str = ""
    element_id: str = ""
    placeholder: str = ""
    aria_label: str = ""
    type: str = ""
    options: Tuple[Option, ...] = ()

    def __post_init__(self) -> None:
        options = self.options
        if options is None or isinstance(options, (str, bytes, Mapping)) or not isinstance(options, Sequence):
            raise TypeError("FieldDescriptor.options must be a sequence of Option")
        for item in options:
            if not isinstance(item, Option):
                raise TypeError(f"FieldDescriptor.options contains {type(item).__name__}, expected Option")
        object.__setattr__(self, "options", tuple(options))
        for attr in ("label", "name", "element_id", "placeholder", "aria_label", "type"):
            raw = getattr(self, attr)
            object.__setattr__(self, attr, "" if raw is None else str(raw))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FieldDescriptor":
        """Build a descriptor from a scraped mapping (camelCase keys accepted)."""

        if not isinstance(payload, Mapping):
            raise InvalidFieldError(f"Field descriptor must be a mapping, got {type(payload).__name__}")
        raw_options = payload.get("options", ())
        if raw_options is None or isinstance(raw_options, (str, bytes, Mapping)) or not isinstance(raw_options, Sequence):
            raise InvalidFieldError("Field descriptor 'options' must be a list")
        options: List[Option] = []
        for position, item in enumerate(raw_options):
            if isinstance(item, Option):
                options.append(item)
            elif isinstance(item, str):
                options.append(Option(text=item, value=item, index=position))
            else:
                options.append(Option.from_dict(item, index=position))

        def _pick(*keys: str) -> str:
            for key in keys:
                value = payload.get(key)
                if value is not None:
                    return str(value)
            return ""

        return cls(
            label=_pick("label", "text"),
            name=_pick("name"),
            element_id=_pick("element_id", "elementId", "id"),
            placeholder=_pick("placeholder"),
            aria_label=_pick("aria_label", "ariaLabel"),
            type=_pick("type", "tag"),
            options=tuple(options),
        )

    def with_options(self, options: Sequence[Option]) -> "FieldDescriptor":
        return replace(self, options=tuple(options))

    def surface_texts(self) -> List[Tuple[str, str]]:
        """``(source, humanized text)`` pairs for every non-empty surface attribute."""

        pairs = (
            ("label", self.label),
            ("aria_label", self.aria_label),
            ("placeholder", self.placeholder),
            ("name", self.name),
            ("element_id", self.element_id),
        )
        result: List[Tuple[str, str]] = []
        for source, raw in pairs:
            text = humanize_identifier(raw)
            if text:
                result.append((source, text))
        return result

    def context_text(self) -> str:
        parts: List[str] = []
        for _, text in self.surface_texts():
            if text not in parts:
                parts.append(text)
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "name": self.name,
            "id": self.element_id,
            "placeholder": self.placeholder,
            "ariaLabel": self.aria_label,
            "type": self.type,
            "options": [option.to_dict() for option in self.options],
        }


@dataclass(frozen=True, slots=True)
class MatchResult:
    option: Optional[Option] = None
    confidence: float = 0.0
    method: MatchMethod = MatchMethod.NONE
    reasoning: str = ""
    source: Optional[str] = None

    def __post_init__(self) -> None:
        confidence = min(max(float(self.confidence), 0.0), 1.0)
        if self.option is None:
            confidence = 0.0
        object.__setattr__(self, "confidence", confidence)
        object.__setattr__(self, "method", MatchMethod(self.method))

    @classmethod
    def none(cls, reasoning: str = "No strategy produced a match") -> "MatchResult":
        return cls(option=None, confidence=0.0, method=MatchMethod.NONE, reasoning=reasoning)

    @property
    def matched(self) -> bool:
        return self.option is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "option": self.option.to_dict() if self.option is not None else None,
            "confidence": round(self.confidence, 4),
            "method": self.method.value,
            "reasoning": self.reasoning,
            "source": self.source,
        }


class AttemptStatus(str, Enum):
    ACCEPTED = "accepted"
    BELOW_MINIMUM = "below_minimum"
    NO_CANDIDATE = "no_candidate"
    UNAVAILABLE = "unavailable"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StageAttempt:
    stage: MatchMethod
    status: AttemptStatus
    candidate: Optional[MatchResult] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "candidate": self.candidate.to_dict() if self.candidate is not None else None,
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class MatchReport:
    result: MatchResult
    attempts: Tuple[StageAttempt, ...] = ()

    @property
    def remote_unavailable(self) -> bool:
        return any(
            attempt.stage is MatchMethod.AI and attempt.status is AttemptStatus.UNAVAILABLE
            for attempt in self.attempts
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"result": self.result.to_dict(), "attempts": [attempt.to_dict() for attempt in self.attempts]}


@dataclass(frozen=True, slots=True)
class StageThresholds:
    direct: float = DIRECT_MINIMUM
    category: float = CATEGORY_MINIMUM
    semantic: float = SEMANTIC_MINIMUM
    remote: float = REMOTE_MINIMUM

    def __post_init__(self) -> None:
        for name in ("direct", "category", "semantic", "remote"):
            value = float(getattr(self, name))
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Stage minimum {name!r} must be within [0, 1], got {value}")
            object.__setattr__(self, name, value)

    def for_method(self, method: MatchMethod) -> float:
        mapping = {
            MatchMethod.DIRECT: self.direct,
            MatchMethod.CATEGORY: self.category,
            MatchMethod.SEMANTIC: self.semantic,
            MatchMethod.AI: self.remote,
        }
        return mapping.get(method, 0.0)
