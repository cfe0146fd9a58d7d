"""Field-to-profile matching: descriptors, strategies and the engine that runs them."""

from .checkbox import CheckboxDecision, decide_checkbox
from .engine import MatchEngine
from .field_keys import KeyReference, referenced_paths
from .ranges import NumericRange, parse_range
from .strategies import (
    CategoryStrategy,
    DirectStrategy,
    MatchStrategy,
    RemoteStrategy,
    SemanticStrategy,
    SuggestionClient,
)
from .types import (
    AttemptStatus,
    FieldDescriptor,
    InvalidFieldError,
    MatchMethod,
    MatchReport,
    MatchResult,
    Option,
    StageAttempt,
    StageThresholds,
    StrategyUnavailable,
)

__all__ = [
    "AttemptStatus",
    "CategoryStrategy",
    "CheckboxDecision",
    "DirectStrategy",
    "FieldDescriptor",
    "InvalidFieldError",
    "KeyReference",
    "MatchEngine",
    "MatchMethod",
    "MatchReport",
    "MatchResult",
    "MatchStrategy",
    "NumericRange",
    "Option",
    "RemoteStrategy",
    "SemanticStrategy",
    "StageAttempt",
    "StageThresholds",
    "StrategyUnavailable",
    "SuggestionClient",
    "decide_checkbox",
    "parse_range",
    "referenced_paths",
]
