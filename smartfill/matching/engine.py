from __future__ import annotations

import logging
from collections.abc import Sequence as SequenceABC
from typing import Any, List, Optional, Sequence

from ..aliases import AliasRegistry, default_registry
from ..profile.models import CanonicalProfile
from .categories import recognize_categories
from .field_keys import referenced_paths
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
    MatchReport,
    MatchResult,
    Option,
    StageAttempt,
    StageThresholds,
    StrategyUnavailable,
)

logger = logging.getLogger(__name__)


def _validate(field: Any, profile: Any) -> None:
    if not isinstance(field, FieldDescriptor):
        raise TypeError(f"field must be a FieldDescriptor, got {type(field).__name__}")
    options = field.options
    if options is None or isinstance(options, (str, bytes)) or not isinstance(options, SequenceABC):
        raise TypeError("field.options must be a sequence of Option")
    for item in options:
        if not isinstance(item, Option):
            raise TypeError(f"field.options contains {type(item).__name__}, expected Option")
    if not isinstance(profile, CanonicalProfile):
        raise TypeError(f"profile must be a CanonicalProfile, got {type(profile).__name__}")


class MatchEngine:
    """Run the strategy chain for one field at a time.

    Strategies are tried in order; the first whose candidate is strictly above
    its stage minimum wins. Stages that need the remote collaborator are skipped
    unless ``allow_remote`` is set, and a stage that raises never aborts the
    chain.
    """

    def __init__(
        self,
        *,
        registry: Optional[AliasRegistry] = None,
        thresholds: Optional[StageThresholds] = None,
        suggestion_client: Optional[SuggestionClient] = None,
        strategies: Optional[Sequence[MatchStrategy]] = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.thresholds = thresholds or StageThresholds()
        if strategies is None:
            category = CategoryStrategy(self.registry, minimum=self.thresholds.category)
            strategies = (
                DirectStrategy(minimum=self.thresholds.direct),
                category,
                SemanticStrategy(category, minimum=self.thresholds.semantic),
                RemoteStrategy(suggestion_client, minimum=self.thresholds.remote),
            )
        self.strategies: tuple = tuple(strategies)

    def match(self, field: FieldDescriptor, profile: CanonicalProfile, *, allow_remote: bool = False) -> MatchResult:
        return self.explain(field, profile, allow_remote=allow_remote).result

    def explain(self, field: FieldDescriptor, profile: CanonicalProfile, *, allow_remote: bool = False) -> MatchReport:
        """Run the chain and return the decision with one attempt record per stage."""

        _validate(field, profile)
        attempts: List[StageAttempt] = []
        winner: Optional[MatchResult] = None

        for strategy in self.strategies:
            stage = strategy.method
            if winner is not None:
                attempts.append(StageAttempt(stage, AttemptStatus.SKIPPED, detail="an earlier stage matched"))
                continue
            if strategy.requires_remote and not allow_remote:
                attempts.append(StageAttempt(stage, AttemptStatus.SKIPPED, detail="remote suggestions disabled"))
                continue
            if not strategy.applies(field, profile):
                attempts.append(StageAttempt(stage, AttemptStatus.SKIPPED, detail="not applicable to this field"))
                continue
            try:
                candidate = strategy.attempt(field, profile)
            except StrategyUnavailable as exc:
                logger.warning("Match stage unavailable", extra={"stage": stage.value, "error": str(exc)})
                attempts.append(StageAttempt(stage, AttemptStatus.UNAVAILABLE, detail=str(exc)))
                continue
            except Exception as exc:
                logger.exception("Match stage failed", extra={"stage": stage.value})
                attempts.append(StageAttempt(stage, AttemptStatus.ERROR, detail=f"{type(exc).__name__}: {exc}"))
                continue

            if candidate is None or candidate.option is None:
                attempts.append(StageAttempt(stage, AttemptStatus.NO_CANDIDATE))
                continue
            if candidate.option not in field.options:
                # Identity check: strategies must hand back one of the field's own options.
                logger.warning("Discarding candidate outside the option list", extra={"stage": stage.value})
                attempts.append(StageAttempt(stage, AttemptStatus.ERROR, detail="candidate is not one of the options"))
                continue
            if candidate.confidence > strategy.minimum:
                winner = candidate
                attempts.append(StageAttempt(stage, AttemptStatus.ACCEPTED, candidate))
            else:
                attempts.append(
                    StageAttempt(
                        stage,
                        AttemptStatus.BELOW_MINIMUM,
                        candidate,
                        detail=f"{candidate.confidence:.2f} <= {strategy.minimum:.2f}",
                    )
                )

        result = winner or MatchResult.none()
        logger.debug(
            "Matched field",
            extra={
                "field": field.label or field.name or field.element_id,
                "method": result.method.value,
                "confidence": result.confidence,
            },
        )
        return MatchReport(result=result, attempts=tuple(attempts))

    def search_hint(self, field: FieldDescriptor, profile: CanonicalProfile) -> Optional[str]:
        """Text to type into a searchable control whose options are not rendered yet.

        Uses the first profile value the field refers to, directly or through
        a recognized category.
        """

        _validate(field, profile)
        paths: List[str] = [ref.path for ref in referenced_paths(field)]
        for definition in recognize_categories(field):
            paths.extend(definition.profile_paths)
        for path in paths:
            leaf = profile.get(path)
            if not leaf.present or isinstance(leaf.value, bool):
                continue
            texts = leaf.texts()
            if texts:
                return texts[0]
        return None
