from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..matching.types import FieldDescriptor, MatchReport, MatchResult

LOW_CONFIDENCE_REVIEW = 0.6


class OutcomeKind(str, Enum):
    FILLED = "filled"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    LOW_CONFIDENCE = "low_confidence"
    ADAPTER_TIMEOUT = "adapter_timeout"
    ADAPTER_UNSUPPORTED_SHAPE = "adapter_unsupported_shape"
    ADAPTER_ERROR = "adapter_error"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class FieldOutcome:
    """What happened to one field during an autofill pass."""

    field: FieldDescriptor
    kind: OutcomeKind
    result: MatchResult = field(default_factory=MatchResult.none)
    filled: bool = False
    message: str = ""
    awaiting_confirmation: bool = False
    remote_unavailable: bool = False
    widget_kind: Optional[str] = None
    report: Optional[MatchReport] = None

    @property
    def name(self) -> str:
        return self.field.label or self.field.name or self.field.element_id or "unnamed field"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.name,
            "kind": self.kind.value,
            "filled": self.filled,
            "message": self.message,
            "remote_unavailable": self.remote_unavailable,
            "awaiting_confirmation": self.awaiting_confirmation,
            "widget_kind": self.widget_kind,
            "result": self.result.to_dict(),
        }


@dataclass(slots=True)
class AutofillReport:
    """Aggregated outcomes of one pass, in field order."""

    outcomes: List[FieldOutcome] = field(default_factory=list)
    cancelled: bool = False
    preview: bool = False
    duration_seconds: float = 0.0
    remote_allowed: bool = False

    def add(self, outcome: FieldOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def pending_confirmations(self) -> List[FieldOutcome]:
        return [outcome for outcome in self.outcomes if outcome.awaiting_confirmation]

    @property
    def filled(self) -> List[FieldOutcome]:
        return [outcome for outcome in self.outcomes if outcome.filled]

    def counts(self) -> Dict[str, int]:
        counter = Counter(outcome.kind.value for outcome in self.outcomes)
        return {kind.value: counter.get(kind.value, 0) for kind in OutcomeKind}

    def summary(self) -> Dict[str, Any]:
        total = len(self.outcomes)
        decided = [outcome.result.confidence for outcome in self.outcomes if outcome.result.matched]
        return {
            "total_fields": total,
            "total_filled": len(self.filled),
            "fill_rate": round(len(self.filled) / total * 100) if total else 0,
            "confidence_average": round(sum(decided) / len(decided), 2) if decided else 0.0,
            "duration_seconds": round(self.duration_seconds, 3),
            "remote_unavailable": sum(1 for outcome in self.outcomes if outcome.remote_unavailable),
            "by_kind": self.counts(),
        }

    def profile_usage(self) -> Dict[str, Any]:
        """Which profile leaves and match methods produced decisions."""

        sources: Counter[str] = Counter()
        methods: Counter[str] = Counter()
        for outcome in self.outcomes:
            if not outcome.result.matched:
                continue
            methods[outcome.result.method.value] += 1
            if outcome.result.source:
                sources[outcome.result.source] += 1
        return {"methods": dict(methods), "sources": dict(sources)}

    def recommendations(self) -> List[Dict[str, Any]]:
        advice: List[Dict[str, Any]] = []
        unmatched = [outcome for outcome in self.outcomes if outcome.kind is OutcomeKind.NO_MATCH]
        if unmatched:
            advice.append(
                {
                    "type": "profile_enhancement",
                    "message": f"Add profile data to match {len(unmatched)} unmatched field(s)",
                    "fields": [outcome.name for outcome in unmatched[:5]],
                }
            )
        weak = [
            outcome
            for outcome in self.outcomes
            if outcome.result.matched and outcome.result.confidence < LOW_CONFIDENCE_REVIEW
        ]
        if weak:
            advice.append(
                {
                    "type": "data_quality",
                    "message": "Some fields matched with low confidence; review the profile values they used",
                    "count": len(weak),
                }
            )
        if not self.remote_allowed and len(unmatched) > 2:
            advice.append(
                {
                    "type": "remote_assistance",
                    "message": "Allow remote suggestions to help with fields the local strategies could not match",
                    "potential_improvement": round(len(unmatched) / len(self.outcomes) * 100),
                }
            )
        shapes = [outcome for outcome in self.outcomes if outcome.kind is OutcomeKind.ADAPTER_UNSUPPORTED_SHAPE]
        if shapes:
            advice.append(
                {
                    "type": "unsupported_widgets",
                    "message": f"{len(shapes)} control(s) had no recognizable widget shape",
                    "fields": [outcome.name for outcome in shapes[:5]],
                }
            )
        return advice

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cancelled": self.cancelled,
            "preview": self.preview,
            "summary": self.summary(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "pending_confirmations": [outcome.name for outcome in self.pending_confirmations],
            "profile_usage": self.profile_usage(),
            "recommendations": self.recommendations(),
        }
