from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .kinds import ControlShape, WidgetKind

logger = logging.getLogger(__name__)


class WidgetState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    SEARCHING = "searching"
    SELECTING = "selecting"
    ERROR = "error"


TRANSITIONS: Mapping[WidgetState, FrozenSet[WidgetState]] = {
    WidgetState.CLOSED: frozenset({WidgetState.OPENING}),
    WidgetState.OPENING: frozenset({WidgetState.OPEN, WidgetState.ERROR}),
    WidgetState.OPEN: frozenset({WidgetState.SEARCHING, WidgetState.SELECTING, WidgetState.CLOSED, WidgetState.ERROR}),
    WidgetState.SEARCHING: frozenset({WidgetState.OPEN, WidgetState.SELECTING, WidgetState.ERROR}),
    WidgetState.SELECTING: frozenset({WidgetState.CLOSED, WidgetState.ERROR}),
    WidgetState.ERROR: frozenset({WidgetState.CLOSED}),
}


class WidgetTransitionError(RuntimeError):
    """Raised when a widget session is asked to make an illegal state change."""


class WidgetFailure(str, Enum):
    TIMEOUT = "timeout"
    UNSUPPORTED_SHAPE = "unsupported_shape"
    INTERACTION = "interaction"


@dataclass(slots=True)
class WidgetEvent:
    state: WidgetState
    timestamp: float
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state.value, "timestamp": self.timestamp, "detail": self.detail}


@dataclass(slots=True)
class WidgetSession:
    """Per-control interaction state, owned by the field being filled."""

    control: Any
    kind: WidgetKind
    shape: ControlShape = field(default_factory=ControlShape)
    driver: Any = None
    state: WidgetState = WidgetState.CLOSED
    history: List[WidgetEvent] = field(default_factory=list)
    failure: Optional[WidgetFailure] = None
    failure_detail: Optional[str] = None

    def can_transition(self, target: WidgetState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition(self, target: WidgetState, detail: Optional[str] = None) -> None:
        if not self.can_transition(target):
            raise WidgetTransitionError(f"Illegal widget transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(WidgetEvent(target, time.time(), detail))

    def fail(self, failure: WidgetFailure, detail: str) -> None:
        """Move to ``error`` and remember why; a session already in error keeps its first cause."""

        if self.state is WidgetState.ERROR:
            return
        if self.state is WidgetState.CLOSED:
            # Failures before opening (e.g. unknown shape) still pass through "opening".
            self.transition(WidgetState.OPENING, "open requested")
        self.failure = failure
        self.failure_detail = detail
        self.transition(WidgetState.ERROR, detail)
        logger.warning(
            "Widget interaction failed",
            extra={"kind": self.kind.value, "failure": failure.value, "detail": detail},
        )

    @property
    def terminal(self) -> bool:
        return self.state in (WidgetState.CLOSED, WidgetState.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "state": self.state.value,
            "failure": self.failure.value if self.failure else None,
            "failure_detail": self.failure_detail,
            "history": [event.to_dict() for event in self.history],
        }
