"""Configuration helpers for autofill passes."""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from functools import lru_cache
from typing import Any, Dict, Mapping

from .matching.types import (
    CATEGORY_MINIMUM,
    DIRECT_MINIMUM,
    REMOTE_MINIMUM,
    SEMANTIC_MINIMUM,
    StageThresholds,
)
from .remote.llm import DEFAULT_MODEL
from .widgets.drivers import WidgetTimings

ENV_PREFIX = "SMARTFILL_"
LOW_CONFIDENCE_POLICIES = frozenset({"confirm", "skip"})


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass
class Settings:
    """Container for environment-driven settings.

    ``confidence_threshold`` and ``allow_remote`` are the persisted user
    preferences; they are read once at the start of each pass.
    """

    confidence_threshold: float = 0.8
    allow_remote: bool = False
    low_confidence_policy: str = "confirm"
    preview: bool = False
    direct_minimum: float = DIRECT_MINIMUM
    category_minimum: float = CATEGORY_MINIMUM
    semantic_minimum: float = SEMANTIC_MINIMUM
    remote_minimum: float = REMOTE_MINIMUM
    open_timeout_ms: int = 1000
    search_timeout_ms: int = 2000
    select_timeout_ms: int = 1000
    type_delay_ms: int = 50
    remote_model: str = DEFAULT_MODEL
    remote_timeout_seconds: float = 8.0
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.confidence_threshold) <= 1.0:
            raise ValueError(f"confidence_threshold must be within [0, 1], got {self.confidence_threshold}")
        if self.low_confidence_policy not in LOW_CONFIDENCE_POLICIES:
            raise ValueError(
                f"low_confidence_policy must be one of {sorted(LOW_CONFIDENCE_POLICIES)}, got {self.low_confidence_policy!r}"
            )
        for name in ("open_timeout_ms", "search_timeout_ms", "select_timeout_ms"):
            if int(getattr(self, name)) <= 0:
                raise ValueError(f"{name} must be positive")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            confidence_threshold=float(os.getenv("SMARTFILL_CONFIDENCE_THRESHOLD", "0.8")),
            allow_remote=_env_flag("SMARTFILL_ALLOW_REMOTE", default=False),
            low_confidence_policy=os.getenv("SMARTFILL_LOW_CONFIDENCE_POLICY", "confirm").strip().lower(),
            preview=_env_flag("SMARTFILL_PREVIEW", default=False),
            direct_minimum=float(os.getenv("SMARTFILL_DIRECT_MINIMUM", str(DIRECT_MINIMUM))),
            category_minimum=float(os.getenv("SMARTFILL_CATEGORY_MINIMUM", str(CATEGORY_MINIMUM))),
            semantic_minimum=float(os.getenv("SMARTFILL_SEMANTIC_MINIMUM", str(SEMANTIC_MINIMUM))),
            remote_minimum=float(os.getenv("SMARTFILL_REMOTE_MINIMUM", str(REMOTE_MINIMUM))),
            open_timeout_ms=int(os.getenv("SMARTFILL_OPEN_TIMEOUT_MS", "1000")),
            search_timeout_ms=int(os.getenv("SMARTFILL_SEARCH_TIMEOUT_MS", "2000")),
            select_timeout_ms=int(os.getenv("SMARTFILL_SELECT_TIMEOUT_MS", "1000")),
            type_delay_ms=int(os.getenv("SMARTFILL_TYPE_DELAY_MS", "50")),
            remote_model=os.getenv("SMARTFILL_REMOTE_MODEL", DEFAULT_MODEL),
            remote_timeout_seconds=float(os.getenv("SMARTFILL_REMOTE_TIMEOUT_SECONDS", "8.0")),
            log_level=os.getenv("SMARTFILL_LOG_LEVEL", "WARNING").upper(),
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any], *, base: "Settings | None" = None) -> "Settings":
        """Overlay persisted configuration on ``base`` (defaults when omitted).

        Unknown keys are ignored; camelCase spellings of known keys are accepted.
        """

        values = asdict(base) if base is not None else {}
        known = {item.name: item for item in fields(cls)}
        camel = {_camel(name): name for name in known}
        for raw_key, value in payload.items():
            name = raw_key if raw_key in known else camel.get(raw_key)
            if name is None or value is None:
                continue
            default = known[name].default
            if isinstance(default, bool):
                value = _coerce_flag(value)
            elif isinstance(default, int):
                value = int(value)
            elif isinstance(default, float):
                value = float(value)
            else:
                value = str(value)
            values[name] = value
        return cls(**values)

    def stage_thresholds(self) -> StageThresholds:
        return StageThresholds(
            direct=self.direct_minimum,
            category=self.category_minimum,
            semantic=self.semantic_minimum,
            remote=self.remote_minimum,
        )

    def widget_timings(self) -> WidgetTimings:
        return WidgetTimings(
            open_ms=self.open_timeout_ms,
            search_ms=self.search_timeout_ms,
            select_ms=self.select_timeout_ms,
            type_delay_ms=self.type_delay_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings.from_env()
