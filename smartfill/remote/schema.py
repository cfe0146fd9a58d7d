"""Wire models for the remote suggestion service.

The service is untrusted: every response goes through
:class:`SuggestionResponse` before any of it is used.
"""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class OptionPayload(BaseModel):
    """An option as the service sees it: text and value only."""

    text: str = ""
    value: str = ""


class SuggestionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field_context: str = Field(default="", alias="fieldContext")
    options: List[OptionPayload] = Field(default_factory=list)
    profile_snapshot: Dict[str, Any] = Field(default_factory=dict, alias="profileSnapshot")


class Suggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    option_index: int = Field(alias="optionIndex", ge=0)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class SuggestionResponse(BaseModel):
    suggestions: List[Suggestion] = Field(default_factory=list)
