"""Optional remote suggestion source for the last matching stage."""

from .llm import DEFAULT_MODEL, OpenAISuggestionClient, build_default_client
from .schema import OptionPayload, Suggestion, SuggestionRequest, SuggestionResponse

__all__ = [
    "DEFAULT_MODEL",
    "OpenAISuggestionClient",
    "OptionPayload",
    "Suggestion",
    "SuggestionRequest",
    "SuggestionResponse",
    "build_default_client",
]
