from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAISuggestionClient:
    """Suggestion client backed by the OpenAI Chat Completions API in JSON mode.

    ``suggest`` returns the decoded JSON object. Transport errors propagate to
    the caller (the remote match stage turns them into "unavailable").
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        client: Any | None = None,
        timeout: float = 8.0,
        temperature: float = 0.0,
        system_prompt: str | None = None,
    ) -> None:
        self._client = client if client is not None else OpenAI(timeout=timeout, max_retries=0)
        self._model = model
        self._timeout = timeout
        self._temperature = temperature
        self._system_prompt = system_prompt or self._default_system_prompt()

    def suggest(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        prompt = json.dumps(dict(request), ensure_ascii=False, indent=1)
        logger.debug(
            "Submitting suggestion request to OpenAI",
            extra={"model": self._model, "options": len(request.get("options") or ())},
        )
        response = self._client.chat.completions.create(
            model=self._model,
            temperature=self._temperature,
            response_format={"type": "json_object"},
            timeout=self._timeout,
            messages=[
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        message = response.choices[0].message
        content = getattr(message, "content", None)
        if content is None:
            raise RuntimeError("OpenAI chat response did not include content")
        return self._parse_response_text(content)

    def _parse_response_text(self, text: str) -> Dict[str, Any]:
        cleaned = text.strip()
        if cleaned.startswith("```") and cleaned.endswith("```"):
            cleaned = cleaned.strip("`").strip()
            if cleaned.lower().startswith("json"):
                cleaned = cleaned[4:].lstrip()

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse suggestion response as JSON", exc_info=exc, extra={"raw_response": cleaned})
            raise ValueError("Suggestion response was not valid JSON") from exc
        if not isinstance(data, dict):
            raise ValueError("Suggestion response was not a JSON object")
        return data

    def _default_system_prompt(self) -> str:
        return (
            "You help fill web forms on behalf of a user. You receive the text around one form control "
            "(fieldContext), its options in page order (options, zero-based), and the user's profile "
            "as dotted keys (profileSnapshot).\n\n"
            "Pick the option the user would most plausibly choose. Only suggest an option the profile "
            "supports; if nothing fits, return an empty list.\n\n"
            "RESPONSE FORMAT - Always return valid JSON:\n"
            "{\n"
            '  "suggestions": [\n'
            '    {"optionIndex": 0, "confidence": 0.0-1.0, "reasoning": "which profile value supports it"}\n'
            "  ]\n"
            "}"
        )


def build_default_client(model: Optional[str] = None, timeout: float = 8.0) -> OpenAISuggestionClient:
    return OpenAISuggestionClient(model=model or DEFAULT_MODEL, timeout=timeout)
