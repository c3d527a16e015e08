"""Gemini generateContent client returning schema-validated JSON."""

from __future__ import annotations

import re
import time
from typing import Any, Optional, TypeVar

import httpx
import orjson
from pydantic import BaseModel, ValidationError

from cip.config import Settings
from cip.utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

RETRY_INSTRUCTION = (
    "\n\nYour previous reply could not be used ({error}). Reply with ONE JSON object "
    "only, no markdown, no extra keys, values exactly as the schema allows."
)

_FENCE = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def reply_text(payload: dict[str, Any]) -> str:
    """Join the text parts of the first response candidate."""
    feedback = payload.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise ValueError(f"Prompt blocked: {feedback['blockReason']}")

    candidates = payload.get("candidates") or []
    if not candidates:
        raise ValueError("Gemini response has no candidates")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "\n".join(
        part["text"] for part in parts if isinstance(part.get("text"), str) and part["text"].strip()
    )
    if not text:
        reason = candidates[0].get("finishReason", "unknown")
        raise ValueError(f"Gemini response has no text (finishReason={reason})")
    return text.strip()


def _is_json(text: str) -> bool:
    try:
        orjson.loads(text)
    except orjson.JSONDecodeError:
        return False
    return True


def extract_json_string(text: str) -> str:
    """Return the JSON object in a model reply, unwrapping code fences and prose."""
    value = text.strip()
    fenced = _FENCE.match(value)
    if fenced:
        value = fenced.group(1).strip()
    if _is_json(value):
        return value

    start, end = value.find("{"), value.rfind("}")
    if 0 <= start < end:
        inner = value[start : end + 1].strip()
        if _is_json(inner):
            return inner
        raise ValueError("Model output contains malformed JSON")
    raise ValueError("Model output contains no JSON object")


class GeminiClient:
    """Structured-output backend over the Gemini REST API."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        if not self.settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY must be set for AI classification")

    @property
    def endpoint(self) -> str:
        return (
            f"{self.settings.gemini_api_base_url.rstrip('/')}/models/"
            f"{self.settings.gemini_model_id}:generateContent"
        )

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.settings.gemini_temperature,
                "maxOutputTokens": self.settings.gemini_max_output_tokens,
                "responseMimeType": "application/json",
            },
        }

    def complete(self, client: httpx.Client, prompt: str) -> str:
        response = client.post(
            self.endpoint,
            headers={"x-goog-api-key": self.settings.google_api_key or ""},
            content=orjson.dumps(self._body(prompt)),
        )
        response.raise_for_status()
        return reply_text(orjson.loads(response.content))

    def generate_structured(
        self, prompt: str, schema: type[T]
    ) -> tuple[Optional[T], int, int, str | None]:
        """Ask for JSON matching ``schema``, retrying with the last error appended.

        Returns (output, latency_ms, attempts, error); output is None when
        every attempt failed.
        """
        max_attempts = max(1, self.settings.classifier_max_retries)
        started = time.perf_counter()
        error: str | None = None

        with httpx.Client(
            timeout=self.settings.gemini_timeout_seconds,
            headers={"Content-Type": "application/json"},
        ) as client:
            for attempt in range(1, max_attempts + 1):
                text = prompt if error is None else prompt + RETRY_INSTRUCTION.format(error=error[:200])
                try:
                    output = schema.model_validate_json(extract_json_string(self.complete(client, text)))
                except (httpx.HTTPError, ValidationError, ValueError) as exc:
                    error = str(exc)
                    logger.debug("gemini.attempt_failed attempt=%s error=%s", attempt, error)
                    if attempt < max_attempts:
                        time.sleep(self.settings.classifier_retry_sleep_seconds)
                    continue

                latency_ms = int((time.perf_counter() - started) * 1000)
                return output, latency_ms, attempt, None

        latency_ms = int((time.perf_counter() - started) * 1000)
        return None, latency_ms, max_attempts, error
