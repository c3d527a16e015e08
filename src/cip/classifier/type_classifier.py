"""Listing type classification with an optional AI fallback."""

from __future__ import annotations

from typing import Optional, Protocol, TypeVar

from pydantic import BaseModel

from cip.classifier.keywords import classify_by_keywords, default_classification
from cip.classifier.prompt_loader import load_prompt
from cip.classifier.schemas import ClassificationOutput, category_definitions
from cip.config import Settings
from cip.models import PlacePayload, TypeClassification
from cip.utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class StructuredBackend(Protocol):
    def generate_structured(
        self, prompt: str, schema: type[T]
    ) -> tuple[Optional[T], int, int, str | None]:
        """Return (output, latency_ms, attempts, error)."""


def build_prompt(template: str, place: PlacePayload) -> str:
    """Render the classifier prompt for one place."""
    return template.format(
        name=place.name or "N/A",
        address=place.formatted_address or "N/A",
        types=", ".join(place.types) or "N/A",
        price_level=place.price_level if place.price_level is not None else "N/A",
        rating=place.rating if place.rating is not None else "N/A",
        review_count=place.user_ratings_total or 0,
        categories=category_definitions(),
    )


class TypeClassifier:
    """Keyword classification first, AI only when keywords are unsure.

    Classification never raises: type is advisory, so any failure ends in
    the default category at confidence 0.5.
    """

    def __init__(
        self,
        backend: Optional[StructuredBackend] = None,
        settings: Optional[Settings] = None,
        prompt_template: Optional[str] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.backend = backend
        self._prompt_template = prompt_template

    @property
    def prompt_template(self) -> str:
        if self._prompt_template is None:
            self._prompt_template = load_prompt(self.settings.classifier_prompt_version)
        return self._prompt_template

    def classify(self, place: PlacePayload) -> TypeClassification:
        try:
            result = classify_by_keywords(place)
            if result.confidence < self.settings.classifier_ai_threshold and self.backend is not None:
                ai_result = self._classify_with_ai(place, result)
                if ai_result is not None and ai_result.confidence > result.confidence:
                    return ai_result
            return result
        except Exception as exc:
            logger.error("classifier.failed name=%r error=%s", place.name, exc)
            return default_classification()

    def _classify_with_ai(
        self, place: PlacePayload, keyword_result: TypeClassification
    ) -> Optional[TypeClassification]:
        logger.info(
            "classifier.ai_fallback name=%r keyword_confidence=%.2f",
            place.name,
            keyword_result.confidence,
        )
        try:
            prompt = build_prompt(self.prompt_template, place)
            output, latency_ms, attempts, error = self.backend.generate_structured(  # type: ignore[union-attr]
                prompt, ClassificationOutput
            )
        except Exception as exc:
            logger.warning("classifier.ai_failed name=%r error=%s", place.name, exc)
            return None

        if output is None:
            logger.warning(
                "classifier.ai_failed name=%r attempts=%s latency_ms=%s error=%s",
                place.name,
                attempts,
                latency_ms,
                error,
            )
            return None

        return TypeClassification(
            type_id=output.type_id,
            type_name=output.canonical_name,
            confidence=output.confidence,
            source="ai",
        )


def build_classifier(settings: Optional[Settings] = None) -> TypeClassifier:
    """Create a classifier, wiring Gemini in when it is configured."""
    settings = settings or Settings()
    backend: Optional[StructuredBackend] = None
    if settings.ai_configured:
        from cip.classifier.gemini import GeminiClient

        backend = GeminiClient(settings)
    else:
        logger.warning("classifier.ai_disabled reason=no_api_key_or_disabled")
    return TypeClassifier(backend=backend, settings=settings)
