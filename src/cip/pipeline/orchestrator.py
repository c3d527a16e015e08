"""Per-place pipeline: dedup, classify, geocode, score, upsert."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from cip.classifier.type_classifier import TypeClassifier
from cip.config import Settings
from cip.errors import RawPlaceAlreadyImported, RawPlaceNotFound
from cip.models import (
    CandidateDraft,
    CandidateStatus,
    DuplicateDetection,
    ImportCandidate,
    PlacePayload,
    RawPlace,
    SyncStatus,
    TypeClassification,
    clamp_unit,
)
from cip.pipeline.deduplication import DeduplicationEngine
from cip.pipeline.province_index import ProvinceIndex
from cip.pipeline.store import PipelineStore
from cip.pipeline.upsert import upsert_candidate
from cip.utils.logging import get_logger


logger = get_logger(__name__)

DUPLICATE_CONFIDENCE_FLOOR = 0.9
AMBIGUOUS_SIMILARITY = 0.5
AMBIGUOUS_DISCOUNT = 0.8
LOW_RATING = 3.0

WARN_MISSING_PHONE = "Missing phone number"
WARN_MISSING_WEBSITE = "Missing website"
WARN_LOW_RATING = "Low or missing rating"


def aggregate_confidence(detection: DuplicateDetection, classification: TypeClassification) -> float:
    """Combine classifier confidence with the duplicate verdict."""
    confidence = classification.confidence
    if detection.is_duplicate:
        confidence = max(DUPLICATE_CONFIDENCE_FLOOR, confidence)
    elif detection.top_score > AMBIGUOUS_SIMILARITY:
        confidence = confidence * AMBIGUOUS_DISCOUNT
    return round(clamp_unit(confidence), 2)


def validation_warnings(place: PlacePayload, detection: DuplicateDetection) -> list[str]:
    warnings: list[str] = []
    if not place.phone:
        warnings.append(WARN_MISSING_PHONE)
    if not place.website:
        warnings.append(WARN_MISSING_WEBSITE)
    if not place.rating or place.rating < LOW_RATING:
        warnings.append(WARN_LOW_RATING)
    if detection.similar:
        warnings.append(f"{len(detection.similar)} similar listing(s) found")
    return warnings


def build_final_data(
    raw_place: RawPlace, place: PlacePayload, region_id: int, type_id: int
) -> dict[str, Any]:
    """Catalog-ready payload stored on the candidate."""
    return {
        "external_id": raw_place.external_id,
        "name": place.name,
        "address": place.formatted_address,
        "latitude": place.lat,
        "longitude": place.lng,
        "phone": place.phone,
        "website": place.website,
        "rating": place.rating,
        "user_ratings_total": place.user_ratings_total,
        "price_level": place.price_level,
        "types": list(place.types),
        "business_status": place.business_status,
        "photos": [photo.photo_reference for photo in place.photos],
        "region_id": region_id,
        "type_id": type_id,
    }


@dataclass
class ProcessOutcome:
    candidate: ImportCandidate
    inserted: bool
    detection: DuplicateDetection
    classification: TypeClassification


class CandidatePipeline:
    """Turn one raw place into an import candidate."""

    def __init__(
        self,
        store: PipelineStore,
        dedup: DeduplicationEngine,
        classifier: TypeClassifier,
        provinces: ProvinceIndex,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.dedup = dedup
        self.classifier = classifier
        self.provinces = provinces
        self.settings = settings or Settings()

    def process(self, raw_place_id: str) -> ProcessOutcome:
        raw_place = self.store.get_raw_place(raw_place_id)
        if raw_place is None:
            raise RawPlaceNotFound(raw_place_id)
        if raw_place.is_imported:
            raise RawPlaceAlreadyImported(raw_place_id)

        self.store.set_raw_place_status(raw_place_id, SyncStatus.PROCESSING)
        try:
            outcome = self._run(raw_place)
        except Exception:
            self._mark_failed(raw_place_id)
            raise

        self.store.set_raw_place_status(raw_place_id, SyncStatus.COMPLETED)
        logger.info(
            "pipeline.item.ok raw_place_id=%s candidate_id=%s confidence=%.2f duplicate=%s inserted=%s",
            raw_place_id,
            outcome.candidate.id,
            outcome.candidate.confidence,
            outcome.detection.is_duplicate,
            outcome.inserted,
        )
        return outcome

    def _run(self, raw_place: RawPlace) -> ProcessOutcome:
        place = raw_place.place()

        detection = self.dedup.detect(
            place.name,
            place.formatted_address,
            phone=place.phone,
            website=place.website,
            lat=place.lat,
            lng=place.lng,
        )
        classification = self.classifier.classify(place)
        region_id = self._region_for(place)

        draft = CandidateDraft(
            raw_place_id=raw_place.id,
            confidence=aggregate_confidence(detection, classification),
            is_duplicate=detection.is_duplicate,
            duplicate_of=detection.duplicate_of,
            final_data=build_final_data(raw_place, place, region_id, classification.type_id),
            suggested_region_id=region_id,
            suggested_type_id=classification.type_id,
            status=CandidateStatus.REJECTED if detection.is_duplicate else CandidateStatus.PENDING,
            warnings=validation_warnings(place, detection),
        )
        result = upsert_candidate(self.store, draft)
        return ProcessOutcome(
            candidate=result.candidate,
            inserted=result.inserted,
            detection=detection,
            classification=classification,
        )

    def _region_for(self, place: PlacePayload) -> int:
        if place.lat is not None and place.lng is not None:
            match = self.provinces.match_by_coordinates(place.lat, place.lng)
            if match is not None:
                return match.id
        return self.settings.default_region_id

    def _mark_failed(self, raw_place_id: str) -> None:
        try:
            self.store.set_raw_place_status(raw_place_id, SyncStatus.FAILED)
        except Exception as exc:
            logger.warning("pipeline.mark_failed.failed raw_place_id=%s error=%s", raw_place_id, exc)
