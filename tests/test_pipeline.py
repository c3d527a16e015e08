import pytest

from cip.errors import RawPlaceAlreadyImported, RawPlaceNotFound
from cip.models import (
    CandidateStatus,
    CatalogEntry,
    DuplicateDetection,
    PlacePayload,
    SimilarityResult,
    SyncStatus,
    TypeClassification,
)
from cip.pipeline.orchestrator import aggregate_confidence, validation_warnings

from fakes import make_place


def _classification(confidence: float) -> TypeClassification:
    return TypeClassification(type_id=1, type_name="Camping", confidence=confidence)


def _similar(score: float) -> SimilarityResult:
    return SimilarityResult(entry_id="site-1", name="Somewhere", score=score)


def test_aggregate_confidence_duplicate_floor():
    detection = DuplicateDetection(is_duplicate=True, duplicate_of="site-1", top_score=0.95)
    assert aggregate_confidence(detection, _classification(0.6)) == 0.9
    assert aggregate_confidence(detection, _classification(0.95)) == 0.95


def test_aggregate_confidence_ambiguous_discount():
    detection = DuplicateDetection(top_score=0.6, similar=[_similar(0.6)])
    assert aggregate_confidence(detection, _classification(0.95)) == 0.76


def test_aggregate_confidence_clear():
    detection = DuplicateDetection(top_score=0.5)
    assert aggregate_confidence(detection, _classification(0.85)) == 0.85


def test_validation_warnings_order():
    place = PlacePayload.model_validate(
        make_place(formatted_phone_number=None, website=None, rating=2.5)
    )
    detection = DuplicateDetection(top_score=0.6, similar=[_similar(0.6), _similar(0.55)])
    assert validation_warnings(place, detection) == [
        "Missing phone number",
        "Missing website",
        "Low or missing rating",
        "2 similar listing(s) found",
    ]


def test_validation_warnings_uses_international_phone():
    place = PlacePayload.model_validate(
        make_place(formatted_phone_number=None, international_phone_number="+66 53 286 730")
    )
    assert validation_warnings(place, DuplicateDetection()) == []


def test_process_creates_pending_candidate(container, store):
    raw = store.add_raw_place(make_place())
    outcome = container.pipeline.process(raw.id)

    candidate = outcome.candidate
    assert outcome.inserted
    assert candidate.status == CandidateStatus.PENDING
    assert candidate.confidence == 0.95
    assert candidate.suggested_region_id == 2
    assert candidate.suggested_type_id == 1
    assert candidate.warnings == []
    assert candidate.final_data["external_id"] == "ChIJ-doi-inthanon"
    assert candidate.final_data["region_id"] == 2
    assert candidate.final_data["photos"] == ["ref-a", "ref-b", "ref-c", "ref-d"]
    assert store.status_history == [
        (raw.id, SyncStatus.PROCESSING),
        (raw.id, SyncStatus.COMPLETED),
    ]


def test_process_without_coordinates_uses_default_region(container, store, settings):
    raw = store.add_raw_place(make_place(geometry=None))
    outcome = container.pipeline.process(raw.id)
    assert outcome.candidate.suggested_region_id == settings.default_region_id


def test_process_far_from_any_province_uses_default_region(container, store, settings):
    raw = store.add_raw_place(make_place(geometry={"location": {"lat": 7.88, "lng": 98.39}}))
    outcome = container.pipeline.process(raw.id)
    assert outcome.candidate.suggested_region_id == settings.default_region_id


def test_duplicate_is_auto_rejected(container, store):
    raw = store.add_raw_place(
        make_place(name="Pha Tak Suea", formatted_phone_number="042 000 111", rating=None)
    )
    outcome = container.pipeline.process(raw.id)

    candidate = outcome.candidate
    assert candidate.is_duplicate
    assert candidate.duplicate_of == "site-existing"
    assert candidate.status == CandidateStatus.REJECTED
    assert candidate.confidence >= 0.9
    assert "Low or missing rating" in candidate.warnings
    assert "1 similar listing(s) found" in candidate.warnings


def test_reprocessing_updates_same_candidate(container, store):
    raw = store.add_raw_place(make_place())
    first = container.pipeline.process(raw.id)
    store.raw_places[raw.id] = store.raw_places[raw.id].model_copy(
        update={"payload": make_place(website=None)}
    )
    second = container.pipeline.process(raw.id)

    assert not second.inserted
    assert second.candidate.id == first.candidate.id
    assert len(store.candidates) == 1
    assert second.candidate.warnings == ["Missing website"]


def test_reprocessing_keeps_human_review(container, store):
    raw = store.add_raw_place(make_place())
    first = container.pipeline.process(raw.id)
    store.transition_candidate(
        first.candidate.id,
        [CandidateStatus.PENDING],
        CandidateStatus.APPROVED,
        {"reviewer_id": "admin-1"},
    )

    second = container.pipeline.process(raw.id)
    assert second.candidate.status == CandidateStatus.APPROVED
    assert second.candidate.reviewer_id == "admin-1"


def test_missing_raw_place(container):
    with pytest.raises(RawPlaceNotFound):
        container.pipeline.process("raw-missing")


def test_already_imported_raw_place(container, store):
    raw = store.add_raw_place(make_place(), is_imported=True)
    with pytest.raises(RawPlaceAlreadyImported):
        container.pipeline.process(raw.id)
    assert store.status_history == []


def test_failure_marks_raw_place_failed(container, store):
    raw = store.add_raw_place(make_place())
    store.fail_insert_for.add(raw.id)
    with pytest.raises(RuntimeError):
        container.pipeline.process(raw.id)
    assert store.raw_places[raw.id].status == SyncStatus.FAILED


def test_name_containment_at_same_point_is_auto_rejected(container, store, catalog):
    catalog.entries["site-sunset"] = CatalogEntry(
        id="site-sunset",
        name="Sunset Camping",
        address="Moo 3, Pai, Mae Hong Son 58130",
        latitude=19.3590,
        longitude=98.4410,
    )
    raw = store.add_raw_place(
        make_place(
            place_id="p-sunset",
            name="Sunset Camp",
            formatted_address="Pai, Mae Hong Son",
            geometry={"location": {"lat": 19.3590, "lng": 98.4410}},
            formatted_phone_number=None,
            website=None,
        )
    )
    outcome = container.pipeline.process(raw.id)

    assert outcome.detection.similar[0].entry_id == "site-sunset"
    assert outcome.detection.similar[0].distance_km == 0.0
    assert outcome.detection.top_score > 0.8
    assert outcome.candidate.is_duplicate
    assert outcome.candidate.duplicate_of == "site-sunset"
    assert outcome.candidate.status == CandidateStatus.REJECTED
    assert outcome.candidate.confidence >= 0.9
