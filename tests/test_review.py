import pytest

from cip.errors import CandidateNotFound, CatalogWriteError, InvalidCandidateTransition
from cip.models import CandidateFilter, CandidateStatus, NewListing

from fakes import make_place


def _candidate(container, store, **overrides):
    raw = store.add_raw_place(make_place(**overrides))
    return container.pipeline.process(raw.id).candidate


def test_approve_creates_verified_listing(container, store, catalog):
    candidate = _candidate(container, store)
    result = container.review.approve(candidate.id, "admin-1")

    listing = catalog.listings[result.entry_id]
    assert listing.source_candidate_id == candidate.id
    assert listing.is_verified
    assert not listing.is_featured
    assert listing.region_id == 2
    assert listing.type_id == 1
    assert listing.name == "Doi Inthanon Camping Ground"

    updated = store.get_candidate(candidate.id)
    assert updated.status == CandidateStatus.IMPORTED
    assert updated.imported_to == result.entry_id
    assert updated.reviewer_id == "admin-1"
    raw = store.get_raw_place(candidate.raw_place_id)
    assert raw.is_imported
    assert raw.imported_to_entry_id == result.entry_id


def test_approve_applies_edits_and_owner(container, store, catalog, notifier):
    candidate = _candidate(container, store)
    result = container.review.approve(
        candidate.id,
        "admin-1",
        edits={"name": "Inthanon Camp", "description": "Pine forest sites"},
        owner_id="owner-9",
        featured=True,
    )
    listing = catalog.listings[result.entry_id]
    assert listing.name == "Inthanon Camp"
    assert listing.description == "Pine forest sites"
    assert listing.owner_id == "owner-9"
    assert listing.is_featured
    assert notifier.calls == [("owner-9", result.entry_id, "Inthanon Camp")]


def test_approve_uses_provider_photos_capped(container, store, catalog):
    candidate = _candidate(container, store)
    result = container.review.approve(candidate.id, "admin-1")

    photos = catalog.photos[result.entry_id]
    assert result.photos_attached == 3
    assert [p.url for p in photos] == ["ref-a", "ref-b", "ref-c"]
    assert [p.is_primary for p in photos] == [True, False, False]
    assert [p.sort_order for p in photos] == [0, 1, 2]
    assert photos[0].alt_text == "Doi Inthanon Camping Ground - Photo 1"


def test_approve_prefers_downloaded_photos(container, store, catalog):
    candidate = _candidate(container, store)
    store.photos["ChIJ-doi-inthanon"] = ["https://cdn.example/1.jpg", "https://cdn.example/2.jpg"]
    result = container.review.approve(candidate.id, "admin-1")
    assert [p.url for p in catalog.photos[result.entry_id]] == [
        "https://cdn.example/1.jpg",
        "https://cdn.example/2.jpg",
    ]


def test_approve_twice_is_rejected(container, store):
    candidate = _candidate(container, store)
    container.review.approve(candidate.id, "admin-1")
    with pytest.raises(InvalidCandidateTransition):
        container.review.approve(candidate.id, "admin-2")


def test_approve_rejected_candidate_is_invalid(container, store):
    candidate = _candidate(container, store)
    container.review.reject(candidate.id, "admin-1", "Closed")
    with pytest.raises(InvalidCandidateTransition) as excinfo:
        container.review.approve(candidate.id, "admin-1")
    assert excinfo.value.current == "rejected"


def test_approve_missing_candidate(container):
    with pytest.raises(CandidateNotFound):
        container.review.approve("cand-404", "admin-1")


def test_catalog_failure_leaves_candidate_resumable(container, store, catalog):
    candidate = _candidate(container, store)
    catalog.fail_create = True
    with pytest.raises(CatalogWriteError):
        container.review.approve(candidate.id, "admin-1")
    assert store.get_candidate(candidate.id).status == CandidateStatus.APPROVED

    catalog.fail_create = False
    result = container.review.approve(candidate.id, "admin-1")
    assert store.get_candidate(candidate.id).status == CandidateStatus.IMPORTED
    assert len(catalog.listings) == 1
    assert result.entry_id in catalog.listings


def test_resume_reuses_existing_entry(container, store, catalog):
    candidate = _candidate(container, store)
    store.transition_candidate(candidate.id, [CandidateStatus.PENDING], CandidateStatus.APPROVED)
    catalog.listings["site-earlier"] = NewListing(source_candidate_id=candidate.id, name="Earlier attempt")

    result = container.review.approve(candidate.id, "admin-1")
    assert result.entry_id == "site-earlier"
    assert len(catalog.listings) == 1


def test_notifier_failure_is_ignored(container, store, notifier):
    notifier.fail = True
    candidate = _candidate(container, store)
    result = container.review.approve(candidate.id, "admin-1", owner_id="owner-1")
    assert result.entry_id
    assert notifier.calls


def test_reject_records_reason(container, store):
    candidate = _candidate(container, store)
    rejected = container.review.reject(candidate.id, "admin-1", "Permanently closed", notes="Checked")
    assert rejected.status == CandidateStatus.REJECTED
    assert rejected.rejection_reason == "Permanently closed"
    assert rejected.admin_notes == "Checked"
    assert rejected.reviewer_id == "admin-1"
    assert rejected.reviewed_at is not None


def test_reject_imported_candidate_is_invalid(container, store):
    candidate = _candidate(container, store)
    container.review.approve(candidate.id, "admin-1")
    with pytest.raises(InvalidCandidateTransition):
        container.review.reject(candidate.id, "admin-1", "Changed my mind")


def test_reject_missing_candidate(container):
    with pytest.raises(CandidateNotFound):
        container.review.reject("cand-404", "admin-1", "Nope")


def test_bulk_approve_collects_failures(container, store, catalog):
    first = _candidate(container, store, place_id="p-1")
    second = _candidate(container, store, place_id="p-2", name="Second Camping")
    container.review.reject(second.id, "admin-1", "Duplicate")

    result = container.review.bulk_approve([first.id, second.id, "cand-404"], "admin-1")

    assert len(result.imported) == 1
    assert result.imported[0] in catalog.listings
    assert catalog.photos == {}
    assert [f.candidate_id for f in result.failed] == [second.id, "cand-404"]
    assert "cand-404" in result.failed[1].error


def test_list_candidates_filters_and_orders(container, store):
    _candidate(container, store, place_id="p-1", name="Hilltop", types=["park"])
    _candidate(container, store, place_id="p-2")
    _candidate(container, store, place_id="p-3", name="Pha Tak Suea", formatted_phone_number="042000111")

    page = container.review.list_candidates(CandidateFilter(status=CandidateStatus.PENDING))
    assert page.total == 2
    assert [c.confidence for c in page.items] == [0.95, 0.5]

    dupes = container.review.list_candidates(CandidateFilter(is_duplicate=True))
    assert dupes.total == 1

    confident = container.review.list_candidates(CandidateFilter(min_confidence=0.9))
    assert confident.total == 2


def test_comparison_recomputes_duplicates(container, store):
    candidate = _candidate(container, store, name="Pha Tak Suea", formatted_phone_number="042000111")
    comparison = container.review.get_comparison(candidate.id)

    assert comparison.original["name"] == "Pha Tak Suea"
    assert comparison.final_data["name"] == "Pha Tak Suea"
    assert comparison.duplicate_comparison.is_duplicate
    assert comparison.duplicate_comparison.similar[0].entry_id == "site-existing"
    assert comparison.duplicate_comparison.similar[0].distance_km is not None


def test_losing_the_claim_does_not_write_catalog(container, store, catalog):
    candidate = _candidate(container, store)
    claim = store.transition_candidate

    def claimed_elsewhere(candidate_id, from_statuses, to_status, fields=None):
        # Another reviewer wins the pending -> approved update first.
        claim(candidate_id, from_statuses, to_status, {"reviewer_id": "admin-winner"})
        return False

    store.transition_candidate = claimed_elsewhere
    with pytest.raises(InvalidCandidateTransition) as excinfo:
        container.review.approve(candidate.id, "admin-late")

    assert excinfo.value.current == "approved"
    assert catalog.listings == {}
    assert store.get_candidate(candidate.id).reviewer_id == "admin-winner"


def test_reject_during_import_is_not_reported_as_imported(container, store, catalog):
    candidate = _candidate(container, store)
    create = catalog.create_listing

    def create_then_reject(listing):
        entry_id = create(listing)
        container.review.reject(candidate.id, "admin-2", "Closed for good")
        return entry_id

    catalog.create_listing = create_then_reject
    with pytest.raises(InvalidCandidateTransition) as excinfo:
        container.review.approve(candidate.id, "admin-1")

    assert excinfo.value.current == "rejected"
    assert store.get_candidate(candidate.id).status == CandidateStatus.REJECTED
    assert not store.get_raw_place(candidate.raw_place_id).is_imported


def test_retry_after_photo_failure_attaches_missing_photos(container, store, catalog):
    candidate = _candidate(container, store)
    catalog.fail_photo_at = 1
    with pytest.raises(CatalogWriteError):
        container.review.approve(candidate.id, "admin-1")
    assert store.get_candidate(candidate.id).status == CandidateStatus.APPROVED

    catalog.fail_photo_at = None
    result = container.review.approve(candidate.id, "admin-1")

    assert len(catalog.listings) == 1
    photos = catalog.photos[result.entry_id]
    assert result.photos_attached == 3
    assert sorted(p.sort_order for p in photos) == [0, 1, 2]
    assert [p.is_primary for p in photos if p.sort_order == 0] == [True]
    assert store.get_candidate(candidate.id).status == CandidateStatus.IMPORTED


def test_bulk_approve_continues_past_failure(container, store):
    first = _candidate(container, store, place_id="p-1")
    last = _candidate(container, store, place_id="p-2", name="Riverside Camping")

    result = container.review.bulk_approve([first.id, "cand-404", last.id], "admin-1")

    assert len(result.imported) == 2
    assert [f.candidate_id for f in result.failed] == ["cand-404"]
    assert store.get_candidate(last.id).status == CandidateStatus.IMPORTED
