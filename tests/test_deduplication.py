import pytest

from cip.models import CatalogEntry
from cip.pipeline.deduplication import DeduplicationEngine, composite_score, distance_bonus

from fakes import InMemoryCatalog


LAT, LNG = 18.5880, 98.4870
NAME = "Doi Inthanon Camping Ground"
ADDRESS = "Ban Luang, Chom Thong, Chiang Mai 50160"


def _entry(entry_id: str, **overrides) -> CatalogEntry:
    fields = {"id": entry_id, "name": "Mountain View Hostel", "address": None}
    fields.update(overrides)
    return CatalogEntry(**fields)


def _detect(settings, entries, **kwargs):
    engine = DeduplicationEngine(InMemoryCatalog(entries), settings)
    params = {"phone": None, "website": None, "lat": LAT, "lng": LNG}
    params.update(kwargs)
    return engine.detect(NAME, ADDRESS, **params)


def test_distance_bonus_bands():
    assert distance_bonus(0.05) == 0.3
    assert distance_bonus(0.3) == 0.15
    assert distance_bonus(0.6) == 0.0
    assert distance_bonus(None) == 0.0


def test_composite_score_weights_name_and_address():
    entry = _entry("a", name=NAME, address=ADDRESS)
    assert composite_score(NAME, ADDRESS, entry, None) == pytest.approx(0.7)
    assert composite_score(NAME, ADDRESS, entry, 0.05) == pytest.approx(1.0)


def test_no_matches(settings):
    detection = _detect(settings, [_entry("far", latitude=13.75, longitude=100.50)])
    assert not detection.is_duplicate
    assert detection.duplicate_of is None
    assert detection.top_score == 0.0
    assert detection.similar == []


def test_name_and_address_without_coordinates_is_not_duplicate(settings):
    detection = _detect(
        settings,
        [_entry("same-name", name=NAME, address=ADDRESS)],
        lat=None,
        lng=None,
    )
    assert not detection.is_duplicate
    assert detection.top_score == pytest.approx(0.7)
    assert detection.similar[0].distance_km is None


def test_name_match_nearby_gets_location_boost(settings):
    entry = _entry("same-spot", name=NAME, latitude=LAT + 0.0004, longitude=LNG)
    detection = _detect(settings, [entry])
    # 0.4 name + 0.3 proximity bonus, plus 0.2 because location also matched.
    assert detection.top_score == pytest.approx(0.9)
    assert detection.is_duplicate
    assert detection.duplicate_of == "same-spot"


def test_location_only_match_scores_base(settings):
    entry = _entry("neighbour", latitude=LAT + 0.003, longitude=LNG)
    detection = _detect(settings, [entry])
    assert not detection.is_duplicate
    assert detection.top_score == pytest.approx(0.6)
    assert detection.similar[0].entry_id == "neighbour"
    assert detection.similar[0].distance_km == pytest.approx(0.334, abs=0.01)


def test_phone_match_is_duplicate(settings):
    entry = _entry("by-phone", phone="053-286-730", latitude=13.75, longitude=100.50)
    detection = _detect(settings, [entry], phone="053 286 730")
    assert detection.is_duplicate
    assert detection.top_score == 1.0
    assert detection.duplicate_of == "by-phone"


def test_website_match_ignores_scheme_and_www(settings):
    entry = _entry("by-site", website="http://doiinthanon-camp.example/booking")
    detection = _detect(settings, [entry], website="https://www.doiinthanon-camp.example/")
    assert detection.is_duplicate
    assert detection.duplicate_of == "by-site"


def test_inactive_entries_are_ignored(settings):
    entry = _entry("closed", phone="053286730", is_active=False)
    detection = _detect(settings, [entry], phone="053286730")
    assert not detection.is_duplicate
    assert detection.similar == []


def test_results_ranked_and_capped(settings):
    entries = [
        _entry(f"spot-{i}", name=f"Spot {i}", latitude=LAT + 0.0005 * i, longitude=LNG)
        for i in range(1, 8)
    ]
    entries.append(_entry("by-phone", name="Elsewhere", phone="053286730"))
    detection = _detect(settings, entries, phone="053286730")
    assert len(detection.similar) == 5
    assert detection.similar[0].entry_id == "by-phone"
    scores = [s.score for s in detection.similar]
    assert scores == sorted(scores, reverse=True)
