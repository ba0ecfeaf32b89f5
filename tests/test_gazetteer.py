"""
Unit tests for the GazetteerIndex and GazetteerStrategy classes.
"""

import json

import pytest

from placefinder.geocoding.fallback import POPULAR_FALLBACK
from placefinder.geocoding.gazetteer import GazetteerIndex, GazetteerStrategy, haversine_m
from placefinder.geocoding.models import TierOutcome


@pytest.fixture(scope="module")
def index():
    idx = GazetteerIndex()
    idx.ensure_loaded()
    return idx


def _write_dataset(path, cities):
    path.write_text(json.dumps({"cities": cities}), encoding="utf-8")
    return path


class TestGazetteerIndex:
    """Test suite for GazetteerIndex against the bundled dataset."""

    def test_bundled_dataset_loads(self, index):
        assert index.is_ready
        assert index.size > 50

    def test_exact_name_ranks_first(self, index):
        results = index.search("Tokyo")
        assert results[0].id == "local-tokyo"
        assert results[0].latitude == pytest.approx(35.6762)
        assert results[0].longitude == pytest.approx(139.6503)

    def test_match_inside_field(self, index):
        """Matching does not have to start at the beginning of a field."""
        ids = [c.id for c in index.search("angeles")]
        assert "local-los-angeles" in ids

    def test_typo_tolerance(self, index):
        ids = [c.id for c in index.search("Barcelna")]
        assert ids[0] == "local-barcelona"

    def test_alternate_names_are_searched(self, index):
        ids = [c.id for c in index.search("Firenze")]
        assert ids[0] == "local-florence"

    def test_ties_break_on_population(self, index):
        results = [c for c in index.search("London") if c.name == "London"]
        assert [c.country_code for c in results] == ["GB", "CA"]

    def test_short_query_returns_nothing(self, index):
        assert index.search("L") == []
        assert index.search(" ") == []

    def test_unrelated_query_returns_nothing(self, index):
        assert index.search("Qwxzq") == []

    def test_offset_and_limit(self, index):
        everything = index.search("an", limit=100)
        page = index.search("an", limit=5, offset=5)
        assert page == everything[5:10]

    def test_popular_cities_by_population(self, index):
        popular = index.get_popular_cities(3)
        assert [c.id for c in popular] == ["local-tokyo", "local-delhi", "local-shanghai"]

    def test_cities_by_country(self, index):
        italian = index.get_cities_by_country("it", 3)
        assert [c.name for c in italian] == ["Rome", "Milan", "Naples"]

    def test_cities_within_radius(self, index):
        hits = index.cities_within(35.68, 139.69, 50_000)
        names = [c.name for c, _ in hits]
        assert names[0] == "Tokyo"
        assert "Yokohama" in names
        assert "Osaka" not in names

    def test_alternate_name_lookups(self, index):
        assert index.alternate_names("Munich")["de"] == "München"
        assert index.canonical_for_alternate("münchen", "de") == "Munich"
        assert "ja" in index.alternate_languages()


class TestGazetteerLoading:
    """Loading behaviour with custom datasets."""

    def test_missing_file_degrades_to_empty(self, tmp_path):
        idx = GazetteerIndex(tmp_path / "missing.json")
        assert idx.search("Tokyo") == []
        assert idx.is_ready
        assert idx.size == 0

    def test_bad_json_degrades_to_empty(self, tmp_path):
        path = tmp_path / "cities.json"
        path.write_text("{not json", encoding="utf-8")
        idx = GazetteerIndex(path)
        assert idx.search("Tokyo") == []

    def test_empty_index_uses_popular_fallback(self, tmp_path):
        idx = GazetteerIndex(tmp_path / "missing.json")
        idx.ensure_loaded()
        assert idx.get_popular_cities(4) == list(POPULAR_FALLBACK[:4])

    def test_popular_fallback_while_not_loaded(self, tmp_path):
        idx = GazetteerIndex(tmp_path / "missing.json")
        assert idx.get_popular_cities(2) == list(POPULAR_FALLBACK[:2])

    def test_malformed_rows_are_skipped(self, tmp_path):
        path = _write_dataset(
            tmp_path / "cities.json",
            [
                {"id": "ok", "name": "Okville", "country": "Nowhere", "latitude": 1.0, "longitude": 2.0},
                {"id": "no-coords", "name": "Nocoords", "country": "Nowhere"},
                {"id": "bad-lat", "name": "Badlat", "country": "Nowhere", "latitude": 123.0, "longitude": 2.0},
            ],
        )
        idx = GazetteerIndex(path)
        idx.ensure_loaded()
        assert idx.size == 1

    def test_build_is_idempotent(self, tmp_path):
        path = _write_dataset(
            tmp_path / "cities.json",
            [{"id": "a", "name": "Alpha", "country": "X", "latitude": 0.0, "longitude": 0.0}],
        )
        idx = GazetteerIndex(path)
        idx.ensure_loaded()
        path.write_text(json.dumps({"cities": []}), encoding="utf-8")
        idx.ensure_loaded()
        assert idx.size == 1

    def test_background_load(self):
        idx = GazetteerIndex()
        idx.load_in_background()
        assert idx.wait_until_ready(10.0)
        assert idx.size > 0


class TestGazetteerStrategy:
    def test_search_success(self, index):
        strategy = GazetteerStrategy(index)
        result = strategy.search("Tokyo")
        assert result.outcome is TierOutcome.SUCCESS
        assert strategy.requires_network is False
        assert strategy.get_source_name() == "local"

    def test_pages_by_slicing(self, index):
        strategy = GazetteerStrategy(index)
        first = strategy.search("an", limit=3, page=0).candidates
        second = strategy.search("an", limit=3, page=1).candidates
        assert not {c.id for c in first} & {c.id for c in second}

    def test_no_match_is_no_data(self, index):
        assert GazetteerStrategy(index).search("Qwxzq").outcome is TierOutcome.NO_DATA


def test_haversine_known_distance():
    # London to Paris is roughly 344 km
    assert haversine_m(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343_500, rel=0.01)
