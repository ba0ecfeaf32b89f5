"""Tests for LocationService and its wiring from settings."""

from unittest.mock import MagicMock

import pytest

from placefinder.geocoding import build_location_service
from placefinder.settings import Settings, _as_bool


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = ""
    resp.json.return_value = payload
    return resp


GEODB_LONDON = {
    "data": [
        {
            "id": 2643743,
            "name": "London",
            "country": "United Kingdom",
            "countryCode": "GB",
            "region": "England",
            "latitude": 51.5074,
            "longitude": -0.1278,
            "population": 8961989,
        },
        {
            "id": 6058560,
            "name": "London",
            "country": "Canada",
            "countryCode": "CA",
            "region": "Ontario",
            "latitude": 42.9849,
            "longitude": -81.2453,
            "population": 383822,
        },
    ]
}


@pytest.fixture
def settings(monkeypatch):
    for name in ("GEODB_API_KEY", "PLACEFINDER_OFFLINE", "PLACEFINDER_PAGE_SIZE", "PLACEFINDER_DEBOUNCE_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GEODB_API_KEY", "test-key")
    monkeypatch.setenv("PLACEFINDER_DEBOUNCE_SECONDS", "0")
    return Settings()


def test_short_query_returns_popular_with_no_network_calls(settings):
    session = MagicMock()
    service = build_location_service(settings, session=session)

    results = service.search("L")

    assert len(results) == 8
    session.get.assert_not_called()


def test_repeated_search_resolves_once(settings):
    session = MagicMock()
    session.get.return_value = _response(payload=GEODB_LONDON)
    service = build_location_service(settings, session=session)

    first = service.search("London")
    second = service.search("London")

    assert session.get.call_count == 1
    assert [c.id for c in first] == ["geodb-2643743", "geodb-6058560"]
    assert second == first


def test_retyped_query_is_served_from_cache(settings):
    session = MagicMock()
    session.get.return_value = _response(payload=GEODB_LONDON)
    service = build_location_service(settings, session=session)

    service.search("London")
    service.search("L")
    service.search("London")

    assert session.get.call_count == 1


def test_search_respects_limit(settings):
    session = MagicMock()
    session.get.return_value = _response(payload=GEODB_LONDON)
    service = build_location_service(settings, session=session)

    assert len(service.search("London", limit=1)) == 1


def test_offline_setting_skips_network(settings):
    settings.OFFLINE = True
    session = MagicMock()
    service = build_location_service(settings, session=session)

    results = service.search("Tokyo")

    session.get.assert_not_called()
    assert results[0].id == "local-tokyo"


def test_geodb_429_falls_through_to_gazetteer(settings):
    session = MagicMock()
    session.get.return_value = _response(429)
    service = build_location_service(settings, session=session)

    results = service.search("Tokyo")

    assert results[0].id == "local-tokyo"
    assert service.last_advisory is None


def test_clear_cache_forces_new_resolution(settings):
    session = MagicMock()
    session.get.return_value = _response(payload=GEODB_LONDON)
    service = build_location_service(settings, session=session)
    service.search("London")
    service.search("L")

    assert service.clear_cache() is True
    service.resolver.throttle.reset()
    service.search("London")

    assert session.get.call_count == 2


def test_load_more_is_noop_after_short_page(settings):
    session = MagicMock()
    session.get.return_value = _response(payload=GEODB_LONDON)
    service = build_location_service(settings, session=session)
    first = service.search("London")

    assert service.has_more is False
    assert service.load_more() == first
    assert session.get.call_count == 1


def test_get_popular_and_country_listing(settings):
    service = build_location_service(settings, session=MagicMock())

    assert len(service.get_popular(5)) == 5
    japanese = service.get_cities_by_country("JP", 2)
    assert [c.name for c in japanese] == ["Tokyo", "Osaka"]


def test_search_nearby_never_raises(settings):
    service = build_location_service(settings, session=MagicMock())
    assert service.search_nearby(200.0, 0.0) == []


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("PLACEFINDER_PAGE_SIZE", "25")
    monkeypatch.setenv("PLACEFINDER_OFFLINE", "yes")
    monkeypatch.setenv("NOMINATIM_MIN_INTERVAL", "0.2")
    monkeypatch.setenv("PLACEFINDER_HTTP_TIMEOUT", "not-a-number")

    s = Settings()

    assert s.PAGE_SIZE == 25
    assert s.OFFLINE is True
    # Never faster than the public usage policy allows
    assert s.NOMINATIM_MIN_INTERVAL == 1.05
    assert s.HTTP_TIMEOUT == 10.0


@pytest.mark.parametrize("raw, expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("", False), (None, False)])
def test_as_bool(raw, expected):
    assert _as_bool(raw) is expected
