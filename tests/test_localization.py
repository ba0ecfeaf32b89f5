"""Tests for the LocalizationMapper and LocationCandidate display rules."""

import pytest

from placefinder.geocoding.gazetteer import GazetteerIndex
from placefinder.geocoding.localization import LocalizationMapper
from placefinder.geocoding.models import LocationCandidate


@pytest.fixture(scope="module")
def mapper():
    index = GazetteerIndex()
    index.ensure_loaded()
    return LocalizationMapper(index)


def _candidate(name="Florence", country="Italy", localized_name=None):
    return LocationCandidate(
        id="local-x",
        name=name,
        country=country,
        latitude=43.77,
        longitude=11.25,
        localized_name=localized_name,
    )


def test_static_table_both_directions(mapper):
    assert mapper.to_localized("Florence", "it") == "Firenze"
    assert mapper.to_canonical("Firenze", "it") == "Florence"
    assert mapper.to_canonical("firenze", "it") == "Florence"


def test_gazetteer_alternate_names_are_second_source(mapper):
    # Not in the static table, only in the dataset
    assert mapper.to_localized("Lisbon", "pt") == "Lisboa"
    assert mapper.to_canonical("Lisboa", "pt") == "Lisbon"


def test_unknown_names_are_returned_unchanged(mapper):
    assert mapper.to_localized("Springfield", "it") == "Springfield"
    assert mapper.to_canonical("Springfield", "it") == "Springfield"
    assert mapper.to_localized("Florence", "xx") == "Florence"


def test_mapper_without_gazetteer_uses_static_table():
    mapper = LocalizationMapper()
    assert mapper.to_localized("Munich", "de") == "München"
    assert mapper.to_localized("Lisbon", "pt") == "Lisbon"


def test_canonicalize_query_tries_every_language(mapper):
    assert mapper.canonicalize_query("Firenze", "en") == "Florence"
    assert mapper.canonicalize_query("  Köln ", "en") == "Cologne"
    assert mapper.canonicalize_query("Florence", "en") == "Florence"
    assert mapper.canonicalize_query("Zzyzx", "it") == "Zzyzx"


def test_annotate_sets_localized_name_for_other_languages(mapper):
    annotated = mapper.annotate(_candidate(), "it")
    assert annotated.localized_name == "Firenze"


def test_annotate_never_sets_localized_name_for_english(mapper):
    annotated = mapper.annotate(_candidate(localized_name="Firenze"), "en")
    assert annotated.localized_name is None


def test_annotate_skips_identical_spelling(mapper):
    annotated = mapper.annotate(_candidate(name="Paris", country="France"), "fr")
    assert annotated.localized_name is None


@pytest.mark.parametrize(
    "value, expected",
    [("Firenze", "Firenze"), ("florence", None), ("FLORENCE", None), ("", None), (None, None), ("  ", None)],
)
def test_localized_name_only_when_it_differs(value, expected):
    assert _candidate().with_localized_name(value).localized_name == expected


def test_label_is_name_and_country():
    candidate = _candidate(localized_name="Firenze")
    assert candidate.label == "Florence, Italy"
    assert candidate.to_dict()["label"] == "Florence, Italy"
    assert candidate.source == "local"


@pytest.mark.parametrize(
    "lat, lon, valid",
    [(0.0, 0.0, True), (90.0, 180.0, True), (-90.0, -180.0, True), (90.1, 0.0, False), (0.0, -180.5, False)],
)
def test_coordinate_validation(lat, lon, valid):
    candidate = LocationCandidate(id="x-1", name="X", country="Y", latitude=lat, longitude=lon)
    assert candidate.is_valid() is valid
