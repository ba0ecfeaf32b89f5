"""
Bidirectional mapping between canonical (English) city names and their
localized spellings.

Two sources are consulted in order: a small static table of well-known
translations, then the gazetteer's per-city alternate names. A name that
neither source knows is returned unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Optional

from .models import LocationCandidate

if TYPE_CHECKING:
    from .gazetteer import GazetteerIndex

CITY_LANGUAGE_MAPPING: Dict[str, Dict[str, str]] = {
    "it": {
        "Florence": "Firenze",
        "Rome": "Roma",
        "Milan": "Milano",
        "Venice": "Venezia",
        "Naples": "Napoli",
        "Turin": "Torino",
        "Genoa": "Genova",
    },
    "es": {
        "Seville": "Sevilla",
        "London": "Londres",
        "Barcelona": "Barcelona",
        "Madrid": "Madrid",
    },
    "fr": {
        "London": "Londres",
        "Marseille": "Marseille",
        "Lyon": "Lyon",
        "Paris": "Paris",
    },
    "de": {
        "Munich": "München",
        "Cologne": "Köln",
        "Vienna": "Wien",
        "Berlin": "Berlin",
    },
    "ja": {
        "Tokyo": "東京",
        "Osaka": "大阪",
        "Kyoto": "京都",
    },
}


class LocalizationMapper:
    def __init__(
        self,
        gazetteer: Optional[GazetteerIndex] = None,
        table: Optional[Dict[str, Dict[str, str]]] = None,
    ) -> None:
        self.gazetteer = gazetteer
        self.table = table if table is not None else CITY_LANGUAGE_MAPPING

    @property
    def languages(self) -> Iterable[str]:
        langs = set(self.table)
        if self.gazetteer is not None:
            langs.update(self.gazetteer.alternate_languages())
        return sorted(langs)

    def to_localized(self, name: str, lang: str) -> str:
        if not name:
            return name
        mapped = self.table.get(lang, {}).get(name)
        if mapped is None:
            # The static table is keyed by exact canonical spelling; retry case-insensitively.
            lowered = name.lower()
            mapped = next(
                (loc for canon, loc in self.table.get(lang, {}).items() if canon.lower() == lowered),
                None,
            )
        if mapped:
            return mapped

        if self.gazetteer is not None:
            alternate = self.gazetteer.alternate_names(name).get(lang)
            if alternate:
                return alternate
        return name

    def to_canonical(self, localized_name: str, lang: str) -> str:
        if not localized_name:
            return localized_name
        lowered = localized_name.strip().lower()
        for canonical, localized in self.table.get(lang, {}).items():
            if localized.lower() == lowered:
                return canonical

        if self.gazetteer is not None:
            canonical = self.gazetteer.canonical_for_alternate(localized_name, lang)
            if canonical:
                return canonical
        return localized_name

    def canonicalize_query(self, query: str, lang: str = "en") -> str:
        """
        Map a typed query to its canonical spelling.

        The active language is tried first, then every other known
        language, so ``Firenze`` typed with an English UI still finds
        Florence.
        """
        stripped = query.strip()
        candidate = self.to_canonical(stripped, lang)
        if candidate != stripped:
            return candidate
        for other in self.languages:
            if other == lang:
                continue
            candidate = self.to_canonical(stripped, other)
            if candidate != stripped:
                return candidate
        return stripped

    def annotate(self, candidate: LocationCandidate, lang: str) -> LocationCandidate:
        if not lang or lang == "en":
            return candidate.with_localized_name(None)
        localized = candidate.localized_name or self.to_localized(candidate.name, lang)
        return candidate.with_localized_name(localized)
