"""
In-memory fuzzy index over the bundled city dataset.

The index is built once, lazily, and can be built on a background thread so
the first keystroke never waits for it. A dataset that cannot be read
degrades to an empty index; callers cannot tell it apart from "no match".
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from math import asin, cos, radians, sin, sqrt
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from rapidfuzz import fuzz

from .fallback import POPULAR_FALLBACK
from .models import LocationCandidate, TierResult
from .strategy import GeocodingStrategy

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).resolve().parents[1] / "data" / "cities.json"

# A distance threshold of 0.3 (0 = exact) is a similarity cutoff of 70 on rapidfuzz's 0-100 scale.
MATCH_THRESHOLD = 0.3
SCORE_CUTOFF = (1.0 - MATCH_THRESHOLD) * 100
MATCH_DISTANCE = 100
MIN_QUERY_LENGTH = 2


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    radius_m = 6_371_000.0

    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)

    value = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2

    arc = 2 * asin(sqrt(value))
    return radius_m * arc


@dataclass(frozen=True)
class CityRecord:
    slug: str
    name: str
    country: str
    country_code: str
    region: str
    latitude: float
    longitude: float
    population: int = 0
    alternate_names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, row: Dict[str, Any]) -> CityRecord:
        alternates = row.get("alternateNames") or {}
        if not isinstance(alternates, dict):
            alternates = {}
        return cls(
            slug=str(row["id"]),
            name=str(row["name"]),
            country=str(row.get("country") or ""),
            country_code=str(row.get("countryCode") or "").upper(),
            region=str(row.get("region") or ""),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            population=int(row.get("population") or 0),
            alternate_names={str(k): str(v) for k, v in alternates.items() if v},
        )

    def search_fields(self) -> Tuple[str, ...]:
        values = [self.name, self.country, self.region, *self.alternate_names.values()]
        return tuple(v.lower()[:MATCH_DISTANCE] for v in values if v)

    def to_candidate(self) -> LocationCandidate:
        return LocationCandidate(
            id=f"local-{self.slug}",
            name=self.name,
            country=self.country,
            country_code=self.country_code,
            region=self.region,
            latitude=self.latitude,
            longitude=self.longitude,
            population=self.population or None,
        )


def _field_score(query: str, value: str) -> float:
    # Match anywhere inside longer fields; shorter fields are compared whole.
    if len(value) >= len(query):
        return fuzz.partial_ratio(query, value, score_cutoff=SCORE_CUTOFF)
    return fuzz.ratio(query, value, score_cutoff=SCORE_CUTOFF)


class GazetteerIndex:
    """
    Fuzzy search over name, country, region and alternate names.

    Attributes:
        data_path: JSON file shaped ``{"cities": [...]}``.
    """

    def __init__(self, data_path: Optional[Path] = None) -> None:
        self.data_path = Path(data_path) if data_path else DEFAULT_DATA_PATH
        self._records: List[CityRecord] = []
        self._by_name: Dict[str, CityRecord] = {}
        self._by_alternate: Dict[Tuple[str, str], str] = {}
        self._ready = threading.Event()
        self._build_lock = threading.Lock()
        self._loader_lock = threading.Lock()
        self._loader: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def size(self) -> int:
        return len(self._records)

    def ensure_loaded(self) -> None:
        """Build the index once; later calls return immediately."""
        if self._ready.is_set():
            return
        with self._build_lock:
            if self._ready.is_set():
                return
            records = self._read_records()
            self._records = records
            self._by_name = {r.name.lower(): r for r in sorted(records, key=lambda r: r.population)}
            self._by_alternate = {}
            for record in sorted(records, key=lambda r: r.population):
                for lang, alt in record.alternate_names.items():
                    self._by_alternate[(lang, alt.lower())] = record.name
            self._ready.set()
            logger.info("Gazetteer ready with %d cities from %s", len(records), self.data_path)

    def load_in_background(self) -> None:
        """Start building on a daemon thread unless already built or building."""
        if self._ready.is_set():
            return
        with self._loader_lock:
            if self._loader is not None and self._loader.is_alive():
                return
            self._loader = threading.Thread(target=self.ensure_loaded, name="gazetteer-loader", daemon=True)
            self._loader.start()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def _read_records(self) -> List[CityRecord]:
        try:
            with self.data_path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Gazetteer dataset unavailable (%s): %s", self.data_path, e)
            return []

        rows = payload.get("cities") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            logger.error("Gazetteer dataset has no 'cities' list: %s", self.data_path)
            return []

        records: List[CityRecord] = []
        for row in rows:
            try:
                record = CityRecord.from_json(row)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.debug("Skipping malformed gazetteer row %r: %s", row, e)
                continue
            if not (-90.0 <= record.latitude <= 90.0 and -180.0 <= record.longitude <= 180.0):
                logger.debug("Skipping out-of-range gazetteer row %s", record.slug)
                continue
            records.append(record)
        return records

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 50, offset: int = 0) -> List[LocationCandidate]:
        """
        Fuzzy search ordered by match quality, then population.

        Returns:
            At most ``limit`` candidates starting at ``offset``; empty for
            queries shorter than two characters.
        """
        needle = (query or "").strip().lower()
        if len(needle) < MIN_QUERY_LENGTH:
            return []
        self.ensure_loaded()

        scored: List[Tuple[float, int, CityRecord]] = []
        for record in self._records:
            best = max((_field_score(needle, value) for value in record.search_fields()), default=0.0)
            if best >= SCORE_CUTOFF:
                scored.append((best, record.population, record))

        scored.sort(key=lambda item: (-item[0], -item[1]))
        return [record.to_candidate() for _, _, record in scored[offset : offset + limit]]

    def get_popular_cities(self, n: int = 10) -> List[LocationCandidate]:
        """Most populous cities; a fixed list while the index is still loading."""
        if not self.is_ready:
            self.load_in_background()
            return list(POPULAR_FALLBACK[:n])
        if not self._records:
            return list(POPULAR_FALLBACK[:n])
        ranked = sorted(self._records, key=lambda r: r.population, reverse=True)
        return [r.to_candidate() for r in ranked[:n]]

    def get_cities_by_country(self, country_code: str, n: int = 20) -> List[LocationCandidate]:
        if not self.is_ready:
            self.load_in_background()
            return []
        code = (country_code or "").strip().upper()
        matches = [r for r in self._records if r.country_code == code]
        matches.sort(key=lambda r: r.population, reverse=True)
        return [r.to_candidate() for r in matches[:n]]

    def cities_within(self, lat: float, lon: float, radius_m: float) -> List[Tuple[LocationCandidate, float]]:
        """Cities within ``radius_m`` of a point, nearest first."""
        if not self.is_ready:
            return []
        hits = []
        for record in self._records:
            distance = haversine_m(lat, lon, record.latitude, record.longitude)
            if distance <= radius_m:
                hits.append((record.to_candidate(), distance))
        hits.sort(key=lambda item: item[1])
        return hits

    def find_by_name(self, name: str) -> Optional[CityRecord]:
        if not self.is_ready or not name:
            return None
        return self._by_name.get(name.strip().lower())

    def alternate_names(self, name: str) -> Dict[str, str]:
        record = self.find_by_name(name)
        return dict(record.alternate_names) if record else {}

    def canonical_for_alternate(self, localized_name: str, lang: str) -> Optional[str]:
        if not self.is_ready or not localized_name:
            return None
        return self._by_alternate.get((lang, localized_name.strip().lower()))

    def alternate_languages(self) -> Set[str]:
        return {lang for lang, _ in self._by_alternate}


class GazetteerStrategy(GeocodingStrategy):
    """Offline tier backed by the bundled gazetteer."""

    requires_network = False

    def __init__(self, index: GazetteerIndex, load_timeout: float = 2.0) -> None:
        self.index = index
        self.load_timeout = load_timeout

    def search(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> TierResult:
        self.index.load_in_background()
        if not self.index.wait_until_ready(self.load_timeout):
            return TierResult.no_data("gazetteer still loading")
        candidates = self.index.search(query, limit=limit, offset=page * limit)
        if not candidates:
            return TierResult.no_data("no local match")
        return TierResult.success(candidates)

    def get_source_name(self) -> str:
        return "local"

    def get_rate_limit_delay(self) -> float:
        return 0.0
