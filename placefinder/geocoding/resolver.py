"""
Ordered provider chain: ask each tier in turn, return the first usable answer.

Network tiers are skipped while offline and are guarded by the throttle
before every call. A tier that fails is recorded against the breaker and
answered by the next tier; nothing raised by a tier reaches the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .cache import ResultCache
from .gazetteer import MIN_QUERY_LENGTH, GazetteerIndex, haversine_m
from .localization import LocalizationMapper
from .models import LocationCandidate, NearbyPlace, TierOutcome, TierResult, dedupe_candidates
from .nominatim import NominatimStrategy
from .strategy import GeocodingStrategy
from .throttle import ThrottleGuard

logger = logging.getLogger(__name__)

QUERY_MIN_INTERVAL = 1.0
NEARBY_MIN_INTERVAL = 2.0
NEARBY_MIN_RADIUS_M = 50
NEARBY_MAX_RADIUS_M = 5000
NEARBY_LIMIT = 15
NEARBY_KINDS = frozenset(
    {
        "restaurant", "cafe", "bar", "lodging", "store",
        "airport", "train_station", "bus_station", "park",
        "museum", "library", "university", "school", "hospital",
        "doctor", "pharmacy", "police", "post_office", "bank",
        "atm", "gas_station", "parking", "shopping_mall",
    }
)
PACING_ADVISORY = "Please wait a moment before searching again."


def _always_online() -> bool:
    return True


class ProviderChainResolver:
    """
    Resolve a free-text query against an ordered list of tiers.

    Attributes:
        strategies: Tiers in priority order.
        throttle: Shared throttle and circuit breaker.
        mapper: Canonicalizes queries and annotates localized names.
        cache: Page-0 results are written here.
        is_online: Connectivity probe; network tiers are skipped when it
            returns False.
    """

    def __init__(
        self,
        strategies: Sequence[GeocodingStrategy],
        throttle: Optional[ThrottleGuard] = None,
        mapper: Optional[LocalizationMapper] = None,
        cache: Optional[ResultCache] = None,
        is_online: Optional[Callable[[], bool]] = None,
        nearby_provider: Optional[NominatimStrategy] = None,
        gazetteer: Optional[GazetteerIndex] = None,
        query_interval: float = QUERY_MIN_INTERVAL,
    ) -> None:
        self.strategies = list(strategies)
        self.throttle = throttle or ThrottleGuard()
        self.mapper = mapper
        self.cache = cache
        self.is_online = is_online or _always_online
        self.nearby_provider = nearby_provider
        self.gazetteer = gazetteer
        self.query_interval = query_interval
        self._local = threading.local()
        self._page_sources: Dict[Tuple[str, str], str] = {}
        self._pins_lock = threading.Lock()

    @property
    def last_advisory(self) -> Optional[str]:
        """Wait hint from the latest resolve on the calling thread, if any tier was refused."""
        return getattr(self._local, "advisory", None)

    @staticmethod
    def query_key(source: str, query: str, language: str, page: int) -> str:
        return f"{source}:search:{query.strip().lower()}:{language}:{page}"

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def resolve(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> List[LocationCandidate]:
        """
        Run the chain for one page of results.

        Args:
            query: Text as typed; equivalent spellings (``Firenze``,
                ``Florence``) are canonicalized first.
            language: ISO 639-1 code for display names.
            limit: Page size.
            page: Zero-based page index.

        Returns:
            Candidates from the first tier with usable results, or an empty
            list when every tier is exhausted. Never raises.
        """
        self._local.advisory = None
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH or limit <= 0:
            return []

        canonical = self._canonicalize(text, language)
        online = self._probe_online()
        degraded = False
        pin = (canonical.lower(), language)

        for strategy in self._tiers_for(pin, page):
            source = strategy.get_source_name()
            key = self.query_key(source, canonical, language, page)

            if not strategy.is_configured:
                logger.debug("%s is not configured, skipping", source)
                continue

            if strategy.requires_network:
                if not online:
                    logger.debug("Offline, skipping %s", source)
                    degraded = True
                    continue
                if self._is_refused(strategy, key):
                    degraded = True
                    continue

            result = self._call(strategy, canonical, language, limit, page)

            if result.outcome is TierOutcome.FAILURE:
                degraded = True
                self._report_failure(strategy, key, canonical, result)
                continue

            if strategy.requires_network:
                self.throttle.record_success(key)

            candidates = self._finalize(result.candidates, language, limit)
            if not candidates:
                logger.info("%s had no usable results for %r (%s)", source, canonical, result.reason or "empty")
                continue

            logger.info("%s answered %r with %d candidates", source, canonical, len(candidates))
            if page == 0:
                with self._pins_lock:
                    self._page_sources[pin] = source
                # Cached only when no earlier tier was skipped or failed
                if self.cache is not None and not degraded:
                    self.cache.put(text, language, candidates)
            return candidates

        logger.info("All tiers exhausted for %r", canonical)
        # An empty answer is only final when every tier actually answered
        if page == 0 and self.cache is not None and not degraded:
            self.cache.put(text, language, [])
        return []

    def _tiers_for(self, pin: Tuple[str, str], page: int) -> List[GeocodingStrategy]:
        """Later pages stay with the tier that answered page 0."""
        if page == 0:
            return self.strategies
        with self._pins_lock:
            source = self._page_sources.get(pin)
        if source is None:
            return self.strategies
        return [s for s in self.strategies if s.get_source_name() == source]

    def _report_failure(self, strategy: GeocodingStrategy, key: str, query: str, result: TierResult) -> None:
        source = strategy.get_source_name()
        if not strategy.requires_network:
            logger.warning("%s failed for %r (%s)", source, query, result.reason)
            return

        record = self.throttle.handle_failed_request(key)
        if result.config_error:
            logger.error("%s rejected its credentials (%s); check the configuration", source, result.reason)
        elif result.rate_limited:
            logger.warning(
                "%s rate limited %r, failure %d of %d", source, query, record.count, self.throttle.max_retries
            )
        else:
            logger.warning(
                "%s failed for %r (%s), failure %d of %d",
                source,
                query,
                result.reason,
                record.count,
                self.throttle.max_retries,
            )

    def _canonicalize(self, text: str, language: str) -> str:
        if self.mapper is None:
            return text
        try:
            return self.mapper.canonicalize_query(text, language) or text
        except Exception:
            logger.exception("Query canonicalization failed for %r", text)
            return text

    def _probe_online(self) -> bool:
        try:
            return bool(self.is_online())
        except Exception:
            logger.exception("Connectivity probe failed; assuming online")
            return True

    def _is_refused(self, strategy: GeocodingStrategy, key: str) -> bool:
        source = strategy.get_source_name()

        wait = self.throttle.retry_after(key)
        if wait is not None:
            self._local.advisory = self.throttle.advisory_message(wait)
            logger.info("Circuit open for %s, skipping", key)
            return True

        if self.throttle.should_throttle(f"{source}:*", strategy.get_rate_limit_delay()):
            self._local.advisory = self._local.advisory or PACING_ADVISORY
            logger.info("%s is pacing requests, skipping", source)
            return True

        if self.throttle.should_throttle(key, self.query_interval):
            self._local.advisory = self._local.advisory or PACING_ADVISORY
            logger.info("Throttled %s, skipping", key)
            return True
        return False

    @staticmethod
    def _call(strategy: GeocodingStrategy, query: str, language: str, limit: int, page: int) -> TierResult:
        try:
            return strategy.search(query, language=language, limit=limit, page=page)
        except Exception as e:
            logger.exception("%s raised while searching %r", strategy.get_source_name(), query)
            return TierResult.failure(f"unexpected error: {str(e)[:120]}")

    def _finalize(self, candidates: Sequence[LocationCandidate], language: str, limit: int) -> List[LocationCandidate]:
        valid = []
        for candidate in candidates:
            if not candidate.is_valid():
                logger.debug("Dropping %s with out-of-range coordinates", candidate.id)
                continue
            valid.append(candidate)

        unique = dedupe_candidates(valid)[:limit]
        if self.mapper is None:
            return unique
        return [self.mapper.annotate(c, language) for c in unique]

    # ------------------------------------------------------------------
    # Nearby
    # ------------------------------------------------------------------

    def resolve_nearby(
        self,
        lat: float,
        lon: float,
        radius_m: float = 1000,
        kind: Optional[str] = None,
    ) -> List[NearbyPlace]:
        """
        Places around a coordinate, nearest first.

        The radius is clamped to 50-5000 m and ``kind`` is ignored unless it
        is a known place type. When the provider is unavailable, gazetteer
        cities inside the radius are returned instead. Never raises.
        """
        self._local.advisory = None
        try:
            lat, lon = float(lat), float(lon)
            radius = float(radius_m)
        except (TypeError, ValueError):
            return []
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            return []
        radius = max(NEARBY_MIN_RADIUS_M, min(NEARBY_MAX_RADIUS_M, radius))
        if kind not in NEARBY_KINDS:
            kind = None

        places = self._nearby_from_provider(lat, lon, radius, kind)
        if places is None:
            places = self._nearby_from_gazetteer(lat, lon, radius)
        places.sort(key=lambda p: p.distance_m if p.distance_m is not None else float("inf"))
        return places[:NEARBY_LIMIT]

    def _nearby_from_provider(self, lat: float, lon: float, radius: float, kind: Optional[str]) -> Optional[List[NearbyPlace]]:
        if self.nearby_provider is None or not self._probe_online():
            return None

        key = f"nominatim:nearby:{lat:.4f},{lon:.4f}:{int(radius)}:{kind or ''}"
        wait = self.throttle.retry_after(key)
        if wait is not None:
            self._local.advisory = self.throttle.advisory_message(wait)
            return None
        if self.throttle.should_throttle(key, NEARBY_MIN_INTERVAL):
            self._local.advisory = PACING_ADVISORY
            return None

        try:
            found = self.nearby_provider.search_nearby(lat, lon, radius, kind=kind, limit=NEARBY_LIMIT)
        except Exception:
            logger.exception("Nearby search raised for %s", key)
            found = None

        if found is None:
            self.throttle.handle_failed_request(key)
            logger.warning("Nearby search failed for %s, using gazetteer", key)
            return None

        self.throttle.record_success(key)
        places = []
        for place in found:
            if not (-90.0 <= place.latitude <= 90.0 and -180.0 <= place.longitude <= 180.0):
                continue
            distance = haversine_m(lat, lon, place.latitude, place.longitude)
            if distance > radius:
                continue
            places.append(
                NearbyPlace(
                    id=place.id,
                    name=place.name,
                    latitude=place.latitude,
                    longitude=place.longitude,
                    address=place.address,
                    types=place.types[:3],
                    distance_m=distance,
                )
            )
        return places

    def _nearby_from_gazetteer(self, lat: float, lon: float, radius: float) -> List[NearbyPlace]:
        if self.gazetteer is None:
            return []
        self.gazetteer.load_in_background()
        if not self.gazetteer.wait_until_ready(2.0):
            return []
        return [
            NearbyPlace(
                id=candidate.id,
                name=candidate.name,
                latitude=candidate.latitude,
                longitude=candidate.longitude,
                address=", ".join(p for p in (candidate.region, candidate.country) if p),
                types=("city",),
                distance_m=distance,
            )
            for candidate, distance in self.gazetteer.cities_within(lat, lon, radius)
        ]
