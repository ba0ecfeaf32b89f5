"""Caller-facing location service and its wiring from settings."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import requests

from .cache import ResultCache
from .fallback import StaticFallbackStrategy
from .gazetteer import GazetteerIndex, GazetteerStrategy
from .geodb import GeoDBStrategy
from .localization import LocalizationMapper
from .models import LocationCandidate, NearbyPlace
from .nominatim import NominatimStrategy
from .pagination import POPULAR_LIMIT, AutocompletePaginationController
from .resolver import ProviderChainResolver
from .throttle import ThrottleGuard

logger = logging.getLogger(__name__)
provider_logger = logging.getLogger("placefinder.providers")

GAZETTEER_WAIT_SECONDS = 2.0


class LocationService:
    """
    The functions a UI calls. None of them raise.

    Attributes:
        controller: Autocomplete state for the active search session.
        resolver: Provider chain, also used for nearby search.
        gazetteer: Bundled city index.
        cache: Result cache shared with the controller.
    """

    def __init__(
        self,
        controller: AutocompletePaginationController,
        resolver: ProviderChainResolver,
        gazetteer: GazetteerIndex,
        cache: ResultCache,
    ) -> None:
        self.controller = controller
        self.resolver = resolver
        self.gazetteer = gazetteer
        self.cache = cache

    def search(self, query: str, language: str = "en", limit: int = 50) -> List[LocationCandidate]:
        """First page for ``query``; popular cities for input shorter than two characters."""
        try:
            return self.controller.search(query, language)[:limit]
        except Exception:
            logger.exception("Search failed for %r", query)
            return []

    def search_nearby(
        self,
        lat: float,
        lon: float,
        radius_m: float = 1000,
        kind: Optional[str] = None,
    ) -> List[NearbyPlace]:
        try:
            return self.resolver.resolve_nearby(lat, lon, radius_m=radius_m, kind=kind)
        except Exception:
            logger.exception("Nearby search failed for %s,%s", lat, lon)
            return []

    def get_popular(self, limit: int = POPULAR_LIMIT) -> List[LocationCandidate]:
        return self.controller.popular(limit)

    def get_cities_by_country(self, country_code: str, limit: int = 20) -> List[LocationCandidate]:
        self.gazetteer.load_in_background()
        self.gazetteer.wait_until_ready(GAZETTEER_WAIT_SECONDS)
        return self.gazetteer.get_cities_by_country(country_code, limit)

    def load_more(self) -> List[LocationCandidate]:
        try:
            return self.controller.load_more()
        except Exception:
            logger.exception("Load more failed")
            return self.controller.results

    @property
    def has_more(self) -> bool:
        return self.controller.has_more

    @property
    def last_advisory(self) -> Optional[str]:
        return self.resolver.last_advisory

    def clear_cache(self) -> bool:
        cleared = self.cache.clear()
        logger.info("Result cache cleared")
        return cleared


def build_location_service(
    settings,
    session: Optional[requests.Session] = None,
    is_online: Optional[Callable[[], bool]] = None,
    provider_log: Optional[Callable[[str], None]] = None,
) -> LocationService:
    """Wire the full provider chain from a ``Settings`` object.

    Args:
        settings: Configuration, see ``placefinder.settings``
        session: Shared HTTP session for both network tiers
        is_online: Connectivity probe; ``settings.OFFLINE`` forces offline
        provider_log: Diagnostic callback handed to the network tiers

    Returns:
        A ready LocationService; the gazetteer starts loading in the background
    """
    session = session or requests.Session()
    provider_log = provider_log or provider_logger.info

    gazetteer = GazetteerIndex(settings.GAZETTEER_PATH)
    mapper = LocalizationMapper(gazetteer)
    cache = ResultCache()

    nominatim = NominatimStrategy(
        email=settings.NOMINATIM_EMAIL,
        user_agent=settings.NOMINATIM_USER_AGENT,
        base_url=settings.NOMINATIM_BASE_URL,
        mapper=mapper,
        session=session,
        timeout=settings.HTTP_TIMEOUT,
        min_interval=settings.NOMINATIM_MIN_INTERVAL,
        logger=provider_log,
    )
    strategies = [
        GeoDBStrategy(
            api_key=settings.GEODB_API_KEY,
            api_host=settings.GEODB_API_HOST,
            base_url=settings.GEODB_BASE_URL,
            session=session,
            timeout=settings.HTTP_TIMEOUT,
            logger=provider_log,
        ),
        nominatim,
        GazetteerStrategy(gazetteer),
        StaticFallbackStrategy(),
    ]

    if settings.OFFLINE:
        probe: Optional[Callable[[], bool]] = lambda: False
    else:
        probe = is_online

    resolver = ProviderChainResolver(
        strategies,
        throttle=ThrottleGuard(),
        mapper=mapper,
        cache=cache,
        is_online=probe,
        nearby_provider=nominatim,
        gazetteer=gazetteer,
    )
    controller = AutocompletePaginationController(
        resolver,
        cache=cache,
        gazetteer=gazetteer,
        page_size=settings.PAGE_SIZE,
        debounce=settings.DEBOUNCE_SECONDS,
    )

    gazetteer.load_in_background()
    logger.info(
        "Location service ready (GeoDB %s, offline=%s)",
        "configured" if settings.GEODB_API_KEY else "not configured",
        settings.OFFLINE,
    )
    return LocationService(controller, resolver, gazetteer, cache)
