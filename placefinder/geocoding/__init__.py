"""Location resolution: provider strategies, throttling, caching and autocomplete."""

from .cache import ResultCache
from .fallback import StaticFallbackStrategy
from .gazetteer import GazetteerIndex, GazetteerStrategy
from .geodb import GeoDBStrategy
from .localization import LocalizationMapper
from .models import LocationCandidate, NearbyPlace, TierOutcome, TierResult
from .nominatim import NominatimStrategy
from .pagination import AutocompletePaginationController, PaginationState, PendingRequest, Phase
from .resolver import ProviderChainResolver
from .service import LocationService, build_location_service
from .strategy import GeocodingStrategy
from .throttle import ThrottleGuard

__all__ = [
    "GeocodingStrategy",
    "GeoDBStrategy",
    "NominatimStrategy",
    "GazetteerStrategy",
    "StaticFallbackStrategy",
    "GazetteerIndex",
    "LocalizationMapper",
    "ThrottleGuard",
    "ResultCache",
    "ProviderChainResolver",
    "AutocompletePaginationController",
    "PaginationState",
    "PendingRequest",
    "Phase",
    "LocationService",
    "build_location_service",
    "LocationCandidate",
    "NearbyPlace",
    "TierOutcome",
    "TierResult",
]
