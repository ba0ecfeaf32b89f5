"""Hard-coded city lists used when nothing better is available."""

from typing import List

from .models import LocationCandidate, TierResult
from .strategy import GeocodingStrategy


def _city(slug: str, name: str, country: str, code: str, region: str, lat: float, lon: float) -> LocationCandidate:
    return LocationCandidate(
        id=f"static-{slug}",
        name=name,
        country=country,
        country_code=code,
        region=region,
        latitude=lat,
        longitude=lon,
    )


FALLBACK_CITIES = (
    # North America
    _city("new-york", "New York", "United States", "US", "New York", 40.7128, -74.0060),
    _city("los-angeles", "Los Angeles", "United States", "US", "California", 34.0522, -118.2437),
    _city("chicago", "Chicago", "United States", "US", "Illinois", 41.8781, -87.6298),
    _city("toronto", "Toronto", "Canada", "CA", "Ontario", 43.6532, -79.3832),
    _city("mexico-city", "Mexico City", "Mexico", "MX", "CDMX", 19.4326, -99.1332),
    # Europe
    _city("london", "London", "United Kingdom", "GB", "England", 51.5074, -0.1278),
    _city("paris", "Paris", "France", "FR", "Île-de-France", 48.8566, 2.3522),
    _city("berlin", "Berlin", "Germany", "DE", "Berlin", 52.5200, 13.4050),
    _city("rome", "Rome", "Italy", "IT", "Lazio", 41.9028, 12.4964),
    _city("madrid", "Madrid", "Spain", "ES", "Madrid", 40.4168, -3.7038),
    _city("amsterdam", "Amsterdam", "Netherlands", "NL", "North Holland", 52.3676, 4.9041),
    # Asia
    _city("tokyo", "Tokyo", "Japan", "JP", "Tokyo", 35.6762, 139.6503),
    _city("shanghai", "Shanghai", "China", "CN", "Shanghai", 31.2304, 121.4737),
    _city("new-delhi", "New Delhi", "India", "IN", "Delhi", 28.6139, 77.2090),
    _city("singapore", "Singapore", "Singapore", "SG", "Singapore", 1.3521, 103.8198),
    _city("seoul", "Seoul", "South Korea", "KR", "Seoul", 37.5665, 126.9780),
    _city("bangkok", "Bangkok", "Thailand", "TH", "Bangkok", 13.7563, 100.5018),
    _city("dubai", "Dubai", "United Arab Emirates", "AE", "Dubai", 25.2048, 55.2708),
    # Southern hemisphere
    _city("sydney", "Sydney", "Australia", "AU", "New South Wales", -33.8688, 151.2093),
    _city("sao-paulo", "São Paulo", "Brazil", "BR", "São Paulo", -23.5505, -46.6333),
    _city("cairo", "Cairo", "Egypt", "EG", "Cairo", 30.0444, 31.2357),
)

_POPULAR_ORDER = ("new-york", "london", "paris", "tokyo", "sydney", "berlin", "singapore", "dubai")
POPULAR_FALLBACK = tuple(c for slug in _POPULAR_ORDER for c in FALLBACK_CITIES if c.id == f"static-{slug}")


def match_fallback_cities(query: str) -> List[LocationCandidate]:
    """Substring match on name, country or region."""
    term = (query or "").strip().lower()
    if not term:
        return []
    return [
        city
        for city in FALLBACK_CITIES
        if term in city.name.lower() or term in city.country.lower() or term in city.region.lower()
    ]


class StaticFallbackStrategy(GeocodingStrategy):
    """Last-resort tier: a short list of major world cities."""

    requires_network = False

    def search(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> TierResult:
        if page > 0:
            return TierResult.no_data("static list has a single page")
        matches = match_fallback_cities(query)
        if not matches:
            return TierResult.no_data("no static match")
        return TierResult.success(matches[:limit])

    def get_source_name(self) -> str:
        return "static"

    def get_rate_limit_delay(self) -> float:
        return 0.0
