import math
import random
from typing import Any, Callable, Dict, List, Optional

import requests

from .localization import LocalizationMapper
from .models import LocationCandidate, NearbyPlace, TierResult
from .strategy import GeocodingStrategy

PLACE_TYPES = ("city", "town", "village", "hamlet", "suburb", "municipality")
CITY_FIELDS = ("city", "town", "village", "hamlet", "municipality")
TYPE_PRIORITY = {"city": 1, "town": 2, "municipality": 3, "suburb": 4, "village": 5, "hamlet": 6}
UNRANKED_PRIORITY = 99


class NominatimStrategy(GeocodingStrategy):
    """
    Nominatim place search tuned for city autocomplete.

    Design philosophy:
    - Ask for settlements, not addresses
    - Filter AFTER searching, then rank by settlement type
    - Respect the usage policy: identify the client, 1 request per second
    """

    def __init__(
        self,
        email: str = "",
        user_agent: str = "PlaceFinder/0.1",
        base_url: str = "https://nominatim.openstreetmap.org",
        mapper: Optional[LocalizationMapper] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        min_interval: float = 1.05,
        logger: Optional[Callable[[str], None]] = None,
    ):
        self.email = email
        self.user_agent = user_agent
        self.base_url = base_url.rstrip("/")
        self.mapper = mapper
        self.session = session or requests.Session()
        self.timeout = timeout
        self.min_interval = min_interval
        self.logger = logger or (lambda msg: None)

    def _headers(self, language: str) -> Dict[str, str]:
        agent = f"{self.user_agent} (+{self.email})" if self.email else self.user_agent
        return {
            "User-Agent": agent,
            "Accept-Language": language,
        }

    # ------------------------------------------------------------------
    # Core search method
    # ------------------------------------------------------------------

    def search(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> TierResult:
        """
        Free-text settlement search.

        Nominatim has no offset paging, so only the first page is served;
        later pages report no data and the chain moves on.
        """
        if page > 0:
            return TierResult.no_data("paging not supported")

        params = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": max(1, min(limit, 40)),
            "accept-language": language,
            "dedupe": 1,
        }
        data = self._get_json("/search", params, language)
        if isinstance(data, TierResult):
            return data
        if not data:
            return TierResult.no_data("no results")

        candidates = self._to_candidates(self._rank(data), language)
        if not candidates:
            return TierResult.no_data("no settlements in results")
        return TierResult.success(candidates)

    def search_nearby(
        self,
        lat: float,
        lon: float,
        radius_m: float,
        kind: Optional[str] = None,
        limit: int = 15,
    ) -> Optional[List[NearbyPlace]]:
        """
        Bounded search for points of interest around a coordinate.

        Returns:
            List of NearbyPlace, or None on provider failure.
        """
        dlat = radius_m / 111_320.0
        dlon = radius_m / (111_320.0 * max(math.cos(math.radians(lat)), 0.01))
        params = {
            "q": (kind or "amenity").replace("_", " "),
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": limit,
            "viewbox": f"{lon - dlon},{lat + dlat},{lon + dlon},{lat - dlat}",
            "bounded": 1,
        }
        data = self._get_json("/search", params, "en")
        if isinstance(data, TierResult):
            return None

        places: List[NearbyPlace] = []
        for item in data or []:
            try:
                display_name = item.get("display_name") or ""
                places.append(
                    NearbyPlace(
                        id=f"nominatim-{item['place_id']}",
                        name=item.get("name") or display_name.split(",")[0],
                        address=display_name,
                        latitude=float(item["lat"]),
                        longitude=float(item["lon"]),
                        types=tuple(t for t in (item.get("type"), item.get("category") or item.get("class")) if t)[:3],
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return places

    # ------------------------------------------------------------------
    # One HTTP request
    # ------------------------------------------------------------------

    def _get_json(self, path: str, params: Dict[str, Any], language: str) -> Any:
        try:
            resp = self.session.get(
                f"{self.base_url}{path}",
                headers=self._headers(language),
                params=params,
                timeout=self.timeout,
            )

            if resp.status_code == 429:
                self.logger("Nominatim rate limited (429)")
                return TierResult.failure("rate limited", rate_limited=True)

            if resp.status_code != 200:
                self.logger(f"Nominatim HTTP {resp.status_code}: {resp.text[:120]}")
                return TierResult.failure(f"HTTP {resp.status_code}")

            data = resp.json()
            if not isinstance(data, list):
                raise ValueError("expected a JSON array")
            return data

        except requests.Timeout:
            self.logger("Nominatim timeout")
            return TierResult.failure("timeout")
        except requests.RequestException as e:
            self.logger(f"Nominatim request error: {str(e)[:120]}")
            return TierResult.failure("request error")
        except (ValueError, KeyError) as e:
            self.logger(f"Nominatim parse error: {str(e)[:120]}")
            return TierResult.failure("malformed payload")

    # ------------------------------------------------------------------
    # Result filtering and ranking (type-based)
    # ------------------------------------------------------------------

    @staticmethod
    def _is_settlement(item: Dict[str, Any]) -> bool:
        if item.get("category", item.get("class")) == "place" and item.get("type") in PLACE_TYPES:
            return True
        address = item.get("address") or {}
        return any(address.get(key) for key in CITY_FIELDS)

    @classmethod
    def _rank(cls, results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Keep settlements only, cities before towns before hamlets.

        The sort is stable, so Nominatim's own importance order survives
        within each type.
        """
        kept = [item for item in results if isinstance(item, dict) and cls._is_settlement(item)]
        return sorted(kept, key=lambda item: TYPE_PRIORITY.get(item.get("type") or "", UNRANKED_PRIORITY))

    def _to_candidates(self, results: List[Dict[str, Any]], language: str) -> List[LocationCandidate]:
        candidates: List[LocationCandidate] = []
        for item in results:
            address = item.get("address") or {}
            provider_name = next((address[key] for key in CITY_FIELDS if address.get(key)), None)
            provider_name = provider_name or item.get("name")
            if not provider_name:
                continue

            name = provider_name
            if language != "en" and self.mapper is not None:
                name = self.mapper.to_canonical(provider_name, language)

            try:
                candidate = LocationCandidate(
                    id=f"nominatim-{item['place_id']}",
                    name=name,
                    country=address.get("country", ""),
                    country_code=(address.get("country_code") or "").upper(),
                    region=address.get("state") or address.get("county") or "",
                    latitude=float(item["lat"]),
                    longitude=float(item["lon"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                self.logger(f"Nominatim skipped malformed row: {str(e)[:80]}")
                continue
            candidates.append(candidate.with_localized_name(provider_name))
        return candidates

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def get_source_name(self) -> str:
        return "nominatim"

    def get_rate_limit_delay(self) -> float:
        # Add jitter to avoid fingerprinting
        return self.min_interval + random.uniform(0.1, 0.3)
