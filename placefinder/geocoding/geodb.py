"""GeoDB Cities geocoding strategy (primary, metered tier)."""

from typing import Any, Callable, Dict, List, Optional

import requests

from .models import LocationCandidate, TierResult
from .strategy import GeocodingStrategy

GEODB_API_HOST = "wft-geo-db.p.rapidapi.com"


class GeoDBStrategy(GeocodingStrategy):
    """Geocoding strategy using the GeoDB Cities API via RapidAPI.

    Requirements:
    - RapidAPI key subscribed to GeoDB Cities
    - See: https://rapidapi.com/wirefreethought/api/geodb-cities

    Rate limits:
    - Free plan: 1 request per second, metered per day
    - Clients that keep hammering after a 429 get temporarily banned

    The API matches on name prefix and sorts by population, which makes it
    the best first tier for city autocomplete.
    """

    def __init__(
        self,
        api_key: str,
        api_host: str = GEODB_API_HOST,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        logger: Optional[Callable[[str], None]] = None,
    ):
        """Initialize GeoDB strategy.

        Args:
            api_key: RapidAPI key; an empty key disables the tier
            api_host: RapidAPI host header value
            base_url: Override for the API root (tests, proxies)
            session: Shared requests session
            timeout: Per-request timeout in seconds
            logger: Optional diagnostic callback
        """
        self.api_key = api_key
        self.api_host = api_host
        self.base_url = (base_url or f"https://{api_host}").rstrip("/") + "/v1/geo/cities"
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or (lambda msg: None)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def search(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> TierResult:
        """Search cities by name prefix, most populous first.

        Args:
            query: City name prefix
            language: Language for returned names
            limit: Page size
            page: Zero-based page, translated to an offset

        Returns:
            TierResult; 429 and 401/403 are failures, an empty page is no-data
        """
        if not self.is_configured:
            return TierResult.no_data("GeoDB API key not configured")

        headers = {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": self.api_host,
        }
        params = {
            "namePrefix": query,
            "limit": limit,
            "offset": page * limit,
            "sort": "-population",
            "languageCode": language,
        }

        try:
            resp = self.session.get(self.base_url, headers=headers, params=params, timeout=self.timeout)

            if resp.status_code == 429:
                self.logger("GeoDB rate limited (429)")
                return TierResult.failure("rate limited", rate_limited=True)

            if resp.status_code in (401, 403):
                self.logger(f"GeoDB authentication failed ({resp.status_code}); check the API key")
                return TierResult.failure(f"authentication failed ({resp.status_code})", config_error=True)

            if resp.status_code != 200:
                self.logger(f"GeoDB HTTP {resp.status_code}: {resp.text[:120]}")
                return TierResult.failure(f"HTTP {resp.status_code}")

            payload = resp.json()
            rows = payload.get("data") or []
            if not isinstance(rows, list):
                raise ValueError("unexpected 'data' shape")
        except requests.Timeout:
            self.logger("GeoDB timeout")
            return TierResult.failure("timeout")
        except requests.RequestException as e:
            self.logger(f"GeoDB request error: {str(e)[:120]}")
            return TierResult.failure("request error")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger(f"GeoDB parse error: {str(e)[:120]}")
            return TierResult.failure("malformed payload")

        if not rows:
            return TierResult.no_data("no results")
        return TierResult.success(self._to_candidates(rows))

    def _to_candidates(self, rows: List[Dict[str, Any]]) -> List[LocationCandidate]:
        candidates: List[LocationCandidate] = []
        for city in rows:
            try:
                population = city.get("population")
                candidates.append(
                    LocationCandidate(
                        id=f"geodb-{city['id']}",
                        name=str(city["name"]),
                        country=str(city.get("country") or ""),
                        country_code=str(city.get("countryCode") or "").upper(),
                        region=str(city.get("region") or ""),
                        latitude=float(city["latitude"]),
                        longitude=float(city["longitude"]),
                        population=int(population) if population is not None else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                self.logger(f"GeoDB skipped malformed row: {str(e)[:80]}")
        return candidates

    def get_source_name(self) -> str:
        return "geodb"

    def get_rate_limit_delay(self) -> float:
        return 1.0
