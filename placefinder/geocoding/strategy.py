"""Abstract base class for the tiers of the resolution chain."""

from abc import ABC, abstractmethod

from .models import TierResult


class GeocodingStrategy(ABC):
    """Abstract base class for a place-search provider.

    Implementations should handle provider-specific logic including:
    - API authentication (API keys, contact headers)
    - Request formatting and paging
    - Response parsing into ``LocationCandidate``
    - Error handling (errors become ``TierResult.failure``, never exceptions)

    Attributes:
        requires_network: Network tiers are skipped while offline and are
            guarded by the throttle before every call.
    """

    requires_network: bool = True

    @property
    def is_configured(self) -> bool:
        """False when the tier lacks credentials and would never make a call."""
        return True

    @abstractmethod
    def search(self, query: str, language: str = "en", limit: int = 50, page: int = 0) -> TierResult:
        """Search places matching a free-text query.

        Args:
            query: Canonical query text (at least 2 characters)
            language: ISO 639-1 language code for display names
            limit: Maximum number of candidates per page
            page: Zero-based page index

        Returns:
            A TierResult tagged success, no-data or failure.
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the provider name used for ids and throttle keys.

        Returns:
            String identifier for this provider (e.g., 'nominatim', 'geodb')
        """
        pass

    @abstractmethod
    def get_rate_limit_delay(self) -> float:
        """Get the minimum delay between two requests to this provider in seconds.

        Returns:
            Delay in seconds; 0 for tiers without a network dependency
        """
        pass
