"""
Unit tests for the ResultCache class.
"""

import threading

import pytest

from placefinder.geocoding.cache import ResultCache
from placefinder.geocoding.models import LocationCandidate


def _city(slug: str, name: str, country: str = "Italy") -> LocationCandidate:
    return LocationCandidate(id=f"local-{slug}", name=name, country=country, latitude=43.77, longitude=11.25)


FLORENCE = _city("florence", "Florence")
ROME = _city("rome", "Rome")


class TestResultCache:
    """Test suite for ResultCache class."""

    def test_put_and_get(self):
        """Test storing and retrieving a candidate list."""
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])

        result = cache.get("Florence", "en")
        assert result == [FLORENCE]

    def test_get_nonexistent(self):
        """Test retrieving an unknown query returns None."""
        cache = ResultCache()
        assert cache.get("Nowhere", "en") is None

    def test_empty_list_is_a_cached_answer(self):
        """An empty result set is cached and distinct from a miss."""
        cache = ResultCache()
        cache.put("zzzz", "en", [])
        assert cache.get("zzzz", "en") == []

    def test_key_is_normalized(self):
        """Case and surrounding whitespace do not change the key."""
        cache = ResultCache()
        cache.put("  Florence ", "en", [FLORENCE])
        assert cache.get("florence", "en") == [FLORENCE]
        assert cache.get("FLORENCE", "en") == [FLORENCE]

    def test_language_is_part_of_key(self):
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        assert cache.get("Florence", "it") is None

    def test_put_updates_existing(self):
        """Test that put() replaces an existing entry (last write wins)."""
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        cache.put("florence", "en", [ROME, FLORENCE])
        assert cache.get("Florence", "en") == [ROME, FLORENCE]

    def test_returned_list_is_a_copy(self):
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        cache.get("Florence", "en").append(ROME)
        assert cache.get("Florence", "en") == [FLORENCE]

    def test_normalize_query(self):
        """Test query normalization."""
        assert ResultCache.normalize_query("London", "en") == "london:en"
        assert ResultCache.normalize_query("  New York  ", "es") == "new york:es"
        assert ResultCache.normalize_query("", "en") == ":en"

    def test_clear_existing_cache(self):
        """Test clearing a populated cache."""
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        assert cache.clear() is True
        assert len(cache) == 0
        assert cache.get("Florence", "en") is None

    def test_clear_empty_cache(self):
        cache = ResultCache()
        assert cache.clear() is False

    def test_clear_by_query_single_language(self):
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        cache.put("Florence", "it", [FLORENCE])

        assert cache.clear_by_query("Florence", "en") == 1
        assert cache.get("Florence", "en") is None
        assert cache.get("Florence", "it") is not None

    def test_clear_by_query_all_languages(self):
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        cache.put("Florence", "it", [FLORENCE])
        cache.put("Florence Italy", "en", [FLORENCE])

        assert cache.clear_by_query("florence") == 2
        assert cache.get("Florence Italy", "en") is not None

    def test_clear_by_query_nonexistent(self):
        cache = ResultCache()
        assert cache.clear_by_query("Nowhere", "en") == 0

    def test_get_cache_stats(self):
        """Test statistics for entries with and without results."""
        cache = ResultCache()
        cache.put("Florence", "en", [FLORENCE])
        cache.put("Rome", "en", [ROME])
        cache.put("zzzz", "en", [])

        stats = cache.get_cache_stats()
        assert stats == {"total": 3, "with_results": 2, "empty": 1}

    def test_get_cache_stats_empty(self):
        cache = ResultCache()
        assert cache.get_cache_stats() == {"total": 0, "with_results": 0, "empty": 0}

    def test_context_manager(self):
        """Test using cache as a context manager."""
        with ResultCache() as cache:
            cache.put("Rome", "en", [ROME])
            assert cache.get("Rome", "en") == [ROME]

    def test_concurrent_puts(self):
        """Concurrent writers never corrupt the cache."""
        cache = ResultCache()

        def writer(n: int) -> None:
            for i in range(100):
                cache.put(f"q{i % 10}", "en", [_city(f"c{n}", f"City {n}")])

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 10
        for i in range(10):
            assert len(cache.get(f"q{i}", "en")) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
