"""
Result cache for resolved candidate lists.

This module provides a thread-safe, process-lifetime cache keyed by the
normalized query text and language, so that resolver workers and UI
components share results without repeating provider calls.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence, Tuple

from .models import LocationCandidate


class ResultCache:
    """
    Manages in-memory caching of resolved candidate lists.

    Entries never expire; the cache lives as long as the process and is
    emptied only through ``clear`` or ``clear_by_query``. An empty list is
    a valid cached answer ("no results") and is returned as such.

    Thread-safe: every operation runs under a single lock. Concurrent
    ``put`` calls for the same key are last-write-wins.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[LocationCandidate, ...]] = {}
        self._lock = threading.Lock()

    def get(self, query: str, lang: str) -> Optional[List[LocationCandidate]]:
        """
        Retrieve cached candidates.

        Args:
            query: Query text as typed; normalized before lookup.
            lang: ISO 639-1 language code.

        Returns:
            A new list of candidates, or None if the key was never stored.
        """
        key = self.normalize_query(query, lang)
        with self._lock:
            entry = self._entries.get(key)
        return list(entry) if entry is not None else None

    def put(self, query: str, lang: str, results: Sequence[LocationCandidate]) -> None:
        """
        Store the candidates for a query, replacing any previous entry.

        Args:
            query: Query text as typed; normalized before storing.
            lang: ISO 639-1 language code.
            results: Candidates in display order.
        """
        key = self.normalize_query(query, lang)
        with self._lock:
            self._entries[key] = tuple(results)

    def clear_by_query(self, query: str, lang: Optional[str] = None) -> int:
        """
        Clear the entries for one query.

        Args:
            query: Query text as typed.
            lang: Only clear this language; all languages when None.

        Returns:
            Number of entries deleted.
        """
        if lang is not None:
            key = self.normalize_query(query, lang)
            with self._lock:
                return 1 if self._entries.pop(key, None) is not None else 0

        prefix = self.normalize_query(query, "")
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix) and ":" not in k[len(prefix):]]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def get_cache_stats(self) -> Dict[str, int]:
        """
        Get statistics about cached entries.

        Returns:
            Dictionary with keys: total, with_results, empty.
        """
        with self._lock:
            total = len(self._entries)
            with_results = sum(1 for entry in self._entries.values() if entry)
        return {
            "total": total,
            "with_results": with_results,
            "empty": total - with_results,
        }

    def clear(self) -> bool:
        """
        Clear the entire cache.

        Returns:
            True if anything was cached, False if the cache was already empty.
        """
        with self._lock:
            had_entries = bool(self._entries)
            self._entries.clear()
        return had_entries

    @staticmethod
    def normalize_query(query: str, lang: str) -> str:
        """
        Normalize a query into the cache key.

        Lower-cases and trims the query, then appends the language code:
        ``"  London " + "en" -> "london:en"``.
        """
        return f"{(query or '').strip().lower()}:{lang}"

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> ResultCache:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        # Nothing to release; entries stay until cleared
        pass
