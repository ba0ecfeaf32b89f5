"""
Debounced, paginated autocomplete on top of the provider chain.

The controller owns one pending-request slot. Every keystroke replaces the
slot (cancelling the previous request), and a response is applied only if
its request still occupies the slot, so a slow answer for "Lon" can never
overwrite the answer for "London".

``on_input``, ``request_load_more`` and ``apply`` mutate state and belong
on the UI thread; ``execute`` does the slow work and may run anywhere.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence

from .cache import ResultCache
from .fallback import POPULAR_FALLBACK
from .gazetteer import MIN_QUERY_LENGTH, GazetteerIndex
from .models import LocationCandidate, dedupe_candidates
from .resolver import ProviderChainResolver

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
DEBOUNCE_SECONDS = 0.3
POPULAR_LIMIT = 8


class Phase(enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    LOADED = "loaded"
    LOADING_MORE = "loading_more"


@dataclass(eq=False)
class PendingRequest:
    """One scheduled resolution. Compared by identity."""

    query: str
    language: str
    page: int
    due_at: float
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()

    def wait_until_due(self, clock: Callable[[], float]) -> bool:
        """Block until ``due_at``; returns False if cancelled meanwhile."""
        remaining = self.due_at - clock()
        if remaining > 0:
            return not self._cancel_event.wait(remaining)
        return not self.cancelled


@dataclass
class PaginationState:
    last_search_term: str = ""
    language: str = "en"
    current_page: int = 0
    accumulated_results: List[LocationCandidate] = field(default_factory=list)
    has_more_results: bool = False
    page_size: int = PAGE_SIZE
    phase: Phase = Phase.IDLE


class AutocompletePaginationController:
    """
    Drives "type, show the first page, scroll for more".

    Attributes:
        resolver: Provider chain used on cache misses and for later pages.
        cache: Consulted before the resolver for page 0.
        gazetteer: Source of popular cities for short input.
        page_size: Results per page.
        debounce: Seconds between the last keystroke and the resolution.
    """

    def __init__(
        self,
        resolver: ProviderChainResolver,
        cache: Optional[ResultCache] = None,
        gazetteer: Optional[GazetteerIndex] = None,
        page_size: int = PAGE_SIZE,
        debounce: float = DEBOUNCE_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.resolver = resolver
        self.cache = cache
        self.gazetteer = gazetteer
        self.page_size = page_size
        self.debounce = debounce
        self._clock = clock or time.monotonic
        self._state = PaginationState(page_size=page_size)
        self._pending: Optional[PendingRequest] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> PaginationState:
        """Snapshot of the pagination state."""
        return replace(self._state, accumulated_results=list(self._state.accumulated_results))

    @property
    def results(self) -> List[LocationCandidate]:
        return list(self._state.accumulated_results)

    @property
    def has_more(self) -> bool:
        return self._state.has_more_results

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    def reset(self) -> None:
        self._cancel_pending()
        self._state = PaginationState(page_size=self.page_size)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    # ------------------------------------------------------------------
    # UI thread
    # ------------------------------------------------------------------

    def on_input(self, query: str, language: str = "en") -> Optional[PendingRequest]:
        """
        React to the query text changing.

        Returns:
            The new pending request to execute, or None when there is
            nothing to resolve: input shorter than two characters (show
            popular cities instead) or the same query already in progress.
        """
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            self.reset()
            return None

        state = self._state
        if text == state.last_search_term and language == state.language and state.phase is not Phase.IDLE:
            return None

        self.reset()
        self._state.last_search_term = text
        self._state.language = language
        self._state.phase = Phase.SEARCHING
        self._pending = PendingRequest(text, language, 0, self._clock() + self.debounce)
        return self._pending

    def request_load_more(self) -> Optional[PendingRequest]:
        """
        Schedule the next page.

        Returns:
            The pending request, or None when nothing is loaded, no more
            results exist, or a request is already in flight.
        """
        state = self._state
        if state.phase is not Phase.LOADED or not state.has_more_results or not state.accumulated_results:
            return None
        if self._pending is not None:
            return None

        state.phase = Phase.LOADING_MORE
        self._pending = PendingRequest(state.last_search_term, state.language, state.current_page + 1, self._clock())
        return self._pending

    def apply(self, pending: PendingRequest, results: Optional[Sequence[LocationCandidate]]) -> bool:
        """
        Merge a finished request into the state.

        Results are discarded when the request no longer occupies the
        pending slot or its query differs from the current one.

        Returns:
            True if the results were applied.
        """
        if results is None or pending.cancelled or pending is not self._pending:
            logger.debug("Discarding stale results for %r page %d", pending.query, pending.page)
            return False
        state = self._state
        if pending.query != state.last_search_term or pending.language != state.language:
            logger.debug("Discarding results for %r, current query is %r", pending.query, state.last_search_term)
            return False

        self._pending = None
        unique = dedupe_candidates(results)

        if pending.page == 0:
            state.accumulated_results = unique
            state.current_page = 0
            state.has_more_results = len(unique) >= state.page_size
        else:
            seen = {c.id for c in state.accumulated_results}
            fresh = [c for c in unique if c.id not in seen]
            if not fresh:
                # Provider exhausted or looping over the same results
                state.has_more_results = False
            else:
                state.accumulated_results.extend(fresh)
                state.current_page = pending.page
                state.has_more_results = len(fresh) >= state.page_size

        state.phase = Phase.LOADED
        return True

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def execute(self, pending: PendingRequest) -> Optional[List[LocationCandidate]]:
        """
        Wait out the debounce, then answer from the cache or the resolver.

        Returns:
            Candidates for the request, or None if it was cancelled before
            any work was done.
        """
        if not pending.wait_until_due(self._clock):
            return None

        if pending.page == 0 and self.cache is not None:
            cached = self.cache.get(pending.query, pending.language)
            if cached is not None:
                logger.debug("Cache hit for %r", pending.query)
                return cached

        return self.resolver.resolve(pending.query, pending.language, limit=self.page_size, page=pending.page)

    # ------------------------------------------------------------------
    # Synchronous helpers
    # ------------------------------------------------------------------

    def search(self, query: str, language: str = "en") -> List[LocationCandidate]:
        """Resolve ``query`` immediately, skipping the debounce."""
        pending = self.on_input(query, language)
        if pending is None:
            if len((query or "").strip()) < MIN_QUERY_LENGTH:
                return self.popular()
            return self.results

        pending.due_at = self._clock()
        self.apply(pending, self.execute(pending))
        return self.results

    def load_more(self) -> List[LocationCandidate]:
        """Fetch the next page; a no-op returning current results when there is none."""
        pending = self.request_load_more()
        if pending is None:
            return self.results
        self.apply(pending, self.execute(pending))
        return self.results

    def popular(self, limit: int = POPULAR_LIMIT) -> List[LocationCandidate]:
        if self.gazetteer is None:
            return list(POPULAR_FALLBACK[:limit])
        return self.gazetteer.get_popular_cities(limit)
