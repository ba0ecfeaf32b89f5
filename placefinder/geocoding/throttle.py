"""
Per-operation request throttling with a local circuit breaker.

Every outbound provider call is guarded by a throttle key of the form
``operation:normalized-query``. A key is refused locally when it was used
less than ``min_interval`` seconds ago, or when it has collected
``MAX_RETRY_ATTEMPTS`` failures within the reset window. The breaker never
sleeps or retries on its own; callers fall through to the next tier.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

FAILURE_RESET_SECONDS = 5 * 60
MAX_RETRY_ATTEMPTS = 3
MAX_BACKOFF_SECONDS = 30.0


@dataclass
class FailureRecord:
    count: int
    last_failure_at: float


class ThrottleGuard:
    """
    Tracks the last request time and failure record for each throttle key.

    Thread-safe: the check-and-stamp in ``should_throttle`` happens under a
    lock, so two workers racing on the same key cannot both pass.

    Attributes:
        reset_after: Seconds after the last failure before a record expires.
        max_retries: Failure count at which the key is refused.
    """

    def __init__(
        self,
        reset_after: float = FAILURE_RESET_SECONDS,
        max_retries: int = MAX_RETRY_ATTEMPTS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.reset_after = reset_after
        self.max_retries = max_retries
        self._clock = clock or time.monotonic
        self._last_request: Dict[str, float] = {}
        self._failures: Dict[str, FailureRecord] = {}
        self._lock = threading.Lock()

    def should_throttle(self, key: str, min_interval: float = 1.0) -> bool:
        """
        Decide whether a request under ``key`` must not be issued now.

        When the request is allowed, ``key`` is stamped immediately, before
        the caller performs any network I/O.

        Args:
            key: Throttle key (operation plus normalized query).
            min_interval: Minimum seconds between two requests for ``key``.

        Returns:
            True if the caller must not proceed.
        """
        with self._lock:
            now = self._clock()
            record = self._current_record(key, now)
            if record is not None and record.count >= self.max_retries:
                return True

            last = self._last_request.get(key)
            if last is not None and now - last < min_interval:
                return True

            self._last_request[key] = now
            return False

    def handle_failed_request(self, key: str) -> FailureRecord:
        """Record a genuine provider failure (HTTP error, timeout, bad payload)."""
        with self._lock:
            now = self._clock()
            record = self._current_record(key, now)
            if record is None:
                record = FailureRecord(count=0, last_failure_at=now)
                self._failures[key] = record
            record.count = min(record.count + 1, self.max_retries)
            record.last_failure_at = now
            return FailureRecord(record.count, record.last_failure_at)

    def record_success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def failure_record(self, key: str) -> Optional[FailureRecord]:
        with self._lock:
            record = self._current_record(key, self._clock())
            if record is None:
                return None
            return FailureRecord(record.count, record.last_failure_at)

    def is_open(self, key: str) -> bool:
        """True while the breaker refuses ``key`` because of repeated failures."""
        return self.retry_after(key) is not None

    def retry_after(self, key: str) -> Optional[float]:
        """Advisory wait in seconds for a refused key, None when not refused."""
        record = self.failure_record(key)
        if record is None or record.count < self.max_retries:
            return None
        return self.get_backoff_delay(record.count)

    def reset(self) -> None:
        with self._lock:
            self._last_request.clear()
            self._failures.clear()

    @staticmethod
    def get_backoff_delay(retry_count: int) -> float:
        """Exponential backoff in seconds, capped at 30."""
        return min(1.0 * (2 ** max(retry_count, 0)), MAX_BACKOFF_SECONDS)

    @staticmethod
    def advisory_message(wait_seconds: float) -> str:
        return f"Too many requests. Please wait {math.ceil(wait_seconds)} seconds before trying again."

    # Caller must hold self._lock
    def _current_record(self, key: str, now: float) -> Optional[FailureRecord]:
        record = self._failures.get(key)
        if record is not None and now - record.last_failure_at > self.reset_after:
            del self._failures[key]
            return None
        return record
