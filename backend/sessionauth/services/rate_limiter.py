"""In-memory sliding-window rate limiting for auth endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict, Iterable, Tuple

from sessionauth.core.exceptions import RateLimitExceededError

# Idle keys are swept once the table grows past this many entries.
SWEEP_THRESHOLD = 1024


class InMemoryRateLimiter:
    """Sliding-window limiter; state is per process."""

    def __init__(self, sweep_threshold: int = SWEEP_THRESHOLD) -> None:
        self._lock = threading.Lock()
        self._hits: Dict[str, Tuple[int, Deque[float]]] = {}
        self._sweep_threshold = sweep_threshold

    @staticmethod
    def _prune(hits: Deque[float], window_seconds: int, now: float) -> None:
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            window_seconds, hits = self._hits[key]
            self._prune(hits, window_seconds, now)
            if not hits:
                del self._hits[key]

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.monotonic()
        with self._lock:
            entry = self._hits.get(key)
            if entry is not None:
                self._prune(entry[1], window_seconds, now)
                if not entry[1]:
                    del self._hits[key]
                    entry = None
            if entry is None:
                if len(self._hits) >= self._sweep_threshold:
                    self._sweep(now)
                entry = (window_seconds, deque())
                self._hits[key] = entry

            hits = entry[1]
            if len(hits) >= limit:
                return False
            hits.append(now)
            return True

    def enforce(self, scope: str, client: str, windows: Iterable[Tuple[int, int]], message: str) -> None:
        """Raise RateLimitExceededError when any (limit, window_seconds) is exhausted"""
        for limit, window in windows:
            if not self.allow(f"{scope}:{window}:{client}", limit, window):
                raise RateLimitExceededError(message)

    def __len__(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


rate_limiter = InMemoryRateLimiter()
