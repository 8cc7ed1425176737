"""In-memory TTL cache for user lookups."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

# Expired entries are swept on write once the cache holds this many.
SWEEP_THRESHOLD = 1024


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float


class UserCache(Generic[T]):
    """Thread-safe key/value cache with a fixed time-to-live per entry.

    Entries are keyed by any identifier a caller looks users up with
    (id and email); writers must call ``invalidate`` with every key of a
    user they change or delete.
    """

    def __init__(self, ttl_seconds: int, sweep_threshold: int = SWEEP_THRESHOLD) -> None:
        self._ttl = ttl_seconds
        self._sweep_threshold = sweep_threshold
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: T) -> None:
        if self._ttl <= 0:
            return
        now = time.monotonic()
        with self._lock:
            if len(self._entries) >= self._sweep_threshold:
                self._sweep(now)
            self._entries[key] = _Entry(value=value, expires_at=now + self._ttl)

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def invalidate(self, *keys: Optional[str]) -> None:
        with self._lock:
            for key in keys:
                if key:
                    self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {"entries": len(self), "ttl_seconds": self._ttl}
