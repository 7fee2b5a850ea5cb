# ss14_admin/services/expiring_cache.py
"""
In-process key-value cache with sliding expiration.

Each entry carries its own idle window: reading an entry resets its clock,
and an entry left unread for longer than its window reads as missing.
Expired entries are dropped lazily on access and by sweep_expired(),
which the filter key sweeper calls periodically.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class _CacheEntry:
    value: Any
    ttl_seconds: float
    last_access: float

    def is_expired(self, now: float) -> bool:
        return now - self.last_access >= self.ttl_seconds


class ExpiringCache:
    """Thread-safe sliding-expiration map: set(key, value, ttl) / get(key) / remove(key)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        entry = _CacheEntry(value=value, ttl_seconds=ttl_seconds, last_access=self._clock())
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Optional[Any]:
        """Return the value and refresh its idle clock, or None if absent/expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                return None
            entry.last_access = now
            return entry.value

    def peek(self, key: str) -> Optional[Any]:
        """Return the value without refreshing its idle clock."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                return None
            return entry.value

    def touch(self, key: str) -> bool:
        """Refresh an entry's idle clock; False if it is absent or expired."""
        return self.get(key) is not None

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Evict expired entries one key at a time; returns how many were dropped."""
        if now is None:
            now = self._clock()

        with self._lock:
            keys = list(self._entries)

        removed = 0
        for key in keys:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None and entry.is_expired(now):
                    del self._entries[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """Membership without refreshing the idle clock."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(now)
