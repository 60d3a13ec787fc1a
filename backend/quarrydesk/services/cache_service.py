# Overview: Service-layer read-through cache for analytics results.

"""
Analytics Read-Through Cache

WHY: Dashboards poll the same (site, range) repeatedly. Recomputing every
poll is wasted work, but results must never be served long after the data
changed, so entries simply expire after a short TTL. Writes do not
invalidate; end-of-day writes are rare relative to reads.

DESIGN:
- One cache per Flask app, stored in app.extensions
- Key: (analysis_kind, quarry_id, from_date, to_date)
- TTL <= 0 disables caching entirely
- Failures are never cached: a computation that raises stores nothing
- Every set sweeps expired entries, so moving ranges do not pile up
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Hashable

from flask import current_app


EXTENSION_KEY = "quarrydesk_analytics_cache"


class TTLCache:
    """Thread-safe key/value cache with a fixed time-to-live per entry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: Hashable) -> tuple[bool, Any]:
        if not self.enabled:
            return False, None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return False, None
            return True, value

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def set(self, key: Hashable, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            now = self._clock()
            self._purge_expired_locked(now)
            self._entries[key] = (now + self.ttl_seconds, value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        hit, value = self.get(key)
        if hit:
            return value
        # Computed outside the lock; concurrent misses may both compute, last set wins
        value = compute()
        self.set(key, value)
        return value

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(analysis_kind: str, quarry_id, from_date, to_date) -> tuple:
    return (analysis_kind, quarry_id, from_date, to_date)


def get_cache() -> TTLCache:
    """Cache bound to the current app, created from ANALYTICS_CACHE_TTL_SECONDS on first use."""
    app = current_app._get_current_object()
    cache = app.extensions.get(EXTENSION_KEY)
    if cache is None:
        cache = TTLCache(app.config.get("ANALYTICS_CACHE_TTL_SECONDS", 120))
        app.extensions[EXTENSION_KEY] = cache
    return cache


def cached(analysis_kind: str, quarry_id, from_date, to_date, compute: Callable[[], Any]) -> Any:
    return get_cache().get_or_compute(cache_key(analysis_kind, quarry_id, from_date, to_date), compute)


def clear_cache() -> int:
    count = get_cache().clear()
    current_app.logger.info("Cleared %d analytics cache entries", count)
    return count
