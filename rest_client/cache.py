# rest_client/cache.py
"""
Short-lived cache for history pages.

Env vars:
- HISTORY_CACHE_TTL_SECONDS (default: 30; 0 disables caching)
"""

import os
import time
import threading
from typing import Any, Dict, Hashable, Optional, Tuple

HISTORY_CACHE_TTL_SECONDS = float(os.getenv("HISTORY_CACHE_TTL_SECONDS", "30"))


class HistoryCache:
    """
    Thread-safe in-memory TTL cache keyed by (page, limit, filters).

    Every invalidate() bumps a generation counter. Readers take the generation
    before querying and pass it to set(); a page computed before an
    invalidation is dropped instead of cached.
    """

    def __init__(self, ttl_seconds: float = HISTORY_CACHE_TTL_SECONDS, clock=time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._store: Dict[Hashable, Tuple[float, Any]] = {}  # key -> (expires_at, value)
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, key: Hashable) -> Optional[Any]:
        if not self.enabled:
            return None
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._store[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, generation: Optional[int] = None) -> bool:
        """Store value unless the cache was invalidated since `generation` was read."""
        if not self.enabled:
            return False
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._store[key] = (self._clock() + self.ttl, value)
            return True

    def invalidate(self):
        """Drop every cached page (called after any write)."""
        with self._lock:
            self._generation += 1
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
