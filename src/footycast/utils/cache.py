"""
In-memory TTL cache with single-flight computation.

The cache is advisory: a miss or an expired entry just triggers the compute
function again. Concurrent callers missing on the same key are serialised on
a per-key lock, so only one of them runs the (upstream-heavy) computation and
the others reuse its result.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from footycast.config import CACHE_MAX_ITEMS, CACHE_TTL_SECONDS
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

_MISSING = object()


class TTLCache:
    """Thread-safe TTL cache keyed by any hashable value."""

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_items: int = CACHE_MAX_ITEMS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl_seconds
        self.max_items = max_items
        self._clock = clock
        # key -> (expires_at, last_access, value)
        self._store: Dict[Hashable, Tuple[float, float, Any]] = {}
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _key_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _lookup(self, key: Hashable) -> Any:
        now = self._clock()
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return _MISSING
            expires_at, _, value = item
            if now >= expires_at:
                self._store.pop(key, None)
                return _MISSING
            self._store[key] = (expires_at, now, value)
            return value

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        expires_at = now + (self.ttl if ttl is None else ttl)
        with self._lock:
            if key not in self._store and len(self._store) >= self.max_items:
                # evict the least recently used entry
                oldest = min(self._store.items(), key=lambda kv: kv[1][1])[0]
                self._store.pop(oldest, None)
                self._key_locks.pop(oldest, None)
            self._store[key] = (expires_at, now, value)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._key_locks.clear()

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        Exceptions raised by `compute` propagate and nothing is cached.
        """
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        with self._key_lock(key):
            # another caller may have filled the key while we waited
            value = self._lookup(key)
            if value is not _MISSING:
                return value
            logger.debug("Cache miss for %s; computing.", key)
            value = compute()
            self.set(key, value)
            return value
