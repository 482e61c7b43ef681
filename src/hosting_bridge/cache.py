"""
Response cache used by the request pipeline.

Keys are fully qualified by the pipeline (``prefix + backend + ':' + key``)
so one cache instance can be shared by every backend a manager creates.
"""

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CACHE_MAX_SIZE = 1000


class Cache(ABC):
    """Minimal key/value store with per-entry TTL."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds. A ttl of 0 or less stores nothing."""
        pass

    @abstractmethod
    def forget(self, key: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemoryCache(Cache):
    """Thread-safe in-process TTL cache.

    Values are deep-copied on the way in and out so callers can never
    mutate what another caller will read.
    """

    def __init__(self, max_size: int = CACHE_MAX_SIZE,
                 clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._cache:
                return None

            value, expires_at = self._cache[key]
            if self._clock() >= expires_at:
                del self._cache[key]
                return None

            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            return

        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                # Evict whichever entry expires first
                oldest = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest]
                logger.debug(f"Cache full, evicted {oldest}")

            self._cache[key] = (copy.deepcopy(value), self._clock() + ttl)

    def forget(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
