"""
Per-backend request throttling.

Each key gets a fixed window that opens on its first hit and lasts
``decay_seconds``. Once ``limit`` hits land inside the window further
attempts are refused until it closes. Counting is done by the ``limits``
library, the engine underneath Flask-Limiter.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from limits import RateLimitItem, parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

DEFAULT_DECAY_SECONDS = 60


class RateLimiter(ABC):

    @abstractmethod
    def attempt(self, key: str, limit: int,
                decay_seconds: int = DEFAULT_DECAY_SECONDS) -> Optional[int]:
        """Record a hit for ``key`` if the limit allows it.

        Returns None when the hit was recorded, otherwise the number of
        seconds (at least 1) until the window reopens. The check and the
        increment happen atomically.
        """
        pass

    @abstractmethod
    def remaining(self, key: str, limit: int,
                  decay_seconds: int = DEFAULT_DECAY_SECONDS) -> int:
        pass

    @abstractmethod
    def reset(self, key: str) -> None:
        pass


def rate_limit_item(limit: int, decay_seconds: int = DEFAULT_DECAY_SECONDS) -> RateLimitItem:
    """``limit`` hits per ``decay_seconds`` in the ``limits`` notation."""
    return parse(f"{limit} per {decay_seconds} seconds")


class MemoryRateLimiter(RateLimiter):
    """Fixed-window limiter over ``limits`` in-process storage.

    Args:
        storage: Any ``limits`` storage backend (default: in-memory)
    """

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)
        # key -> windows used with it, so reset() can clear all of them
        self._items: Dict[str, Set[RateLimitItem]] = {}
        self._lock = threading.Lock()

    def attempt(self, key: str, limit: int,
                decay_seconds: int = DEFAULT_DECAY_SECONDS) -> Optional[int]:
        item = rate_limit_item(limit, decay_seconds)
        with self._lock:
            self._items.setdefault(key, set()).add(item)
            if self.strategy.hit(item, key):
                return None
            reset_time = self.strategy.get_window_stats(item, key).reset_time

        return max(1, math.ceil(reset_time - time.time()))

    def remaining(self, key: str, limit: int,
                  decay_seconds: int = DEFAULT_DECAY_SECONDS) -> int:
        item = rate_limit_item(limit, decay_seconds)
        return max(0, self.strategy.get_window_stats(item, key).remaining)

    def reset(self, key: str) -> None:
        with self._lock:
            items = self._items.pop(key, set())
            for item in items:
                self.strategy.clear(item, key)
