"""Thread-safe TTL cache with oldest-first batch eviction, plus route cache keys."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Sequence

from routecache.services.metrics import metrics

logger = logging.getLogger(__name__)

Coordinate = tuple[float, float]


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float


class TTLCache:
    """Bounded key/value store with per-entry expiry.

    Expired entries are dropped lazily on read and swept on every write and
    ``stats()`` call.  When a new key would push the store past ``maxsize``,
    the oldest ``ceil(maxsize * eviction_fraction)`` entries (by creation
    time) are evicted in one batch.

    ``_data`` is kept in creation order: an overwrite removes the old entry
    before re-inserting, so the head of the dict is always the oldest entry.
    """

    def __init__(
        self,
        maxsize: int = 100,
        ttl: float = 600,
        eviction_fraction: float = 0.2,
        name: str = "cache",
    ):
        self._maxsize = maxsize
        self._ttl = ttl
        self._eviction_fraction = eviction_fraction
        self._name = name
        self._data: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                metrics.inc_cache_miss(self._name)
                return None
            if time.monotonic() >= entry.expires_at:
                del self._data[key]
                metrics.inc_cache_miss(self._name)
                return None
            metrics.inc_cache_hit(self._name)
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = time.monotonic()
        if ttl is None:
            ttl = self._ttl
        with self._lock:
            self._sweep_unlocked(now)
            if key in self._data:
                del self._data[key]
            elif len(self._data) >= self._maxsize:
                self._evict_unlocked()
            self._data[key] = CacheEntry(
                value=value, created_at=now, expires_at=now + ttl
            )
            size = len(self._data)
        logger.debug(
            "%s cache stored %s (size=%d, expires_in=%.0fs)",
            self._name, key[:50], size, ttl,
        )

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
        logger.info("%s cache cleared", self._name)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._sweep_unlocked(time.monotonic())
            return {"size": len(self._data), "keys": list(self._data)}

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._data)

    # -- internal ------------------------------------------------------------

    def _sweep_unlocked(self, now: float) -> None:
        expired = [k for k, e in self._data.items() if now >= e.expires_at]
        for k in expired:
            del self._data[k]

    def _evict_unlocked(self) -> None:
        count = max(1, math.ceil(self._maxsize * self._eviction_fraction))
        count = min(count, len(self._data))
        for _ in range(count):
            self._data.popitem(last=False)
        metrics.inc_cache_eviction(self._name, count)
        logger.debug("%s cache evicted %d oldest entries", self._name, count)


def make_cache_key(coordinates: Sequence[Coordinate]) -> str:
    """Encode an ordered ``(lon, lat)`` sequence as a stable cache key.

    Each coordinate is rounded to 4 decimal places (~11m precision), so
    points that agree to 4 decimals share a key.  Order is preserved:
    pickup first, then stops in visit order.
    """
    return "|".join(f"{lon:.4f},{lat:.4f}" for lon, lat in coordinates)
