"""Thread-safe in-memory application metrics collector."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class MetricsCollector:
    """Collects counters and latency samples for observability.

    Thread-safe via a single ``threading.Lock``.  Cache counters are kept
    per cache name (``routes``, ``styles``) so both stores can be reported
    side by side.  The latency list is bounded at ``_MAX_LATENCY_SAMPLES``;
    when exceeded it is halved by keeping only the most-recent entries.
    """

    _MAX_LATENCY_SAMPLES: int = field(default=10_000, repr=False)

    # Counters
    total_requests: int = field(default=0, init=False)
    status_codes: dict[int, int] = field(default_factory=dict, init=False)
    cache_hits: dict[str, int] = field(default_factory=dict, init=False)
    cache_misses: dict[str, int] = field(default_factory=dict, init=False)
    cache_evictions: dict[str, int] = field(default_factory=dict, init=False)
    directions_ok: int = field(default=0, init=False)
    directions_failures: int = field(default=0, init=False)
    geocoder_ok: int = field(default=0, init=False)
    geocoder_fallbacks: int = field(default=0, init=False)
    preload_ok: int = field(default=0, init=False)
    preload_failures: int = field(default=0, init=False)

    # Latency samples (milliseconds)
    _latencies: list[float] = field(default_factory=list, init=False, repr=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _start_time: float = field(default_factory=time.monotonic, init=False, repr=False)

    # -- Counter helpers ---------------------------------------------------

    def inc_request(self, status_code: int) -> None:
        with self._lock:
            self.total_requests += 1
            self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1

    def inc_cache_hit(self, name: str) -> None:
        with self._lock:
            self.cache_hits[name] = self.cache_hits.get(name, 0) + 1

    def inc_cache_miss(self, name: str) -> None:
        with self._lock:
            self.cache_misses[name] = self.cache_misses.get(name, 0) + 1

    def inc_cache_eviction(self, name: str, count: int = 1) -> None:
        with self._lock:
            self.cache_evictions[name] = self.cache_evictions.get(name, 0) + count

    def inc_directions(self, success: bool) -> None:
        with self._lock:
            if success:
                self.directions_ok += 1
            else:
                self.directions_failures += 1

    def inc_geocoder(self, *, fallback: bool) -> None:
        with self._lock:
            if fallback:
                self.geocoder_fallbacks += 1
            else:
                self.geocoder_ok += 1

    def inc_preload(self, success: bool) -> None:
        with self._lock:
            if success:
                self.preload_ok += 1
            else:
                self.preload_failures += 1

    # -- Latency -----------------------------------------------------------

    def record_latency(self, ms: float) -> None:
        with self._lock:
            self._latencies.append(ms)
            if len(self._latencies) > self._MAX_LATENCY_SAMPLES:
                # Keep only the most-recent half
                half = self._MAX_LATENCY_SAMPLES // 2
                self._latencies = self._latencies[-half:]

    def get_latency_percentiles(self) -> dict[str, float]:
        with self._lock:
            return self._percentiles_unlocked()

    def _percentiles_unlocked(self) -> dict[str, float]:
        """Compute p50/p90/p95/p99; caller must hold ``_lock``."""
        if not self._latencies:
            return {"p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
        s = sorted(self._latencies)
        n = len(s)
        return {
            "p50": round(s[int(n * 0.50)], 2),
            "p90": round(s[int(min(n * 0.90, n - 1))], 2),
            "p95": round(s[int(min(n * 0.95, n - 1))], 2),
            "p99": round(s[int(min(n * 0.99, n - 1))], 2),
        }

    def hit_rate(self, name: str) -> float:
        with self._lock:
            return self._hit_rate_unlocked(name)

    def _hit_rate_unlocked(self, name: str) -> float:
        hits = self.cache_hits.get(name, 0)
        total = hits + self.cache_misses.get(name, 0)
        return round(hits / total, 4) if total else 0.0

    # -- Snapshot / reset --------------------------------------------------

    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._start_time, 2)

    def snapshot(self) -> dict:
        with self._lock:
            names = sorted(set(self.cache_hits) | set(self.cache_misses) | set(self.cache_evictions))
            return {
                "uptime_seconds": round(time.monotonic() - self._start_time, 2),
                "total_requests": self.total_requests,
                "status_codes": dict(self.status_codes),
                "caches": {
                    name: {
                        "hits": self.cache_hits.get(name, 0),
                        "misses": self.cache_misses.get(name, 0),
                        "evictions": self.cache_evictions.get(name, 0),
                        "hit_rate": self._hit_rate_unlocked(name),
                    }
                    for name in names
                },
                "directions": {
                    "ok": self.directions_ok,
                    "failures": self.directions_failures,
                },
                "geocoder": {
                    "ok": self.geocoder_ok,
                    "fallbacks": self.geocoder_fallbacks,
                },
                "preload": {
                    "ok": self.preload_ok,
                    "failures": self.preload_failures,
                },
                "latency_ms": self._percentiles_unlocked(),
            }

    def reset(self) -> None:
        with self._lock:
            self.total_requests = 0
            self.status_codes.clear()
            self.cache_hits.clear()
            self.cache_misses.clear()
            self.cache_evictions.clear()
            self.directions_ok = 0
            self.directions_failures = 0
            self.geocoder_ok = 0
            self.geocoder_fallbacks = 0
            self.preload_ok = 0
            self.preload_failures = 0
            self._latencies.clear()
            self._start_time = time.monotonic()


# Module-level singleton
metrics = MetricsCollector()
