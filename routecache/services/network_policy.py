"""Network-adaptive request and caching policy.

The browser exposes connection telemetry through the Network Information
API; on the server side the same values arrive as HTTP Client Hints
(``ECT``, ``Downlink``, ``RTT``, ``Save-Data``).  The profile is re-read on
every request and the derived policy is a pure function of it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

CLIENT_HINT_HEADERS = ("ECT", "Downlink", "RTT", "Save-Data")

SLOW_EFFECTIVE_TYPES = frozenset({"slow-2g", "2g"})
EFFECTIVE_TYPES = frozenset({"slow-2g", "2g", "3g", "4g"})


@dataclass(frozen=True)
class NetworkProfile:
    """Connection telemetry; ``None`` fields were not reported."""

    effective_type: str | None = None
    downlink_mbps: float | None = None
    rtt_ms: int | None = None
    save_data: bool = False

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> NetworkProfile | None:
        """Parse Client Hints headers, returning *None* if none are present."""
        raw_ect = headers.get("ect")
        raw_downlink = headers.get("downlink")
        raw_rtt = headers.get("rtt")
        raw_save_data = headers.get("save-data")
        if raw_ect is None and raw_downlink is None and raw_rtt is None and raw_save_data is None:
            return None

        effective_type = None
        if raw_ect is not None:
            ect = raw_ect.strip().lower()
            if ect in EFFECTIVE_TYPES:
                effective_type = ect

        rtt = _parse_float(raw_rtt)

        return cls(
            effective_type=effective_type,
            downlink_mbps=_parse_float(raw_downlink),
            rtt_ms=int(rtt) if rtt is not None else None,
            save_data=(raw_save_data or "").strip().lower() == "on",
        )


def _parse_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        logger.debug("Ignoring unparsable client hint value %r", raw)
        return None
    return value


@dataclass(frozen=True)
class DerivedPolicy:
    debounce_ms: int
    cache_ttl_multiplier: int
    cache_ttl_seconds: float
    max_concurrent_requests: int
    use_simplified_rendering: bool
    preload_enabled: bool
    enable_map_animations: bool
    map_quality: str
    is_slow_connection: bool


def is_slow(profile: NetworkProfile | None) -> bool:
    """Classify a connection as slow; unreported values never count as slow."""
    if profile is None:
        return False
    return (
        profile.effective_type in SLOW_EFFECTIVE_TYPES
        or (profile.downlink_mbps is not None and profile.downlink_mbps < 1)
        or (profile.rtt_ms is not None and profile.rtt_ms > 1000)
        or profile.save_data
    )


def evaluate(profile: NetworkProfile | None, *, base_ttl: float = 600) -> DerivedPolicy:
    """Derive request cadence and caching parameters from *profile*.

    A missing profile (no telemetry at all) is treated optimistically as a
    fast connection.
    """
    slow = is_slow(profile)
    multiplier = 3 if slow else 1
    return DerivedPolicy(
        debounce_ms=500 if slow else 300,
        cache_ttl_multiplier=multiplier,
        cache_ttl_seconds=base_ttl * multiplier,
        max_concurrent_requests=2 if slow else 5,
        use_simplified_rendering=slow,
        preload_enabled=not slow,
        enable_map_animations=not slow,
        map_quality="low" if slow else "high",
        is_slow_connection=slow,
    )
