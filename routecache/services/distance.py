"""Straight-line route estimates used when the directions provider is down."""

from __future__ import annotations

import math
from typing import Any, Sequence

from routecache.services.cache import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_route(
    coordinates: Sequence[Coordinate],
    *,
    speed_kmh: float = 25.0,
) -> dict[str, Any]:
    """Build a provider-shaped payload from straight-line legs.

    Distance is the sum of the great-circle legs in visit order; duration
    assumes a constant average *speed_kmh*.  The payload is marked
    ``"estimated": True`` so callers can tell it apart from a real route.
    """
    if len(coordinates) < 2:
        raise ValueError("A route needs a pickup and at least one drop-off")
    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be positive")

    distance_km = sum(
        haversine_km(lat1, lon1, lat2, lon2)
        for (lon1, lat1), (lon2, lat2) in zip(coordinates, coordinates[1:])
    )
    return {
        "routes": [
            {
                "distance": round(distance_km * 1000, 1),
                "duration": round(distance_km / speed_kmh * 3600, 1),
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[lon, lat] for lon, lat in coordinates],
                },
            }
        ],
        "estimated": True,
    }
