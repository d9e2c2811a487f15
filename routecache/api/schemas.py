"""Pydantic request and response models for OpenAPI documentation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from routecache.services.geocoder import is_valid_coordinates


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error returned by all non-2xx responses."""

    error: bool = Field(True, description="Always true for error responses")
    status_code: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable error message")


class PolicyModel(BaseModel):
    """Request cadence and caching parameters derived from connection quality."""

    debounce_ms: int = Field(..., description="Debounce interval for pin drags and lookups")
    cache_ttl_multiplier: int = Field(..., description="Multiplier applied to route cache TTLs")
    cache_ttl_seconds: float = Field(..., description="Base route cache TTL after the multiplier")
    max_concurrent_requests: int = Field(..., description="Concurrent request cap for the client")
    use_simplified_rendering: bool = Field(..., description="Render simplified geometries")
    preload_enabled: bool = Field(..., description="Whether background preloading is worthwhile")
    enable_map_animations: bool = Field(..., description="Whether map animations should run")
    map_quality: Literal["low", "high"] = Field(..., description="Map rendering quality")
    is_slow_connection: bool = Field(..., description="Connection classified as slow")


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


class CacheHealth(BaseModel):
    """Cache subsystem status."""

    size: int = Field(..., description="Current number of cached entries")
    max_size: int = Field(..., description="Maximum cache capacity")
    hit_rate: float = Field(..., description="Cache hit rate (0.0–1.0)")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall status: 'ok'")
    caches: dict[str, CacheHealth] = Field(..., description="Route and style cache status")
    directions_configured: bool = Field(
        ..., description="Whether a directions provider token is configured"
    )
    uptime_seconds: float = Field(..., description="Seconds since the process started")


# ---------------------------------------------------------------------------
# /v1/routes
# ---------------------------------------------------------------------------


class RouteRequest(BaseModel):
    """Ordered waypoints for a route lookup: pickup first, final drop-off last."""

    coordinates: list[tuple[float, float]] = Field(
        ...,
        min_length=2,
        description="Ordered (longitude, latitude) pairs",
        examples=[[[121.0340, 14.5995], [121.0550, 14.6091]]],
    )
    profile: Literal["driving", "walking", "cycling"] = Field(
        "driving", description="Routing profile"
    )
    optimize: bool | None = Field(
        None,
        description="Optimize waypoint order. Defaults to true for multi-stop routes.",
    )
    overview: Literal["full", "simplified", "none"] | None = Field(
        None,
        description="Route geometry detail. Defaults to 'simplified' on slow connections.",
    )
    allow_estimate: bool = Field(
        False,
        description="Return a straight-line estimate instead of an error when the provider fails",
    )

    @field_validator("coordinates")
    @classmethod
    def _check_ranges(cls, value: list[tuple[float, float]]) -> list[tuple[float, float]]:
        for lon, lat in value:
            if not is_valid_coordinates(lat, lon):
                raise ValueError(f"Coordinate out of range: ({lon}, {lat})")
        return value


class RouteResponse(BaseModel):
    route: dict[str, Any] = Field(
        ..., description="Directions provider payload with at least one entry in 'routes'"
    )
    estimated: bool = Field(
        ..., description="True when the route is a straight-line fallback estimate"
    )
    policy: PolicyModel


# ---------------------------------------------------------------------------
# /v1/geocode
# ---------------------------------------------------------------------------


class ReverseGeocodeResponse(BaseModel):
    lat: float
    lng: float
    address: str = Field(..., description="Formatted address, or 'lat, lng' on fallback")
    fallback: bool = Field(..., description="True when the address is a coordinate fallback")


# ---------------------------------------------------------------------------
# /v1/network
# ---------------------------------------------------------------------------


class NetworkProfileModel(BaseModel):
    effective_type: str | None = None
    downlink_mbps: float | None = None
    rtt_ms: int | None = None
    save_data: bool = False


class NetworkPolicyResponse(BaseModel):
    profile: NetworkProfileModel | None = Field(
        None, description="Telemetry parsed from Client Hints, null when none was sent"
    )
    policy: PolicyModel


# ---------------------------------------------------------------------------
# /v1/cache
# ---------------------------------------------------------------------------


class CacheStats(BaseModel):
    size: int = Field(..., description="Number of live entries")
    keys: list[str] = Field(..., description="Keys of the live entries, oldest first")


class CacheStatsResponse(BaseModel):
    routes: dict[str, CacheStats] = Field(
        ..., description="Route caches keyed by profile/overview, e.g. driving/full"
    )
    styles: CacheStats


class CacheClearResponse(BaseModel):
    cleared: list[str] = Field(..., description="Names of the caches that were cleared")
