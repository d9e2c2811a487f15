"""Cached driving-directions fetcher backed by the Mapbox Directions API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal, Sequence

import httpx
from pydantic import BaseModel

from routecache.services.cache import Coordinate, TTLCache, make_cache_key
from routecache.services.metrics import metrics

logger = logging.getLogger(__name__)

# The provider spells "no overview geometry" as ``overview=false``.
_OVERVIEW_PARAM = {"full": "full", "simplified": "simplified", "none": "false"}


class DirectionsError(Exception):
    """Base exception for directions provider failures."""

    def __init__(self, status_code: int | None, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class ProviderUnavailable(DirectionsError):
    """Raised on non-2xx responses or when the provider cannot be reached."""


class NoRouteFound(DirectionsError):
    """Raised when the provider answers but returns no route candidates."""

    def __init__(self, detail: str = "No routes found in response") -> None:
        super().__init__(200, detail)


class RouteOptions(BaseModel):
    profile: Literal["driving", "walking", "cycling"] = "driving"
    # None means "optimize whenever there is more than one drop-off"
    optimize: bool | None = None
    overview: Literal["full", "simplified", "none"] = "full"


class DirectionsClient:
    """Memoizes directions lookups in a :class:`TTLCache`.

    A cache hit returns without any network activity.  On a miss the
    provider is called once, the response is validated and stored with a
    TTL that depends on the number of waypoints: direct two-point routes
    stay fresh longer than multi-stop routes, which users tend to edit.

    No retries are attempted; failures propagate to the caller as
    :class:`DirectionsError` subclasses.  With ``coalesce=True`` concurrent
    misses for the same key share one in-flight request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: TTLCache,
        access_token: str,
        *,
        base_url: str = "https://api.mapbox.com/directions/v5/mapbox",
        direct_ttl: float = 1800,
        multi_stop_ttl: float = 600,
        coalesce: bool = False,
    ) -> None:
        self._client = http_client
        self._cache = cache
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._direct_ttl = direct_ttl
        self._multi_stop_ttl = multi_stop_ttl
        self._coalesce = coalesce
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def ttl_for(self, coordinates: Sequence[Coordinate]) -> float:
        return self._direct_ttl if len(coordinates) <= 2 else self._multi_stop_ttl

    async def fetch_route(
        self,
        coordinates: Sequence[Coordinate],
        options: RouteOptions | None = None,
        *,
        ttl_multiplier: float = 1.0,
    ) -> dict[str, Any]:
        """Return the provider response for *coordinates*, cache-first."""
        if len(coordinates) < 2:
            raise ValueError("A route needs a pickup and at least one drop-off")

        key = make_cache_key(coordinates)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Route cache hit: %s", key[:50])
            return cached

        options = options or RouteOptions()
        if not self._coalesce:
            return await self._fetch_and_store(key, coordinates, options, ttl_multiplier)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._fetch_and_store(key, coordinates, options, ttl_multiplier)
            )
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            logger.debug("Joining in-flight route request: %s", key[:50])
        return await asyncio.shield(task)

    # -- internal ------------------------------------------------------------

    def _build_request(
        self, coordinates: Sequence[Coordinate], options: RouteOptions
    ) -> tuple[str, dict[str, str]]:
        optimize = options.optimize
        if optimize is None:
            optimize = len(coordinates) > 2

        path = ";".join(f"{lon},{lat}" for lon, lat in coordinates)
        url = f"{self._base_url}/{options.profile}/{path}"
        params = {
            "geometries": "geojson",
            "overview": _OVERVIEW_PARAM[options.overview],
            "steps": "false",
            "annotations": "distance,duration",
        }
        if optimize:
            params["waypoints_per_route"] = "true"
        params["access_token"] = self._access_token
        return url, params

    async def _fetch_and_store(
        self,
        key: str,
        coordinates: Sequence[Coordinate],
        options: RouteOptions,
        ttl_multiplier: float,
    ) -> dict[str, Any]:
        url, params = self._build_request(coordinates, options)
        logger.info(
            "Fetching route from provider (coordinates=%d, profile=%s, optimize=%s)",
            len(coordinates), options.profile, "waypoints_per_route" in params,
        )

        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            metrics.inc_directions(False)
            logger.warning("Directions request failed: %s", exc)
            raise ProviderUnavailable(None, str(exc) or exc.__class__.__name__) from exc

        if not resp.is_success:
            metrics.inc_directions(False)
            logger.warning("Directions provider returned %d", resp.status_code)
            raise ProviderUnavailable(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            metrics.inc_directions(False)
            raise ProviderUnavailable(resp.status_code, "Invalid JSON in response") from exc

        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            metrics.inc_directions(False)
            raise NoRouteFound()
        if not isinstance(routes, list) or not all(isinstance(r, dict) for r in routes):
            metrics.inc_directions(False)
            raise ProviderUnavailable(resp.status_code, "Malformed routes in response")

        ttl = self.ttl_for(coordinates) * ttl_multiplier
        self._cache.set(key, data, ttl=ttl)
        metrics.inc_directions(True)

        best = routes[0]
        logger.info(
            "Route fetched and cached: %.2f km, %d min (ttl=%.0fs)",
            (best.get("distance") or 0) / 1000,
            round((best.get("duration") or 0) / 60),
            ttl,
        )
        return data


class DirectionsPool:
    """One :class:`DirectionsClient` and route cache per option set.

    Route cache keys cover only the waypoints, so a walking route or a
    simplified geometry must never be served to a caller that asked for a
    driving route or full geometry.  Clients are created on first use for
    each ``(profile, overview, optimize)`` combination; every cache shares
    the same size limits and reports metrics under ``name``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        access_token: str,
        *,
        maxsize: int = 100,
        ttl: float = 600,
        eviction_fraction: float = 0.2,
        name: str = "routes",
        **client_options: Any,
    ) -> None:
        self._http_client = http_client
        self._access_token = access_token
        self._maxsize = maxsize
        self._ttl = ttl
        self._eviction_fraction = eviction_fraction
        self._name = name
        self._client_options = client_options
        self._clients: dict[str, DirectionsClient] = {}

    @staticmethod
    def variant(options: RouteOptions) -> str:
        """Label for the cache serving *options*, e.g. ``driving/full``."""
        label = f"{options.profile}/{options.overview}"
        if options.optimize is not None:
            label += f"/optimize={str(options.optimize).lower()}"
        return label

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def size(self) -> int:
        return sum(c.cache.size for c in self._clients.values())

    def client_for(self, options: RouteOptions | None = None) -> DirectionsClient:
        options = options or RouteOptions()
        label = self.variant(options)
        client = self._clients.get(label)
        if client is None:
            cache = TTLCache(
                maxsize=self._maxsize,
                ttl=self._ttl,
                eviction_fraction=self._eviction_fraction,
                name=self._name,
            )
            client = DirectionsClient(
                self._http_client, cache, self._access_token, **self._client_options
            )
            self._clients[label] = client
            logger.info("Route cache created for %s", label)
        return client

    async def fetch_route(
        self,
        coordinates: Sequence[Coordinate],
        options: RouteOptions | None = None,
        *,
        ttl_multiplier: float = 1.0,
    ) -> dict[str, Any]:
        options = options or RouteOptions()
        return await self.client_for(options).fetch_route(
            coordinates, options, ttl_multiplier=ttl_multiplier
        )

    def caches(self) -> dict[str, TTLCache]:
        return {label: c.cache for label, c in self._clients.items()}

    def clear(self) -> None:
        for client in self._clients.values():
            client.cache.clear()
