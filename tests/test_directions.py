"""Tests for the cached directions fetcher."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from conftest import ROUTE_BODY, ProviderStub, make_directions, make_directions_pool
from routecache.services.cache import TTLCache, make_cache_key
from routecache.services.directions import (
    DirectionsError,
    DirectionsPool,
    NoRouteFound,
    ProviderUnavailable,
    RouteOptions,
)

DIRECT = [(121.0340, 14.5995), (121.0550, 14.6091)]
MULTI_STOP = [(121.0340, 14.5995), (121.0550, 14.6091), (121.0650, 14.5850)]


# ---------------------------------------------------------------------------
# Cache short-circuit
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_second_call_served_from_cache():
    stub = ProviderStub()
    directions = make_directions(stub)

    first = await directions.fetch_route(DIRECT)
    second = await directions.fetch_route(DIRECT)

    assert stub.call_count == 1
    assert first == ROUTE_BODY
    assert second == first


@pytest.mark.asyncio
async def test_rounded_coordinates_share_cache_entry():
    stub = ProviderStub()
    directions = make_directions(stub)

    await directions.fetch_route(DIRECT)
    await directions.fetch_route([(121.03400004, 14.59950004), (121.0550, 14.6091)])

    assert stub.call_count == 1


@pytest.mark.asyncio
async def test_stores_full_response_under_coordinate_key():
    cache = TTLCache(maxsize=10, ttl=600, name="routes")
    directions = make_directions(ProviderStub(), cache=cache)

    await directions.fetch_route(DIRECT)

    assert cache.stats()["keys"] == [make_cache_key(DIRECT)]
    assert cache.get(make_cache_key(DIRECT)) == ROUTE_BODY


# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_direct_route_request():
    stub = ProviderStub()
    directions = make_directions(stub)

    await directions.fetch_route(DIRECT)

    request = stub.requests[0]
    assert request.method == "GET"
    assert request.url.path == (
        "/directions/v5/mapbox/driving/121.034,14.5995;121.055,14.6091"
    )
    params = request.url.params
    assert params["geometries"] == "geojson"
    assert params["overview"] == "full"
    assert params["steps"] == "false"
    assert params["annotations"] == "distance,duration"
    assert params["access_token"] == "test-token"
    assert "waypoints_per_route" not in params


@pytest.mark.asyncio
async def test_multi_stop_optimizes_by_default():
    stub = ProviderStub()
    directions = make_directions(stub)

    await directions.fetch_route(MULTI_STOP)

    assert stub.requests[0].url.params["waypoints_per_route"] == "true"


@pytest.mark.asyncio
async def test_caller_can_disable_optimization():
    stub = ProviderStub()
    directions = make_directions(stub)

    await directions.fetch_route(MULTI_STOP, RouteOptions(optimize=False))

    assert "waypoints_per_route" not in stub.requests[0].url.params


@pytest.mark.asyncio
async def test_profile_and_overview_options():
    stub = ProviderStub()
    directions = make_directions(stub)

    await directions.fetch_route(DIRECT, RouteOptions(profile="cycling", overview="none"))

    request = stub.requests[0]
    assert "/cycling/" in request.url.path
    assert request.url.params["overview"] == "false"


@pytest.mark.asyncio
async def test_requires_two_coordinates():
    stub = ProviderStub()
    directions = make_directions(stub)

    with pytest.raises(ValueError):
        await directions.fetch_route([(121.0340, 14.5995)])
    assert stub.call_count == 0


# ---------------------------------------------------------------------------
# TTL by route shape
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_multi_stop_routes_expire_sooner():
    cache = TTLCache(maxsize=10, ttl=600, name="routes")
    directions = make_directions(ProviderStub(), cache=cache)

    with patch("routecache.services.cache.time") as mock_time:
        mock_time.monotonic.return_value = 1000.0
        await directions.fetch_route(DIRECT)
        await directions.fetch_route(MULTI_STOP)

        mock_time.monotonic.return_value = 1000.0 + 10 * 60 + 1
        assert cache.get(make_cache_key(MULTI_STOP)) is None
        assert cache.get(make_cache_key(DIRECT)) is not None

        mock_time.monotonic.return_value = 1000.0 + 30 * 60 + 1
        assert cache.get(make_cache_key(DIRECT)) is None


@pytest.mark.asyncio
async def test_ttl_multiplier_extends_lifetime():
    cache = TTLCache(maxsize=10, ttl=600, name="routes")
    directions = make_directions(ProviderStub(), cache=cache)

    with patch("routecache.services.cache.time") as mock_time:
        mock_time.monotonic.return_value = 1000.0
        await directions.fetch_route(MULTI_STOP, ttl_multiplier=3)

        mock_time.monotonic.return_value = 1000.0 + 29 * 60
        assert cache.get(make_cache_key(MULTI_STOP)) is not None
        mock_time.monotonic.return_value = 1000.0 + 30 * 60
        assert cache.get(make_cache_key(MULTI_STOP)) is None


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_server_error_raises_provider_unavailable():
    stub = ProviderStub(status_code=500, body={"message": "upstream exploded"})
    directions = make_directions(stub)

    with pytest.raises(ProviderUnavailable) as excinfo:
        await directions.fetch_route(DIRECT)

    assert excinfo.value.status_code == 500
    assert "upstream exploded" in excinfo.value.detail
    assert directions.cache.size == 0


@pytest.mark.asyncio
async def test_empty_routes_raises_no_route_found():
    directions = make_directions(ProviderStub(body={"code": "NoRoute", "routes": []}))

    with pytest.raises(NoRouteFound):
        await directions.fetch_route(DIRECT)
    assert directions.cache.size == 0


@pytest.mark.asyncio
async def test_missing_routes_raises_no_route_found():
    directions = make_directions(ProviderStub(body={"code": "Ok"}))

    with pytest.raises(NoRouteFound):
        await directions.fetch_route(DIRECT)


@pytest.mark.asyncio
@pytest.mark.parametrize("routes", [["not-a-route"], [None], {"distance": 1}])
async def test_malformed_routes_raise_provider_unavailable(routes):
    directions = make_directions(ProviderStub(body={"code": "Ok", "routes": routes}))

    with pytest.raises(ProviderUnavailable) as excinfo:
        await directions.fetch_route(DIRECT)
    assert excinfo.value.status_code == 200
    assert directions.cache.size == 0


@pytest.mark.asyncio
async def test_transport_error_raises_provider_unavailable():
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    directions = make_directions(ProviderStub(responder=_refuse))

    with pytest.raises(ProviderUnavailable) as excinfo:
        await directions.fetch_route(DIRECT)
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_invalid_json_raises_provider_unavailable():
    directions = make_directions(
        ProviderStub(responder=lambda request: httpx.Response(200, text="<html>"))
    )

    with pytest.raises(ProviderUnavailable):
        await directions.fetch_route(DIRECT)


@pytest.mark.asyncio
async def test_failures_are_not_retried_or_cached():
    stub = ProviderStub(status_code=503, body={})
    directions = make_directions(stub)

    for _ in range(2):
        with pytest.raises(DirectionsError):
            await directions.fetch_route(DIRECT)

    assert stub.call_count == 2


# ---------------------------------------------------------------------------
# Concurrent misses
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_misses_not_coalesced_by_default():
    stub = ProviderStub()
    directions = make_directions(stub)

    await asyncio.gather(directions.fetch_route(DIRECT), directions.fetch_route(DIRECT))

    assert stub.call_count == 2
    assert directions.cache.size == 1


@pytest.mark.asyncio
async def test_concurrent_misses_coalesced_when_enabled():
    stub = ProviderStub()
    directions = make_directions(stub, coalesce=True)

    results = await asyncio.gather(
        directions.fetch_route(DIRECT),
        directions.fetch_route(DIRECT),
        directions.fetch_route(DIRECT),
    )

    assert stub.call_count == 1
    assert all(r == ROUTE_BODY for r in results)


@pytest.mark.asyncio
async def test_coalesced_failure_reaches_every_waiter():
    stub = ProviderStub(status_code=500, body={})
    directions = make_directions(stub, coalesce=True)

    results = await asyncio.gather(
        directions.fetch_route(DIRECT),
        directions.fetch_route(DIRECT),
        return_exceptions=True,
    )

    assert stub.call_count == 1
    assert all(isinstance(r, ProviderUnavailable) for r in results)


# ---------------------------------------------------------------------------
# One cache per option set
# ---------------------------------------------------------------------------


def test_variant_labels():
    assert DirectionsPool.variant(RouteOptions()) == "driving/full"
    assert DirectionsPool.variant(RouteOptions(profile="cycling", overview="none")) == "cycling/none"
    assert (
        DirectionsPool.variant(RouteOptions(optimize=False))
        == "driving/full/optimize=false"
    )


@pytest.mark.asyncio
async def test_pool_separates_profiles_and_overviews():
    stub = ProviderStub()
    pool = make_directions_pool(stub)

    await pool.fetch_route(DIRECT)
    await pool.fetch_route(DIRECT, RouteOptions(overview="simplified"))
    await pool.fetch_route(DIRECT, RouteOptions(profile="walking"))
    await pool.fetch_route(DIRECT)

    assert stub.call_count == 3
    assert pool.size == 3
    assert set(pool.caches()) == {"driving/full", "driving/simplified", "walking/full"}


@pytest.mark.asyncio
async def test_pool_reuses_client_for_same_options():
    pool = make_directions_pool(ProviderStub())

    assert pool.client_for(RouteOptions()) is pool.client_for(None)
    assert pool.client_for(RouteOptions()) is not pool.client_for(RouteOptions(profile="walking"))


@pytest.mark.asyncio
async def test_pool_does_not_coalesce_across_options():
    stub = ProviderStub()
    pool = make_directions_pool(stub, coalesce=True)

    await asyncio.gather(
        pool.fetch_route(DIRECT),
        pool.fetch_route(DIRECT, RouteOptions(overview="simplified")),
    )

    assert stub.call_count == 2
    assert sorted(r.url.params["overview"] for r in stub.requests) == ["full", "simplified"]


@pytest.mark.asyncio
async def test_pool_caches_share_limits_and_clear_together():
    pool = make_directions_pool(ProviderStub(), maxsize=7, ttl=30)

    await pool.fetch_route(DIRECT)
    await pool.fetch_route(DIRECT, RouteOptions(profile="walking"))

    assert all(c.maxsize == 7 and c.ttl == 30 for c in pool.caches().values())
    assert all(c.name == "routes" for c in pool.caches().values())
    pool.clear()
    assert pool.size == 0
