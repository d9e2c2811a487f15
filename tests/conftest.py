from __future__ import annotations

import asyncio
import inspect

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from routecache.api.main import app
from routecache.services.cache import TTLCache
from routecache.services.directions import DirectionsClient, DirectionsPool

ROUTE_BODY = {
    "code": "Ok",
    "routes": [
        {
            "distance": 4321.0,
            "duration": 780.0,
            "geometry": {
                "type": "LineString",
                "coordinates": [[121.034, 14.5995], [121.055, 14.6091]],
            },
        }
    ],
    "waypoints": [],
}


class ProviderStub:
    """Records requests and answers them with a fixed or per-request response."""

    def __init__(self, status_code: int = 200, body=ROUTE_BODY, responder=None):
        self.status_code = status_code
        self.body = body
        self.responder = responder
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Yield like a real network call so concurrent fetches interleave
        await asyncio.sleep(0)
        if self.responder is not None:
            response = self.responder(request)
            if inspect.isawaitable(response):
                response = await response
            return response
        return httpx.Response(self.status_code, json=self.body)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_directions(stub: ProviderStub, cache: TTLCache | None = None, **kwargs) -> DirectionsClient:
    cache = cache if cache is not None else TTLCache(maxsize=100, ttl=600, name="routes")
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return DirectionsClient(
        http_client,
        cache,
        "test-token",
        base_url="https://directions.test/directions/v5/mapbox",
        **kwargs,
    )


def make_directions_pool(stub: ProviderStub, **kwargs) -> DirectionsPool:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return DirectionsPool(
        http_client,
        "test-token",
        base_url="https://directions.test/directions/v5/mapbox",
        **kwargs,
    )


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def _clear_app_caches():
    """Start every test with empty application caches and no overrides."""
    app.state.directions.clear()
    app.state.style_cache.clear()
    yield
    app.dependency_overrides.clear()
    app.state.directions.clear()
    app.state.style_cache.clear()
