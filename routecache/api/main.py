from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from routecache.api.exception_handlers import (
    directions_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from routecache.api.middleware import RequestLoggingMiddleware
from routecache.api.routes.cache import router as cache_router
from routecache.api.routes.geocode import router as geocode_router
from routecache.api.routes.network import router as network_router
from routecache.api.routes.routes import router as routes_router
from routecache.api.routes.styles import router as styles_router
from routecache.api.schemas import HealthResponse
from routecache.config import Settings, settings
from routecache.logging_config import setup_logging
from routecache.services.directions import DirectionsError, DirectionsPool
from routecache.services.metrics import metrics
from routecache.services.network_policy import evaluate
from routecache.services.preload import COMMON_ROUTES, schedule_preload
from routecache.services.styles import MapStyleCache

logger = logging.getLogger("routecache")

_DESCRIPTION = """\
Caching layer for the delivery-booking map.

Fronts the **directions**, **map style** and **reverse geocoding**
providers used while a customer places pickup and drop-off pins.

### Caching

Route lookups are cached per waypoint sequence, with coordinates rounded
to 4 decimal places (~11m), in a separate cache for each profile and
overview geometry. Direct routes stay cached for 30 minutes and
multi-stop routes for 10 minutes; map styles for 30 minutes. Caches live
in process memory only.

### Network-adaptive behaviour

Clients that send the `ECT`, `Downlink`, `RTT` and `Save-Data` Client
Hints receive a policy tuned to their connection: slower links get longer
debounce intervals, fewer concurrent requests, longer cache lifetimes and
simplified route geometry.
"""

_OPENAPI_TAGS = [
    {"name": "system", "description": "Health checks and operational endpoints."},
    {"name": "routes", "description": "Cached directions lookups for pickup and drop-off waypoints."},
    {"name": "geocode", "description": "Reverse geocoding with a coordinate fallback."},
    {"name": "network", "description": "Connection-quality policy derived from Client Hints."},
    {"name": "styles", "description": "Cached map style documents."},
    {"name": "cache", "description": "Cache introspection and clearing."},
]


def configure_state(app: FastAPI, config: Settings) -> None:
    """Build the caches and provider clients and attach them to ``app.state``."""
    http_client = httpx.AsyncClient(timeout=config.http_timeout)
    app.state.settings = config
    app.state.style_cache = MapStyleCache(
        maxsize=config.style_cache_maxsize, ttl=config.style_cache_ttl
    )
    app.state.http_client = http_client
    app.state.directions = DirectionsPool(
        http_client,
        config.mapbox_access_token,
        maxsize=config.route_cache_maxsize,
        ttl=config.route_cache_ttl,
        eviction_fraction=config.route_cache_eviction_fraction,
        base_url=config.directions_base_url,
        direct_ttl=config.direct_route_ttl,
        multi_stop_ttl=config.multi_stop_route_ttl,
        coalesce=config.coalesce_inflight_routes,
    )
    app.state.preload_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: Settings = app.state.settings
    setup_logging(config.log_level, config.log_format)

    if config.preload_enabled and config.mapbox_access_token:
        # No client telemetry exists at startup, so this is the optimistic policy.
        policy = evaluate(None, base_ttl=config.route_cache_ttl)
        app.state.preload_task = schedule_preload(
            app.state.directions,
            COMMON_ROUTES,
            delay=config.preload_delay,
            max_concurrency=policy.max_concurrent_requests,
        )
    elif config.preload_enabled:
        logger.warning("Route preloading skipped: MAPBOX_ACCESS_TOKEN is not configured")

    yield

    task: asyncio.Task | None = app.state.preload_task
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Route preloading cancelled at shutdown")
    await app.state.http_client.aclose()


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(
        title="Route Cache API",
        version="0.1.0",
        summary="Cached directions, map styles and reverse geocoding for delivery booking",
        description=_DESCRIPTION,
        openapi_tags=_OPENAPI_TAGS,
        lifespan=lifespan,
    )
    configure_state(app, config)

    # Exception handlers
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DirectionsError, directions_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS
    origins = [o.strip() for o in config.cors_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms", "Accept-CH"],
    )

    # Request logging
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(routes_router)
    app.include_router(geocode_router)
    app.include_router(network_router)
    app.include_router(styles_router)
    app.include_router(cache_router)

    @app.get(
        "/health",
        tags=["system"],
        summary="Health check",
        description="Report cache sizes, hit rates and uptime.",
        response_model=HealthResponse,
    )
    async def health():
        directions: DirectionsPool = app.state.directions
        style_cache: MapStyleCache = app.state.style_cache
        return {
            "status": "ok",
            "caches": {
                "routes": {
                    "size": directions.size,
                    "max_size": directions.maxsize,
                    "hit_rate": metrics.hit_rate("routes"),
                },
                "styles": {
                    "size": style_cache.size,
                    "max_size": style_cache.maxsize,
                    "hit_rate": metrics.hit_rate("styles"),
                },
            },
            "directions_configured": bool(config.mapbox_access_token),
            "uptime_seconds": metrics.uptime_seconds(),
        }

    @app.get(
        "/metrics",
        tags=["system"],
        summary="Application metrics",
        description="Request counters, latency percentiles, per-cache hit rates "
        "and provider success/fallback counts.",
    )
    async def get_metrics():
        snap = metrics.snapshot()
        snap["cache_sizes"] = {
            "routes": app.state.directions.size,
            "styles": app.state.style_cache.size,
        }
        return snap

    return app


app = create_app()
