"""Best-effort background population of the route cache."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from pydantic import BaseModel, Field

from routecache.services.cache import Coordinate
from routecache.services.directions import DirectionsClient, DirectionsPool
from routecache.services.metrics import metrics

logger = logging.getLogger(__name__)


class PreloadRoute(BaseModel):
    pickup: tuple[float, float]
    dropoffs: list[tuple[float, float]] = Field(..., min_length=1)

    @property
    def coordinates(self) -> list[Coordinate]:
        return [self.pickup, *self.dropoffs]


# Frequent Metro Manila pickup/drop-off pairs, as (lon, lat)
_MAKATI = (121.0340, 14.5995)
_BGC = (121.0550, 14.6091)
_ORTIGAS = (121.0650, 14.5850)
_ALABANG = (121.0400, 14.4200)

COMMON_ROUTES: list[PreloadRoute] = [
    PreloadRoute(pickup=_MAKATI, dropoffs=[_BGC]),
    PreloadRoute(pickup=_MAKATI, dropoffs=[_ORTIGAS]),
    PreloadRoute(pickup=_BGC, dropoffs=[_MAKATI]),
    PreloadRoute(pickup=_MAKATI, dropoffs=[_ALABANG]),
    PreloadRoute(pickup=_MAKATI, dropoffs=[_BGC, _ORTIGAS]),
]


async def preload_routes(
    directions: DirectionsClient | DirectionsPool,
    routes: Sequence[PreloadRoute],
    *,
    max_concurrency: int = 5,
) -> dict[str, int]:
    """Fetch every route in *routes* into the cache.

    Runs at most *max_concurrency* fetches at once.  A failing entry is
    logged and counted but never raised, and never stops its siblings.

    Returns:
        Dict with "attempted", "succeeded" and "failed" counts.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _preload_one(route: PreloadRoute) -> bool:
        async with semaphore:
            try:
                await directions.fetch_route(route.coordinates)
            except Exception:
                logger.warning(
                    "Failed to preload route from %s (%d drop-offs)",
                    route.pickup, len(route.dropoffs),
                    exc_info=True,
                )
                metrics.inc_preload(False)
                return False
        metrics.inc_preload(True)
        return True

    logger.info("Preloading %d common routes", len(routes))
    results = await asyncio.gather(*(_preload_one(r) for r in routes))
    succeeded = sum(1 for ok in results if ok)
    summary = {
        "attempted": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }
    logger.info(
        "Route preloading finished: %d/%d cached",
        summary["succeeded"], summary["attempted"],
    )
    return summary


def schedule_preload(
    directions: DirectionsClient | DirectionsPool,
    routes: Sequence[PreloadRoute],
    *,
    delay: float = 2.0,
    max_concurrency: int = 5,
) -> asyncio.Task:
    """Start preloading after *delay* seconds without blocking the caller.

    Must be called from a running event loop.  The returned task never
    raises for provider failures; cancel it to abandon preloading.
    """

    async def _run() -> dict[str, int]:
        await asyncio.sleep(delay)
        return await preload_routes(directions, routes, max_concurrency=max_concurrency)

    return asyncio.create_task(_run(), name="route-preload")
