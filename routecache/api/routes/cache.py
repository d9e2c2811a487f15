from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from routecache.api.dependencies import get_directions, get_style_cache
from routecache.api.schemas import CacheClearResponse, CacheStatsResponse
from routecache.services.directions import DirectionsPool
from routecache.services.styles import MapStyleCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cache", tags=["cache"])


@router.get(
    "/stats",
    summary="Cache statistics",
    description="Live entry counts and keys for every route cache and the map style cache.",
    response_model=CacheStatsResponse,
)
async def get_cache_stats(
    directions: DirectionsPool = Depends(get_directions),
    style_cache: MapStyleCache = Depends(get_style_cache),
):
    routes = {label: cache.stats() for label, cache in directions.caches().items()}
    return {"routes": routes, "styles": style_cache.stats()}


@router.delete(
    "",
    summary="Clear caches",
    description="Drop every cached route and map style immediately.",
    response_model=CacheClearResponse,
)
async def clear_caches(
    directions: DirectionsPool = Depends(get_directions),
    style_cache: MapStyleCache = Depends(get_style_cache),
):
    directions.clear()
    style_cache.clear()
    logger.info("All caches cleared")
    return {"cleared": ["routes", "styles"]}
