from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Response

from routecache.api.dependencies import get_directions, get_network_policy, get_settings
from routecache.api.schemas import ErrorResponse, RouteRequest, RouteResponse
from routecache.config import Settings
from routecache.services.directions import DirectionsError, DirectionsPool, RouteOptions
from routecache.services.distance import estimate_route
from routecache.services.network_policy import CLIENT_HINT_HEADERS, DerivedPolicy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["routes"])


@router.post(
    "/routes",
    summary="Cached route lookup",
    description=(
        "Return driving directions for an ordered list of waypoints. "
        "Responses are cached per waypoint sequence (rounded to 4 decimals) "
        "and per profile and overview: "
        "30 minutes for direct routes, 10 minutes for multi-stop routes, "
        "tripled on slow connections."
    ),
    response_model=RouteResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Provider found no route"},
        502: {"model": ErrorResponse, "description": "Directions provider unavailable"},
    },
)
async def create_route(
    body: RouteRequest,
    response: Response,
    directions: DirectionsPool = Depends(get_directions),
    policy: DerivedPolicy = Depends(get_network_policy),
    config: Settings = Depends(get_settings),
):
    response.headers["Accept-CH"] = ", ".join(CLIENT_HINT_HEADERS)

    overview = body.overview
    if overview is None:
        overview = "simplified" if policy.use_simplified_rendering else "full"
    options = RouteOptions(profile=body.profile, optimize=body.optimize, overview=overview)

    estimated = False
    try:
        route = await directions.fetch_route(
            body.coordinates,
            options,
            ttl_multiplier=policy.cache_ttl_multiplier,
        )
    except DirectionsError as exc:
        if not body.allow_estimate:
            raise
        logger.warning("Directions lookup failed (%s), returning straight-line estimate", exc)
        route = estimate_route(body.coordinates, speed_kmh=config.fallback_speed_kmh)
        estimated = True

    return {"route": route, "estimated": estimated, "policy": asdict(policy)}
