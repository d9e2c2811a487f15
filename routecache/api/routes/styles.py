from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException

from routecache.api.dependencies import get_http_client, get_settings, get_style_cache
from routecache.api.schemas import ErrorResponse
from routecache.config import Settings
from routecache.services.styles import MapStyleCache, fetch_style, style_path

router = APIRouter(prefix="/v1/styles", tags=["styles"])


@router.get(
    "/{style_id:path}",
    summary="Cached map style",
    description=(
        "Return the map style document for `owner/style_id` (or a full "
        "`mapbox://styles/...` URL). Styles are cached for 30 minutes."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Malformed style identifier"},
        502: {"model": ErrorResponse, "description": "Style provider unavailable"},
    },
)
async def get_style(
    style_id: str,
    cache: MapStyleCache = Depends(get_style_cache),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
):
    try:
        style_path(style_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return await fetch_style(
        http_client,
        cache,
        style_id,
        config.mapbox_access_token,
        base_url=config.styles_base_url,
    )
