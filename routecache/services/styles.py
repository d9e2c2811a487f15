"""Map style cache and cache-first style fetcher."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from routecache.services.cache import TTLCache
from routecache.services.directions import ProviderUnavailable

logger = logging.getLogger(__name__)

STYLE_TTL = 30 * 60
_STYLE_SCHEME = "mapbox://styles/"


class MapStyleCache:
    """Fixed-TTL cache of map style documents keyed by style URL."""

    def __init__(self, maxsize: int = 50, ttl: float = STYLE_TTL):
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl, name="styles")

    def get(self, style_url: str) -> Any | None:
        style = self._cache.get(style_url)
        if style is not None:
            logger.debug("Map style cache hit: %s", style_url)
        return style

    def set(self, style_url: str, style: Any) -> None:
        self._cache.set(style_url, style)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        return self._cache.stats()

    @property
    def size(self) -> int:
        return self._cache.size

    @property
    def maxsize(self) -> int:
        return self._cache.maxsize


def style_path(style_url: str) -> str:
    """Return ``owner/style_id`` for ``mapbox://styles/owner/style_id`` or ``owner/style_id``."""
    path = style_url
    if path.startswith(_STYLE_SCHEME):
        path = path[len(_STYLE_SCHEME):]
    path = path.strip("/")
    if path.count("/") != 1 or not all(path.split("/")):
        raise ValueError(f"Invalid style identifier: {style_url!r}")
    return path


async def fetch_style(
    http_client: httpx.AsyncClient,
    cache: MapStyleCache,
    style_url: str,
    access_token: str,
    *,
    base_url: str = "https://api.mapbox.com/styles/v1",
) -> Any:
    """Return the style document for *style_url*, fetching it on a cache miss."""
    cached = cache.get(style_url)
    if cached is not None:
        return cached

    url = f"{base_url.rstrip('/')}/{style_path(style_url)}"
    try:
        resp = await http_client.get(url, params={"access_token": access_token})
    except httpx.HTTPError as exc:
        raise ProviderUnavailable(None, str(exc) or exc.__class__.__name__) from exc
    if not resp.is_success:
        logger.warning("Style provider returned %d for %s", resp.status_code, style_url)
        raise ProviderUnavailable(resp.status_code, resp.text)

    try:
        style = resp.json()
    except ValueError as exc:
        raise ProviderUnavailable(resp.status_code, "Invalid JSON in response") from exc
    cache.set(style_url, style)
    logger.info("Map style cached: %s", style_url)
    return style
