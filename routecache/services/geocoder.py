from __future__ import annotations

import logging
import math

import httpx
from pydantic import BaseModel

from routecache.config import settings
from routecache.services.metrics import metrics

logger = logging.getLogger(__name__)


class ReverseGeocodedAddress(BaseModel):
    lat: float
    lng: float
    address: str
    fallback: bool = False


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def is_valid_coordinates(lat: float, lng: float) -> bool:
    return (
        math.isfinite(lat)
        and math.isfinite(lng)
        and -90 <= lat <= 90
        and -180 <= lng <= 180
    )


async def reverse_geocode(lat: float, lng: float) -> ReverseGeocodedAddress:
    """Resolve coordinates to a street address.

    Never raises for provider problems: a missing API key, a non-OK status
    or a failed request all degrade to the formatted coordinates.
    """
    if not settings.google_maps_api_key:
        logger.error("Reverse geocoding skipped: GOOGLE_MAPS_API_KEY is not configured")
        return _fallback(lat, lng)

    try:
        address = await _reverse_geocode_google(lat, lng)
    except Exception:
        logger.warning("Reverse geocoding failed for %.6f,%.6f", lat, lng, exc_info=True)
        return _fallback(lat, lng)
    if address is None:
        return _fallback(lat, lng)

    metrics.inc_geocoder(fallback=False)
    return ReverseGeocodedAddress(lat=lat, lng=lng, address=address)


def _fallback(lat: float, lng: float) -> ReverseGeocodedAddress:
    metrics.inc_geocoder(fallback=True)
    return ReverseGeocodedAddress(
        lat=lat, lng=lng, address=format_coordinates(lat, lng), fallback=True
    )


async def _reverse_geocode_google(lat: float, lng: float) -> str | None:
    params = {
        "latlng": f"{lat},{lng}",
        "key": settings.google_maps_api_key,
    }
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        resp = await client.get(settings.geocoder_url, params=params)
        resp.raise_for_status()

    data = resp.json()
    status = data.get("status")
    results = data.get("results") or []
    if status == "OK" and results:
        return results[0]["formatted_address"]
    if status == "ZERO_RESULTS":
        logger.warning("No address found for %.6f,%.6f", lat, lng)
    else:
        logger.error("Geocoding API error: %s %s", status, data.get("error_message", ""))
    return None
