from __future__ import annotations

from fastapi import APIRouter, Query

from routecache.api.schemas import ReverseGeocodeResponse
from routecache.services.geocoder import reverse_geocode

router = APIRouter(prefix="/v1/geocode", tags=["geocode"])


@router.get(
    "/reverse",
    summary="Reverse geocode a map pin",
    description=(
        "Resolve coordinates to a formatted street address. Provider "
        "failures are not errors: the response falls back to the "
        "coordinates formatted as 'lat, lng' with `fallback` set."
    ),
    response_model=ReverseGeocodeResponse,
)
async def get_reverse_geocode(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Longitude"),
):
    result = await reverse_geocode(lat, lng)
    return result.model_dump()
