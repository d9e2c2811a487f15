from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Response

from routecache.api.dependencies import get_network_policy, get_network_profile
from routecache.api.schemas import NetworkPolicyResponse
from routecache.services.network_policy import (
    CLIENT_HINT_HEADERS,
    DerivedPolicy,
    NetworkProfile,
)

router = APIRouter(prefix="/v1/network", tags=["network"])


@router.get(
    "/policy",
    summary="Network-adaptive client policy",
    description=(
        "Classify the caller's connection from the `ECT`, `Downlink`, `RTT` "
        "and `Save-Data` Client Hints and return the debounce interval, "
        "concurrency cap, cache TTL and rendering flags the client should "
        "use. Callers that send no hints get the fast-connection policy."
    ),
    response_model=NetworkPolicyResponse,
)
async def get_policy(
    response: Response,
    profile: NetworkProfile | None = Depends(get_network_profile),
    policy: DerivedPolicy = Depends(get_network_policy),
):
    response.headers["Accept-CH"] = ", ".join(CLIENT_HINT_HEADERS)
    return {
        "profile": asdict(profile) if profile is not None else None,
        "policy": asdict(policy),
    }
