"""FastAPI dependencies resolving the services owned by the application."""

from __future__ import annotations

import httpx
from fastapi import Depends, Request

from routecache.config import Settings
from routecache.services.directions import DirectionsPool
from routecache.services.network_policy import DerivedPolicy, NetworkProfile, evaluate
from routecache.services.styles import MapStyleCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_style_cache(request: Request) -> MapStyleCache:
    return request.app.state.style_cache


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_directions(request: Request) -> DirectionsPool:
    return request.app.state.directions


def get_network_profile(request: Request) -> NetworkProfile | None:
    return NetworkProfile.from_headers(request.headers)


def get_network_policy(
    profile: NetworkProfile | None = Depends(get_network_profile),
    config: Settings = Depends(get_settings),
) -> DerivedPolicy:
    """Evaluate the policy from the caller's Client Hints on every request."""
    return evaluate(profile, base_ttl=config.route_cache_ttl)
