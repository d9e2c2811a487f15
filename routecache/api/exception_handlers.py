"""Global exception handlers for structured JSON error responses."""

from __future__ import annotations

import logging
import traceback

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routecache.services.directions import DirectionsError, NoRouteFound

logger = logging.getLogger("routecache.errors")


def _error(status_code: int, detail, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "status_code": status_code, "detail": detail},
        headers=headers,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Return structured JSON for all HTTP exceptions (4xx/5xx)."""
    return _error(exc.status_code, exc.detail, exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured JSON for request validation errors (422)."""
    return _error(422, jsonable_encoder(exc.errors()))


async def directions_exception_handler(
    request: Request, exc: DirectionsError
) -> JSONResponse:
    """Map provider failures to 404 (no route) or 502 (provider unavailable).

    The provider's own status code is reported in the detail; its response
    body is logged but not forwarded.
    """
    if isinstance(exc, NoRouteFound):
        return _error(404, exc.detail)

    logger.warning(
        "Upstream provider failure on %s %s: status=%s body=%.200s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.detail,
    )
    upstream = exc.status_code if exc.status_code is not None else "unreachable"
    return _error(502, f"Upstream provider unavailable ({upstream})")


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Logs the full traceback server-side but returns a generic 500 response
    with no internal details leaked.
    """
    logger.error(
        "Unhandled exception on %s %s:\n%s",
        request.method,
        request.url.path,
        traceback.format_exc(),
    )
    return _error(500, "Internal server error")
