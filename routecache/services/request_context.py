"""Request correlation ID carried through a contextvar."""

from __future__ import annotations

import uuid
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_MAX_INCOMING_ID_LENGTH = 64


def generate_request_id() -> str:
    """Return a new 32-character hex request ID."""
    return uuid.uuid4().hex


def get_request_id() -> str:
    return request_id_var.get()


def accept_request_id(raw: str) -> str:
    """Return a client-supplied ID if it is safe to echo and log, else ``""``."""
    raw = raw.strip()
    if not raw or len(raw) > _MAX_INCOMING_ID_LENGTH or not raw.isprintable():
        return ""
    return raw
