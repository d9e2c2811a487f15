"""Tests for request ID generation, validation and contextvar propagation."""

from __future__ import annotations

import re

import pytest

from routecache.services.request_context import (
    accept_request_id,
    generate_request_id,
    get_request_id,
    request_id_var,
)


def test_generate_request_id_is_hex():
    rid = generate_request_id()
    assert re.fullmatch(r"[0-9a-f]{32}", rid), f"Not 32 hex chars: {rid}"


def test_generate_request_id_unique():
    ids = {generate_request_id() for _ in range(100)}
    assert len(ids) == 100


def test_set_and_get():
    token = request_id_var.set("abc123")
    try:
        assert get_request_id() == "abc123"
    finally:
        request_id_var.reset(token)


def test_accept_request_id_strips_whitespace():
    assert accept_request_id("  trace-42 ") == "trace-42"


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "x" * 65, "bad\nid", "tab\tid"],
)
def test_accept_request_id_rejects_unsafe_values(raw):
    assert accept_request_id(raw) == ""


def test_accept_request_id_allows_max_length():
    assert accept_request_id("a" * 64) == "a" * 64
