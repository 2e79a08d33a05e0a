"""Tests for integration options."""

import pytest

from mcp_fastapi import McpOptions, TransportType
from mcp_fastapi.config import normalize_path


def test_normalize_path():
    assert normalize_path("sse") == "/sse"
    assert normalize_path("/api/v1/") == "/api/v1"
    assert normalize_path("") == ""
    assert normalize_path("/") == ""


def test_defaults():
    options = McpOptions(name="demo")

    assert options.transports == [TransportType.SSE, TransportType.STREAMABLE_HTTP]
    assert options.sse_endpoint == "/sse"
    assert options.messages_endpoint == "/messages"
    assert options.mcp_endpoint == "/mcp"
    assert options.stateless is False


def test_transport_names_are_converted():
    options = McpOptions(name="demo", transports=["stdio"])
    assert options.transports == [TransportType.STDIO]
    assert not options.enabled(TransportType.SSE)


@pytest.mark.parametrize("kwargs", [
    {"name": ""},
    {"transports": []},
    {"transports": ["websocket"]},
    {"sse_endpoint": "/"},
    {"sse_endpoint": "events", "messages_endpoint": "/events/"},
])
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        McpOptions(**{"name": "demo", **kwargs})
