"""Pytest configuration for the test suite."""

import sys
import os

import pytest

# Add the src directory to the Python path so tests can import from it
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from mcp_fastapi.examples.calculator_server import CALCULATOR_API_TOKEN, create_integration  # noqa: E402


@pytest.fixture
def integration():
    """Calculator integration with the default transports."""
    return create_integration()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {CALCULATOR_API_TOKEN}"}


@pytest.fixture
def mcp_headers(auth_headers):
    """Headers a streamable HTTP client sends with every POST."""
    return {
        **auth_headers,
        "Accept": "application/json, text/event-stream",
        "Content-Type": "application/json",
    }
