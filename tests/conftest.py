"""Pytest configuration and shared fixtures for all tests."""

from typing import Iterator

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from core.config.settings import Settings
from services.gateway.main import create_app
from services.gateway.routing import build_route_table
from tests.fixtures import ASSISTANT_URL, AUTH_URL, FORUM_URL, RAG_URL, FakeBackends


# Apply async mode for pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings pointing at the fake backends."""
    return Settings(
        environment="testing",
        debug=True,
        auth_service_url=AUTH_URL,
        forum_service_url=FORUM_URL,
        assistant_service_url=ASSISTANT_URL,
        rag_service_url=RAG_URL,
        verify_timeout=1.0,
        forward_timeout=5.0,
        assistant_forward_timeout=10.0,
        rag_forward_timeout=10.0,
    )


@pytest.fixture
def route_table(test_settings):
    """Fixture for the shipped route table."""
    return build_route_table(test_settings)


@pytest.fixture
def backends() -> FakeBackends:
    """Fixture for the fake backend services."""
    return FakeBackends()


@pytest.fixture
def client(test_settings, backends) -> Iterator[TestClient]:
    """Test client for a gateway wired to the fake backends."""
    app = create_app(test_settings, transport=backends.transport)
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def http_client(backends):
    """Plain async httpx client over the fake backends."""
    async with httpx.AsyncClient(transport=backends.transport) as client:
        yield client
