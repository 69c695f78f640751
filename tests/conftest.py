"""Shared test fixtures: API test client without Redis."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

import api.main
from api.main import app


@pytest.fixture
async def client(monkeypatch, tmp_path) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client. The lifespan is not run, so caching stays off."""
    monkeypatch.setattr(api.main, "redis_client", None)
    monkeypatch.setattr(api.main, "MINIFIER_CACHE_DIR", str(tmp_path / "minifier-cache"))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
