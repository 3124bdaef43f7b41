"""
Health check endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint reports each dependency."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": True, "redis": True}}


@pytest.mark.asyncio
async def test_ready_check_redis_down(client: AsyncClient, fake_redis):
    fake_redis.ping.side_effect = RedisConnectionError("connection refused")
    response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json() == {
        "status": "unavailable",
        "checks": {"database": True, "redis": False},
    }


@pytest.mark.asyncio
async def test_ready_check_database_down(client: AsyncClient):
    with patch("app.main._database_ready", new=AsyncMock(return_value=False)):
        response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["database"] is False


@pytest.mark.asyncio
async def test_security_headers_on_app(client: AsyncClient):
    response = await client.get("/health")
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should return version and endpoint list."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "/brands/{brandId}/guidelines" in data["endpoints"]
