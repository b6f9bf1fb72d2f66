"""Tests for the health check endpoint."""
from httpx import AsyncClient

from core.redis import RedisClient, set_redis_client


async def test_health_endpoint_returns_200(client: AsyncClient) -> None:
    """Test that the health endpoint returns 200 OK."""
    response = await client.get("/health")
    assert response.status_code == 200


async def test_health_endpoint_returns_healthy_status(client: AsyncClient) -> None:
    """Test that the health endpoint returns healthy status."""
    response = await client.get("/health")
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "healthy"


async def test_health_endpoint_response_structure(client: AsyncClient) -> None:
    """Test that the health endpoint returns the expected structure."""
    response = await client.get("/health")
    data = response.json()
    assert set(data) == {"status", "database", "redis"}


async def test_health_endpoint_redis_unavailable(client: AsyncClient) -> None:
    """Redis being down leaves the service healthy (keys fetched directly)."""
    disabled_client = RedisClient("redis://localhost:6379", enabled=False)
    await disabled_client.connect()
    set_redis_client(disabled_client)

    try:
        response = await client.get("/health")
        data = response.json()

        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["redis"] == "unavailable"
    finally:
        set_redis_client(None)
        await disabled_client.close()


async def test_health_endpoint_without_redis_client(client: AsyncClient) -> None:
    """No Redis client configured is reported as unavailable."""
    response = await client.get("/health")
    assert response.json()["redis"] == "unavailable"
