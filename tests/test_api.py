"""
Tests for the health and metrics API.
"""
from typing import Any, AsyncGenerator, Dict
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from billing_service.api.main import create_app
from billing_service.api.routes import get_health_check
from billing_service.config import Settings
from billing_service.monitoring.health import HealthCheck

HEALTHY: Dict[str, Any] = {
    "status": "healthy",
    "checks": {
        "database": {"status": "healthy", "service": "database"},
        "rabbitmq": {"status": "healthy", "service": "rabbitmq"},
    },
}


@pytest.fixture
def health_check() -> AsyncMock:
    mock_health = AsyncMock(spec=HealthCheck)
    mock_health.check_all.return_value = HEALTHY
    mock_health.liveness.return_value = {"status": "alive", "message": "Application is running"}
    return mock_health


@pytest.fixture
def app(test_settings: Settings, health_check: AsyncMock) -> FastAPI:
    application = create_app(test_settings, manage_database=False)
    application.dependency_overrides[get_health_check] = lambda: health_check
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Create test HTTP client."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Test suite for health probes."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_ok(self, client: httpx.AsyncClient) -> None:
        """Test healthy dependencies give 200."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_unhealthy(
        self, client: httpx.AsyncClient, health_check: AsyncMock
    ) -> None:
        """Test a failing dependency gives 503."""
        health_check.check_all.return_value = {
            "status": "unhealthy",
            "checks": {"rabbitmq": {"status": "unhealthy", "error": "refused"}},
        }

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["rabbitmq"]["status"] == "unhealthy"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_check_crash(
        self, client: httpx.AsyncClient, health_check: AsyncMock
    ) -> None:
        """Test an error inside the health check gives 503."""
        health_check.check_all.side_effect = RuntimeError("boom")

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_liveness(self, client: httpx.AsyncClient) -> None:
        """Test the liveness probe."""
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client: httpx.AsyncClient) -> None:
        """Test a caller-supplied request ID is kept."""
        response = await client.get("/health/live", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"


class TestServiceEndpoints:
    """Test suite for metrics and service info."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_metrics(self, client: httpx.AsyncClient) -> None:
        """Test Prometheus exposition."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "billing_payments_processed" in response.text
        assert "billing_gateway_requests" in response.text

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_root(self, client: httpx.AsyncClient, test_settings: Settings) -> None:
        """Test the service info endpoint."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == test_settings.app_name
        assert data["status"] == "operational"
        assert data["test_mode"] is True


class TestHealthCheck:
    """Test suite for HealthCheck."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_database_and_broker(
        self, test_settings: Settings, session_factory: Any
    ) -> None:
        """Test a reachable database and an unreachable broker."""
        health = HealthCheck(settings=test_settings, session_factory=session_factory)

        with patch(
            "billing_service.monitoring.health.aio_pika.connect",
            AsyncMock(side_effect=ConnectionError("connection refused")),
        ):
            result = await health.check_all()

        assert result["status"] == "unhealthy"
        assert result["checks"]["database"]["status"] == "healthy"
        assert result["checks"]["rabbitmq"]["status"] == "unhealthy"
        assert "connection refused" in result["checks"]["rabbitmq"]["error"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_all_healthy(self, test_settings: Settings, session_factory: Any) -> None:
        """Test every dependency reachable."""
        health = HealthCheck(settings=test_settings, session_factory=session_factory)
        connection = AsyncMock()

        with patch(
            "billing_service.monitoring.health.aio_pika.connect",
            AsyncMock(return_value=connection),
        ):
            result = await health.check_all()

        assert result["status"] == "healthy"
        connection.close.assert_awaited_once()
