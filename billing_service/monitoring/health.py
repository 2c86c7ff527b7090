"""
Health checks for readiness/liveness probes.

Checks:
- Database connectivity
- RabbitMQ connectivity
"""
from typing import Any, Awaitable, Callable, Dict, Optional

import aio_pika
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_service.config import Settings, get_settings
from billing_service.database.connection import get_session_factory

logger = structlog.get_logger(__name__)


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """
    Health check service for monitoring system dependencies.

    Provides:
    - Database connectivity check
    - RabbitMQ connectivity check
    - Overall system health status
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        """Initialize health check service."""
        self.settings = settings or get_settings()
        self._session_factory = session_factory

    async def check_database(self) -> Dict[str, Any]:
        """
        Check database connectivity.

        Raises:
            HealthCheckError: If database check fails
        """
        try:
            session_factory = self._session_factory or get_session_factory()
            async with session_factory() as db:
                result = await db.execute(text("SELECT 1"))
                result.scalar()

            return {
                "status": "healthy",
                "service": "database",
                "message": "Database connection successful",
            }

        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            raise HealthCheckError(f"Database health check failed: {str(e)}")

    async def check_rabbitmq(self) -> Dict[str, Any]:
        """
        Check RabbitMQ connectivity.

        Raises:
            HealthCheckError: If the broker cannot be reached
        """
        try:
            connection = await aio_pika.connect(self.settings.rabbitmq_url, timeout=5)
            await connection.close()

            return {
                "status": "healthy",
                "service": "rabbitmq",
                "message": "RabbitMQ connection successful",
            }

        except Exception as e:
            logger.error("rabbitmq_health_check_failed", error=str(e))
            raise HealthCheckError(f"RabbitMQ health check failed: {str(e)}")

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        probes: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]] = {
            "database": self.check_database,
            "rabbitmq": self.check_rabbitmq,
        }
        checks = {}
        all_healthy = True

        for service, probe in probes.items():
            try:
                checks[service] = await probe()
            except HealthCheckError as e:
                checks[service] = {
                    "status": "unhealthy",
                    "service": service,
                    "error": str(e),
                }
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness probe.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }
