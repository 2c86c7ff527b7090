"""
API routes for health probes and metrics.
"""
from functools import lru_cache
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from billing_service.monitoring.health import HealthCheck

from .schemas import HealthCheckResponse

logger = structlog.get_logger(__name__)

monitoring_router = APIRouter(tags=["monitoring"])


@lru_cache
def get_health_check() -> HealthCheck:
    """Shared health check service."""
    return HealthCheck()


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check database and broker connectivity",
    responses={503: {"model": HealthCheckResponse}},
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Any:
    """Health check endpoint for monitoring."""
    try:
        result = await health_check.check_all()
    except Exception as e:
        logger.error("health_check_error", error=str(e))
        result = {"status": "unhealthy", "checks": {"error": str(e)}}

    if result["status"] != "healthy":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=result)
    return result


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe endpoint",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
