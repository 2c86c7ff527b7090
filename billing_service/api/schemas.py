"""
Pydantic schemas for API responses.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy/alive)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")


class ServiceInfoResponse(BaseModel):
    """Response schema for the root endpoint."""

    service: str
    version: str
    status: str
    environment: str
    test_mode: bool
    health: str = "/health"
    metrics: str = "/metrics"
