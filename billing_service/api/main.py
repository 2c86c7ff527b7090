"""
Main FastAPI application.

Operational surface for the billing worker:
- Health probes
- Prometheus metrics
- Request ID tracking
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response

from billing_service import __version__
from billing_service.config import Settings, get_settings
from billing_service.database.connection import close_db, init_db
from billing_service.monitoring.logging import setup_logging

from .routes import monitoring_router
from .schemas import ServiceInfoResponse

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, manage_database: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to environment)
        manage_database: Initialize and dispose the engine in the lifespan
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        setup_logging(settings)
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            test_mode=settings.is_test_mode,
        )

        if manage_database:
            try:
                await init_db()
                logger.info("database_initialized")
            except Exception as e:
                logger.error("database_initialization_failed", error=str(e))
                raise

        yield

        logger.info("application_shutdown")
        if manage_database:
            try:
                await close_db()
                logger.info("database_connections_closed")
            except Exception as e:
                logger.error("database_shutdown_error", error=str(e))

    app = FastAPI(
        title="Billing Service",
        description="Payment request worker with MercadoPago integration.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Tag each request with an ID and log its duration."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()
        log = logger.bind(request_id=request_id, method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            log.error("request_failed", error=str(e), duration_seconds=time.time() - start_time)
            raise

        response.headers["X-Request-ID"] = request_id
        log.debug(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=time.time() - start_time,
        )
        return response

    app.include_router(monitoring_router)

    @app.get("/", tags=["root"], response_model=ServiceInfoResponse)
    async def root() -> dict[str, Any]:
        """Root endpoint with service information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "test_mode": settings.is_test_mode,
        }

    return app


def main() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "billing_service.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
