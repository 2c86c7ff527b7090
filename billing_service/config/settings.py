"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Mercado Pago Configuration
    mercadopago_access_token: str = Field(
        ..., description="Mercado Pago access token (TEST-... or APP_USR-...)"
    )
    mercadopago_public_key: str = Field(default="", description="Mercado Pago public key")
    mercadopago_api_url: str = Field(
        default="https://api.mercadopago.com", description="Mercado Pago API base URL"
    )
    gateway_timeout_seconds: float = Field(default=10.0, description="Gateway HTTP timeout")
    gateway_retry_max_attempts: int = Field(
        default=3, description="Max attempts for transient gateway errors"
    )
    gateway_retry_base_delay: float = Field(
        default=1.0, description="Base delay for retry backoff (seconds)"
    )
    default_payer_email: str = Field(
        default="test@testuser.com", description="Payer email used when none is supplied"
    )

    # Database Configuration
    database_url: str = Field(..., description="Database connection URL")
    database_pool_size: int = Field(default=10, description="Database connection pool size")
    database_max_overflow: int = Field(default=20, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # Message Queue Configuration
    rabbitmq_url: str = Field(..., description="RabbitMQ connection URL")
    payment_request_queue: str = Field(
        default="payment-request-queue", description="Inbound payment request queue"
    )
    payment_response_success_queue: str = Field(
        default="payment-response-success-queue",
        description="Queue for approved/processing payment outcomes",
    )
    payment_response_failure_queue: str = Field(
        default="payment-response-failure-queue",
        description="Queue for rejected/failed payment outcomes",
    )
    consumer_prefetch_count: int = Field(
        default=10, description="Messages processed concurrently by one consumer"
    )
    max_delivery_attempts: int = Field(
        default=5, description="Deliveries before a failing message is dead-lettered"
    )

    # Application Configuration
    app_name: str = Field(default="billing-service", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="API port")

    # Processing policy
    notify_on_failure: bool = Field(
        default=False,
        description="Publish FAILED payments to the failure queue before raising",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("mercadopago_access_token")
    @classmethod
    def validate_access_token(cls, v: str) -> str:
        """Validate Mercado Pago access token format."""
        if not v.startswith("TEST-") and not v.startswith("APP_USR-"):
            raise ValueError(
                "Invalid Mercado Pago access token format. Must start with 'TEST-' or 'APP_USR-'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_test_mode(self) -> bool:
        """Check if using Mercado Pago test credentials."""
        return self.mercadopago_access_token.startswith("TEST-")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
