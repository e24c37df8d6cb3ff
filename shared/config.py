"""
Shared configuration management for the sample API.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SAMPLE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache backend (snapshot cache + event feed share one Redis)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_timeout_seconds: float = Field(default=3.0)

    # Primary store; built from secrets when unset
    postgres_dsn: Optional[str] = Field(default=None)

    # Message bus
    kafka_bootstrap: str = Field(default="localhost:9092")
    kafka_topic: str = Field(default="sample.events.v1")
    kafka_group_id: str = Field(default="sample-events")
    bus_timeout_seconds: float = Field(default=5.0)
    bus_handler_timeout_seconds: float = Field(default=10.0)
    subscriber_poll_timeout_ms: int = Field(default=1000)
    subscriber_shutdown_grace_seconds: float = Field(default=5.0)

    # Blob store
    storage_bucket: str = Field(default="sample-uploads")
    storage_endpoint_url: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_public_base_url: str = Field(default="https://storage.googleapis.com")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # Cache layer / event feed
    latest_users_count: int = Field(default=3)
    latest_users_ttl_seconds: int = Field(default=60)
    event_feed_size: int = Field(default=10)

    # HTTP
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:4200",
            "http://localhost",
            "http://localhost:80",
        ]
    )

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: str = Field(default="http://localhost:4317")
    enable_console_tracing: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
