"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from export_worker.constants import (
    DEAD_LETTER_KEY,
    DEQUEUE_TIMEOUT_SECONDS,
    ERROR_BACKOFF_SECONDS,
    HEARTBEAT_EVERY,
    MAX_RETRIES,
    QUEUE_KEY,
    STATUS_KEY_PREFIX,
    STATUS_TTL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Queue store
    redis_url: str = "redis://127.0.0.1:6379/0"
    queue_backend: Literal["redis", "memory"] = "redis"
    queue_key: str = QUEUE_KEY
    status_key_prefix: str = STATUS_KEY_PREFIX
    dead_letter_key: str = DEAD_LETTER_KEY
    status_ttl_seconds: int = STATUS_TTL_SECONDS
    dequeue_timeout_seconds: float = DEQUEUE_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES

    # Worker Configuration
    worker_id: str | None = None
    worker_concurrency: int = Field(default=4, ge=1)
    dispatcher_loops: int | None = Field(default=None, ge=1)  # defaults to worker_concurrency
    worker_error_backoff_seconds: float = ERROR_BACKOFF_SECONDS
    heartbeat_every: int = Field(default=HEARTBEAT_EVERY, ge=1)
    convert_timeout_seconds: float | None = Field(default=None, gt=0)

    # PDFs may only be written below this directory
    export_root: str = "/var/tmp/pdf-exports"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Observability
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "pdf-export-worker"
    tracing_enabled: bool = True
    metrics_enabled: bool = True
    metrics_port: int = 9090
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    @property
    def effective_dispatcher_loops(self) -> int:
        """Number of dequeue loops competing for the shared permit pool."""
        return self.dispatcher_loops or self.worker_concurrency


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
