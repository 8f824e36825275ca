"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


ValidationMode = Literal["strict", "store"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "task-manager"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # MongoDB
    mongodb_url: str = Field(default="mongodb://localhost:27017/task_manager")
    mongodb_database: str = "task_manager"
    mongodb_collection: str = "tasks"
    mongodb_server_selection_timeout_ms: int = 5000

    # "strict" rejects bad payloads with 400 before they reach the store,
    # "store" leaves schema enforcement to the storage gateway (500 on violation).
    validation_mode: ValidationMode = "strict"

    # OpenTelemetry / Base14 Scout
    otel_enabled: bool = True
    otel_service_name: str = "task-manager"
    otel_exporter_otlp_endpoint: str = "http://localhost:4318"
    scout_environment: str = "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
