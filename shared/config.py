"""
Shared configuration management for the Tattler restaurant directory.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TATTLER_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    api_version: str = Field(default="v1")

    # Response cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)

    # Request handling
    slow_request_ms: float = Field(default=100.0)
    allowed_origins: str = Field(default="*")
    default_page_size: int = Field(default=20, ge=1, le=100)

    # Document store
    seed_file: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)

    @property
    def origins(self) -> list:
        """Allowed CORS origins parsed from the comma separated setting."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
