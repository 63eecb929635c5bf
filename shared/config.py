"""
Shared configuration management for the Storefront backend.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/storefront")

    # Security
    jwt_secret: str = Field(default="dev-secret")
    admin_emails: List[str] = Field(default_factory=list)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Shiprocket
    shiprocket_api_base: str = Field(default="https://apiv2.shiprocket.in/v1/external")
    shiprocket_email: str = Field(default="")
    shiprocket_password: str = Field(default="")
    shiprocket_timeout_seconds: float = Field(default=15.0)
    shiprocket_pickup_location: str = Field(default="Primary")
    shiprocket_package_length: float = Field(default=10)
    shiprocket_package_breadth: float = Field(default=10)
    shiprocket_package_height: float = Field(default=10)
    shiprocket_package_weight: float = Field(default=0.5)

    # Shipment dispatch
    dispatch_max_attempts: int = Field(default=3)
    dispatch_base_delay: float = Field(default=2.0)
    dead_letter_capacity: int = Field(default=500)

    # Status reconciliation
    reconcile_interval_seconds: int = Field(default=3 * 60 * 60)
    reconcile_skip_terminal: bool = Field(default=False)
    reconcile_on_startup: bool = Field(default=False)
    reconcile_invalidate_cache: bool = Field(default=True)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
