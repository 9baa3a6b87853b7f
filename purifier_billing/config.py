"""
Application Configuration - Pydantic Settings for type-safe config.

All configuration is strongly typed and loaded from the environment.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = True

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Purifier Rental Billing API"
    api_version: str = "0.1.0"
    api_description: str = "Subscription, usage and service back-office for purifier rentals"

    # Static bearer tokens
    admin_api_token: str = ""  # Back-office staff and admin UI
    device_api_token: str = ""  # Field devices reporting usage

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "purifier-billing-api"

    # Listing defaults
    service_jobs_default_limit: int = 100
    uninstallations_default_limit: int = 100
    device_readings_default_limit: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start without a database or without its bearer tokens.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.admin_api_token:
            errors.append("ADMIN_API_TOKEN is required but empty or missing")
        if not self.device_api_token:
            errors.append("DEVICE_API_TOKEN is required but empty or missing")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
