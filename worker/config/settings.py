from typing import Literal

from fastapi import Depends
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Pipeline Worker", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=True, description="Debug mode")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=1, description="Number of workers")

    # Downstream service
    os_base_url: str = Field(
        default="http://localhost:8081",
        description="Base URL of the downstream enrichment/scoring service",
    )
    downstream_timeout_s: float = Field(
        default=30.0, gt=0, description="Timeout for downstream job calls in seconds"
    )
    health_timeout_s: float = Field(
        default=5.0, gt=0, description="Timeout for the downstream health probe"
    )

    # Jobs
    max_history: int = Field(
        default=100, ge=1, description="Maximum job records kept in memory"
    )
    batch_concurrency: int = Field(
        default=1, ge=1, description="Concurrent downstream calls per batch job"
    )
    pubsub_subscription: str = Field(
        default="pipeline-worker-sub", description="Pub/Sub push subscription name"
    )

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        # Require TLS for the downstream service in production
        if self.environment == "production" and not self.os_base_url.startswith(
            "https://"
        ):
            raise ValueError(
                f"OS_BASE_URL={self.os_base_url} is not allowed in production environment. "
                "Use an https:// URL for production deployments."
            )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection function for settings."""
    return settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
