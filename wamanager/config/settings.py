"""Application Settings - Environment-based configuration.

Uses Pydantic Settings for validation and type coercion.

Required variables fail startup if missing.
Conditional variables are required only when their parent feature is enabled.
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wamanager.config.constants import LIMITS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API bind host")
    api_port: int = Field(default=3000, ge=1, le=65535, description="API port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment name"
    )

    # Authentication
    api_key: str | None = Field(
        default=None,
        description="API key for authentication (required in production)",
    )
    auth_enabled: bool = Field(
        default=True,
        description="Enable API authentication (auto-disabled in development if no key)",
    )

    # Storage
    database_path: str = Field(
        default="./database/app.db", description="SQLite session store path"
    )
    sessions_path: str = Field(
        default="./sessions", description="Directory for provider auth state"
    )

    # Session Provider
    provider_engine: str = Field(
        default="mock", description="Registered session provider engine name"
    )
    browser_path: str = Field(
        default="/usr/bin/google-chrome-stable",
        description="Browser executable for automation-backed providers",
    )
    browser_headless: bool = Field(default=True, description="Run the browser headless")

    # Webhook
    webhook_user_agent: str = Field(
        default="WhatsApp-Manager/1.0", description="User-Agent sent with webhook calls"
    )
    webhook_timeout_s: float = Field(
        default=LIMITS.WEBHOOK_TIMEOUT_S,
        gt=0,
        le=60,
        description="Webhook request timeout in seconds",
    )

    # Startup
    initialize_on_startup: bool = Field(
        default=True, description="Start persisted devices when the app starts"
    )

    # Observability
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    def model_post_init(self, __context) -> None:
        """Validate conditional requirements after model creation."""
        if self.environment == "production" and self.auth_enabled and not self.api_key:
            raise ValueError(
                "api_key is required when auth_enabled=true in production environment"
            )

    def provider_options(self) -> dict[str, Any]:
        """Opaque options handed to each session provider."""
        return {
            "sessions_path": self.sessions_path,
            "browser_path": self.browser_path,
            "headless": self.browser_headless,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
