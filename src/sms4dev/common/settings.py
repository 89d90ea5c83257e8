"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SMS4DEV_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Host for the mock SMS API server",
    )
    port: int = Field(
        default=5081,
        description="Port for the mock SMS API server",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structured logging",
    )
    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON lines",
    )

    # Credentials seeded at startup
    access_key_id: str = Field(
        default="SMS4DEV_KEY_EXAMPLE",
        description="Default access key id registered at startup",
    )
    access_key_secret: str = Field(
        default="SMS4DEV_SECRET_EXAMPLE",
        description="Secret for the default access key",
    )
    access_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Additional access keys as a JSON mapping of key id to secret",
    )
    dev_mode: bool = Field(
        default=True,
        description="Development mode: the default access key cannot be deleted",
    )

    # Auth
    timestamp_tolerance_seconds: int = Field(
        default=900,
        description="Max clock skew (seconds) accepted for HMAC-signed requests",
    )
    expose_calculated_signature: bool = Field(
        default=False,
        description="Echo the server-side signature on mismatch (debug only)",
    )
    allow_insecure_keys: bool = Field(
        default=False,
        description="Skip authentication entirely (never enable outside local testing)",
    )
    auth_exempt_routes: tuple[str, ...] = Field(
        default=("GET /health", "GET /metrics", "POST /api/keys/validate"),
        description='"METHOD /path" pairs exempt from authentication',
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
