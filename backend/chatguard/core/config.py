from functools import lru_cache
from typing import ClassVar

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatguard.core.constants import (
    RULE_CACHE_TTL_SECONDS,
    RULE_REFRESH_TIMEOUT_SECONDS,
    USER_STATUS_CACHE_TTL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Required secrets (validated at startup)
    REQUIRED_SECRETS: ClassVar[list[str]] = [
        "supabase_url",
        "supabase_service_role_key",
    ]

    # Environment (development, staging, production)
    environment: str = "development"

    # App
    app_name: str = "ChatGuard Moderation API"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    store_timeout_seconds: float = 5.0

    # Redis (status cache, Celery broker, rate limit storage)
    redis_url: str = "redis://localhost:6379"

    # Rule cache
    rule_cache_ttl_seconds: float = RULE_CACHE_TTL_SECONDS
    rule_refresh_timeout_seconds: float = RULE_REFRESH_TIMEOUT_SECONDS

    # User status cache (0 disables)
    user_status_cache_ttl_seconds: int = USER_STATUS_CACHE_TTL_SECONDS

    # Decision log delivery: Celery task when true, inline insert when false
    moderation_log_async: bool = True

    # Rate limiting
    rate_limit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @model_validator(mode="after")
    def validate_required_secrets(self) -> "Settings":
        """Validate that all required secrets are set (non-empty)."""
        missing = []
        for secret_name in self.REQUIRED_SECRETS:
            value = getattr(self, secret_name, "")
            if not value or not value.strip():
                missing.append(secret_name.upper())

        if missing:
            raise ValueError(
                f"Missing required secrets: {', '.join(missing)}. "
                "Set these environment variables before starting the application."
            )

        return self

    @model_validator(mode="after")
    def validate_timeouts(self) -> "Settings":
        """Reject non-positive cache and store timings."""
        for name in (
            "rule_cache_ttl_seconds",
            "rule_refresh_timeout_seconds",
            "store_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be greater than zero")
        if self.user_status_cache_ttl_seconds < 0:
            raise ValueError("USER_STATUS_CACHE_TTL_SECONDS cannot be negative")
        return self

    @model_validator(mode="after")
    def validate_cors_origins_in_production(self) -> "Settings":
        """Validate CORS origins are safe in production."""
        from urllib.parse import urlparse

        if self.environment != "production":
            return self

        unsafe_hostnames = {"localhost", "127.0.0.1", "0.0.0.0"}

        for origin in self.cors_origins:
            if origin == "*":
                raise ValueError(
                    "Wildcard (*) CORS origin is not allowed in production. "
                    "Specify exact origins instead."
                )

            try:
                hostname = urlparse(origin).hostname or ""
            except ValueError:
                hostname = origin

            if hostname in unsafe_hostnames:
                raise ValueError(
                    f"CORS origin '{origin}' uses hostname '{hostname}' which is not "
                    f"allowed in production. Use HTTPS production URLs instead."
                )

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
