"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

These settings only describe the deployment knobs. The limiter itself is
configured through the immutable ``RateLimitConfig`` model, which
``RateLimitSettings.to_config()`` builds from the values below.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from rate_gate.limiter.config import RateLimitConfig


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

ADMIN_PATH_PREFIX = "/admin/"

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment.

    Static type checkers treat BaseSettings fields as required constructor
    arguments, which is not how BaseSettings is intended to be used.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class RateLimitSettings(BaseSettings):
    """Deployment settings for the admission filter."""

    enabled: bool = Field(
        True,
        description="Install the rate limiting middleware",
    )
    limit: int = Field(
        60,
        description="Maximum number of requests allowed per window (per key); 0 disables limiting",
        ge=0,
    )
    window_seconds: float = Field(
        60.0,
        description="Window length in seconds; each key has its own window",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Emit X-RateLimit-*, Date and Retry-After headers",
    )
    status_code: int = Field(
        429,
        description="HTTP status used by the default block handler",
    )
    message: str = Field(
        "Too many requests, please try again later.",
        description="Body used by the default block handler",
    )
    skip_failed_requests: bool = Field(
        False,
        description="Un-count requests whose response status is >= 400 or that never finish",
    )
    skip_successful_requests: bool = Field(
        False,
        description="Un-count requests whose response status is < 400",
    )
    exempt_paths: str = Field(
        "/health",
        description="Comma-separated list of paths that bypass counting",
    )
    admin_routes_enabled: bool = Field(
        False,
        description="Expose DELETE /admin/rate-limit/{key} for manual unblocking",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def exempt_path_set(self) -> set[str]:
        """Parse the comma-separated exempt paths into a set."""

        return {path.strip() for path in self.exempt_paths.split(",") if path.strip()}

    def to_config(self, **overrides: Any) -> "RateLimitConfig":
        """Build the immutable limiter configuration from these settings.

        Args:
            **overrides: Extra ``RateLimitConfig`` options (key_func, store, ...)
                that cannot come from the environment.

        Returns:
            Validated ``RateLimitConfig``.
        """

        from rate_gate.limiter.config import RateLimitConfig

        options: dict[str, Any] = {
            "limit": self.limit,
            "window_seconds": self.window_seconds,
            "headers": self.include_headers,
            "status_code": self.status_code,
            "message": self.message,
            "skip_failed_requests": self.skip_failed_requests,
            "skip_successful_requests": self.skip_successful_requests,
        }
        exempt = self.exempt_path_set()
        # Admin routes are never counted
        admin_prefix = ADMIN_PATH_PREFIX if self.admin_routes_enabled else None
        if exempt or admin_prefix:
            options["skip"] = lambda request: request.url.path in exempt or bool(
                admin_prefix and request.url.path.startswith(admin_prefix)
            )
        options.update(overrides)
        return RateLimitConfig.from_options(**options)


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate the log file at this size (0 disables rotation)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
