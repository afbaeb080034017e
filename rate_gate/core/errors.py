"""Application-level exception types.

This module defines the errors raised by the rate limiter and its stores,
enabling consistent error handling, logging, and API responses.

Exceeding a limit is NOT an error: blocked requests go through the configured
block handler. Everything here is either a fatal configuration problem or an
infrastructure failure that must reach the host's error path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    option: str
    missing_methods: list[str]
    key_hash: str
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised at construction when the limiter configuration is unusable."""


class ResolutionAppError(AppError):
    """Raised when a per-request value (key or limit) cannot be resolved."""


class KeyResolutionError(ResolutionAppError):
    """Raised when the key function fails. No counting has happened yet."""


class ThresholdResolutionError(ResolutionAppError):
    """Raised when the limit resolver fails after the hit was counted."""


class StoreAppError(AppError):
    """Raised when the counter store fails to record a hit."""
