"""Immutable limiter configuration.

``RateLimitConfig`` is validated once, at construction, and frozen afterwards.
An unusable configuration (broken store, retired option, invalid values) fails
immediately with ``ConfigurationAppError`` instead of producing a limiter that
breaks on the first request.
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from rate_gate.adapters.store.in_memory import InMemoryCounterStore
from rate_gate.core.errors import ConfigurationAppError
from rate_gate.limiter.resolvers import default_key_func

DEFAULT_MESSAGE = "Too many requests, please try again later."

# Options removed from the limiter; setting any of them is a hard error
RETIRED_OPTIONS = ("global", "delay_ms", "delay_after")


class RateLimitConfig(BaseModel):
    """Options of one limiter instance.

    Attributes:
        window_seconds: Length of each key's counting window.
        limit: Requests allowed per window, or ``callable(request)`` returning
            it (plain value or awaitable). A falsy limit disables blocking.
        message: Body of the default block handler (str or JSON object).
        status_code: HTTP status of the default block handler.
        headers: Emit X-RateLimit-*, Date and Retry-After headers.
        skip_failed_requests: Un-count requests that fail (status >= threshold,
            client disconnect, downstream exception).
        skip_successful_requests: Un-count requests with status < threshold.
        failure_status_threshold: First status code counted as failed.
        key_func: ``callable(request)`` deriving the key (value or awaitable).
        skip: ``callable(request)`` returning True to bypass counting.
        handler: ``callable(request, verdict)`` returning the response sent to
            blocked requests. Defaults to ``message``/``status_code``.
        on_limit_reached: ``callable(request, verdict, config)`` fired once per
            key and window, on the first blocked request.
        store: Counter store; an in-memory store is created when omitted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    window_seconds: float = Field(60.0, gt=0)
    limit: int | Callable[..., Any] = 5
    message: str | dict[str, Any] = DEFAULT_MESSAGE
    status_code: int = Field(429, ge=100, le=599)
    headers: bool = True
    skip_failed_requests: bool = False
    skip_successful_requests: bool = False
    failure_status_threshold: int = Field(400, ge=100, le=600)
    key_func: Callable[..., Any] = default_key_func
    skip: Callable[..., Any] | None = None
    handler: Callable[..., Any] | None = None
    on_limit_reached: Callable[..., Any] | None = None
    store: Any = None

    @model_validator(mode="before")
    @classmethod
    def _reject_retired_options(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for option in RETIRED_OPTIONS:
            # A falsy value (0, False, None) is treated as "not set"
            if data.get(option):
                raise ConfigurationAppError(
                    code="retired_option",
                    message=f"The {option} option is no longer supported.",
                    details={"option": option},
                )
            data.pop(option, None)

        window_seconds = data.get("window_seconds", 60.0)
        # Invalid windows are left to field validation to report
        if data.get("store") is None and isinstance(window_seconds, (int, float)) and window_seconds > 0:
            data["store"] = InMemoryCounterStore(window_seconds=window_seconds)
        return data

    @field_validator("limit")
    @classmethod
    def _check_limit(cls, value: int | Callable[..., Any]) -> int | Callable[..., Any]:
        if not callable(value) and value < 0:
            raise ValueError("limit must be >= 0")
        return value

    @model_validator(mode="after")
    def _check_store(self) -> "RateLimitConfig":
        required = ["increment", "reset_key"]
        if self.skip_failed_requests or self.skip_successful_requests:
            required.append("decrement")

        missing = [name for name in required if not callable(getattr(self.store, name, None))]
        if missing:
            raise ConfigurationAppError(
                code="invalid_store",
                message="The store is not valid.",
                details={
                    "missing_methods": missing,
                    "hint": "Stores must implement increment and reset_key, plus decrement when skip options are on",
                },
            )
        return self

    @property
    def skip_accounting(self) -> bool:
        return self.skip_failed_requests or self.skip_successful_requests

    @classmethod
    def from_options(cls, **options: Any) -> "RateLimitConfig":
        """Validate options, reporting every failure as ``ConfigurationAppError``.

        Raises:
            ConfigurationAppError: On invalid values, an incomplete store or a
                retired option.
        """

        try:
            return cls(**options)
        except ValidationError as exc:
            raise ConfigurationAppError(
                code="invalid_config",
                message="Invalid rate limit configuration.",
                details={"context": {"errors": exc.errors(include_url=False, include_context=False, include_input=False)}},
            ) from exc
