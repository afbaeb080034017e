"""Key and limit resolution.

User callbacks (key function, limit resolver, skip predicate, notifier, block
handler) may return a plain value or an awaitable. ``maybe_await`` normalizes
both into a single coroutine so the engine awaits every one of them the same
way.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, TypeVar

from starlette.requests import Request

from rate_gate.core.errors import AppError, KeyResolutionError, ThresholdResolutionError

T = TypeVar("T")


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Return ``value`` itself, or its result when it is awaitable."""

    if inspect.isawaitable(value):
        return await value
    return value


def default_key_func(request: Request) -> str:
    """Identify the client by its network address."""

    return request.client.host if request.client else "unknown"


async def resolve_key(key_func: Callable[..., Any], request: Request) -> str:
    """Derive the limiter key for ``request``.

    Raises:
        KeyResolutionError: If the key function raises, or returns an empty
            or non-string key.
    """

    try:
        key = await maybe_await(key_func(request))
    except AppError:
        raise
    except Exception as exc:
        raise KeyResolutionError(
            code="key_resolution_failed",
            message="Could not derive the rate limit key for this request.",
            details={"context": {"error_type": type(exc).__name__}},
        ) from exc

    if not isinstance(key, str) or not key:
        raise KeyResolutionError(
            code="invalid_rate_limit_key",
            message="The key function must return a non-empty string.",
            details={"context": {"key_type": type(key).__name__}},
        )
    return key


async def resolve_limit(limit: int | Callable[..., Any], request: Request) -> int:
    """Resolve the limit for ``request``; None resolves to 0 (unlimited).

    Raises:
        ThresholdResolutionError: If the resolver raises or returns a value
            that is not a whole number.
    """

    try:
        value = await maybe_await(limit(request)) if callable(limit) else limit
    except AppError:
        raise
    except Exception as exc:
        raise ThresholdResolutionError(
            code="limit_resolution_failed",
            message="Could not resolve the rate limit for this request.",
            details={"context": {"error_type": type(exc).__name__}},
        ) from exc

    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ThresholdResolutionError(
            code="invalid_rate_limit",
            message="The limit resolver must return an integer.",
            details={"context": {"limit_type": type(value).__name__}},
        )
    return value
