"""Rate Gate: per-client request rate limiting for ASGI applications."""

from rate_gate.adapters.store import AbstractCounterStore, IncrementResult, InMemoryCounterStore
from rate_gate.limiter import RateLimitConfig, RateLimiter, RateLimitMiddleware, Verdict

__all__ = [
    "AbstractCounterStore",
    "IncrementResult",
    "InMemoryCounterStore",
    "RateLimitConfig",
    "RateLimitMiddleware",
    "RateLimiter",
    "Verdict",
]
