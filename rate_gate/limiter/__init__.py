"""Request rate limiting: counting, decisions and the ASGI filter."""

from rate_gate.limiter.config import RateLimitConfig
from rate_gate.limiter.engine import Hit, RateLimiter
from rate_gate.limiter.evaluator import Verdict, evaluate
from rate_gate.limiter.middleware import RateLimitMiddleware

__all__ = ["Hit", "RateLimitConfig", "RateLimitMiddleware", "RateLimiter", "Verdict", "evaluate"]
