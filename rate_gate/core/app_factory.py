"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers) so tests can
build isolated apps with their own limiter configuration.
"""

from __future__ import annotations

from fastapi import FastAPI

from rate_gate.api.routes import admin_router, health_router, rate_limit_router
from rate_gate.core.config import RateLimitSettings, settings
from rate_gate.core.exception_handlers import setup_exception_handlers
from rate_gate.core.logging import configure_logging
from rate_gate.core.middleware import request_id_middleware
from rate_gate.limiter.config import RateLimitConfig
from rate_gate.limiter.engine import RateLimiter
from rate_gate.limiter.middleware import RateLimitMiddleware


def create_app(
    config: RateLimitConfig | None = None,
    *,
    rate_limit_settings: RateLimitSettings | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Limiter configuration; built from settings when omitted.
        rate_limit_settings: Settings override (defaults to global settings).
        configure_logs: Whether to (re)configure the root logger.

    Returns:
        Configured app. When rate limiting is enabled the limiter is available
        as ``app.state.rate_limiter``.
    """
    rl_settings = rate_limit_settings or settings.rate_limit

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(settings.log)

    app = FastAPI(
        title="Rate Gate",
        description=(
            "Per-client request rate limiting for ASGI services. Every counted "
            "response carries X-RateLimit-* headers; requests over the limit "
            "receive 429 with Retry-After."
        ),
        version="0.1.0",
    )

    # Registered before the request-id middleware so it runs inside it
    if rl_settings.enabled or config is not None:
        limiter = RateLimiter(config or rl_settings.to_config())
        app.state.rate_limiter = limiter
        app.add_middleware(RateLimitMiddleware, limiter=limiter)

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(rate_limit_router, prefix="/v1")
    if rl_settings.admin_routes_enabled:
        app.include_router(admin_router)

    return app
