from __future__ import annotations

from rate_gate.api.routes.health import router as health_router
from rate_gate.api.routes.rate_limit import admin_router, router as rate_limit_router

__all__ = ["admin_router", "health_router", "rate_limit_router"]
