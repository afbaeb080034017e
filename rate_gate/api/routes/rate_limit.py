from __future__ import annotations

from fastapi import APIRouter, Request

from rate_gate.core.errors import AppError
from rate_gate.limiter.engine import RateLimiter
from rate_gate.schemas.rate_limit import KeyResetResponse, RateLimitStatusResponse

router = APIRouter(tags=["Rate limit"])
admin_router = APIRouter(tags=["Admin"])


def _get_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise AppError(
            code="rate_limiting_disabled",
            message="Rate limiting is not enabled on this server.",
        )
    return limiter


@router.get("/rate-limit", response_model=RateLimitStatusResponse)
def rate_limit_status(request: Request) -> RateLimitStatusResponse:
    """Report the caller's rate limit standing.

    The request itself is counted, so ``current`` includes it.
    """

    verdict = getattr(request.state, "rate_limit", None)
    if verdict is None:
        raise AppError(
            code="rate_limit_not_applied",
            message="This request was not evaluated by the rate limiter.",
        )
    return RateLimitStatusResponse.from_verdict(verdict)


@admin_router.delete("/admin/rate-limit/{key}", response_model=KeyResetResponse)
async def reset_rate_limit_key(key: str, request: Request) -> KeyResetResponse:
    """Clear the counter of ``key``, unblocking that client immediately."""

    await _get_limiter(request).reset_key(key)
    return KeyResetResponse(key=key)
