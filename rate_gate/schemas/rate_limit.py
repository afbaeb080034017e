"""Pydantic schemas for rate limit status and management responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from rate_gate.limiter.evaluator import Verdict


class RateLimitStatusResponse(BaseModel):
    """The caller's standing in its current window."""

    limit: int = Field(..., description="Requests allowed per window (0 means unlimited).")
    current: int = Field(..., description="Requests counted in this window, this one included.")
    remaining: int = Field(..., description="Requests left before blocking.")
    reset_at: datetime | None = Field(
        default=None,
        description="When the current window ends (UTC), if the store reports it.",
    )

    @classmethod
    def from_verdict(cls, verdict: Verdict) -> "RateLimitStatusResponse":
        return cls(
            limit=verdict.limit,
            current=verdict.current,
            remaining=verdict.remaining,
            reset_at=verdict.reset_at,
        )


class KeyResetResponse(BaseModel):
    """Confirmation of a manual counter reset."""

    key: str = Field(..., description="Key whose counter was cleared.")
    reset: bool = Field(True, description="Always true once the store acknowledged the reset.")
