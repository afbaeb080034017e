"""Limit decision.

``evaluate`` turns a store result and a resolved limit into a ``Verdict``.
It is a pure function: the clock is passed in and nothing is mutated.

A falsy limit (0) disables limiting for the request: the verdict is always
"allowed", ``remaining`` is 0 and neither the edge nor the over-limit branch
runs. Callers that want "block everything" must use a block-all skip or
handler instead of ``limit=0``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Verdict:
    """Rate limit decision attached to ``request.state.rate_limit``.

    Attributes:
        limit: Resolved limit for the request (0 means unlimited).
        current: Hits recorded for the key in this window, this request included.
        remaining: ``max(limit - current, 0)``.
        reset_at: End of the current window, when the store reports it.
        blocked: Whether the request is rejected.
        limit_reached: True only for the request that first crossed the limit
            in this window.
        retry_after_seconds: Whole seconds until the window ends (blocked only).
    """

    limit: int
    current: int
    remaining: int
    reset_at: datetime | None
    blocked: bool = False
    limit_reached: bool = False
    retry_after_seconds: int | None = None


def retry_after(reset_at: datetime | None, now: float, window_seconds: float) -> int:
    """Whole seconds a blocked client should wait, at least 1.

    Falls back to the full window length when the store does not report when
    the window ends.
    """

    if reset_at is None:
        return max(1, math.ceil(window_seconds))
    return max(1, math.ceil(reset_at.timestamp() - now))


def evaluate(
    current: int,
    limit: int,
    reset_at: datetime | None,
    *,
    now: float,
    window_seconds: float,
) -> Verdict:
    """Decide whether the ``current``-th hit of a window is allowed.

    Args:
        current: Post-increment count for the key.
        limit: Resolved limit; falsy disables limiting.
        reset_at: End of the window the hit belongs to.
        now: Current UNIX time in seconds.
        window_seconds: Window length, used when ``reset_at`` is unknown.

    Returns:
        Verdict for the request.
    """

    remaining = max(limit - current, 0)

    if not limit or current <= limit:
        return Verdict(limit=limit, current=current, remaining=remaining, reset_at=reset_at)

    return Verdict(
        limit=limit,
        current=current,
        remaining=remaining,
        reset_at=reset_at,
        blocked=True,
        limit_reached=current == limit + 1,
        retry_after_seconds=retry_after(reset_at, now, window_seconds),
    )
