"""Rate limit response headers.

Merging only sees the headers the application set. Servers that add their
own ``date`` header after the app has answered (uvicorn does by default)
will then send two. Run such servers with the date header turned off
(``uvicorn --no-date-header``), or disable rate limit headers with
``headers=False``.
"""

from __future__ import annotations

import math
from email.utils import formatdate

from rate_gate.limiter.evaluator import Verdict


def build_rate_limit_headers(verdict: Verdict, *, now: float) -> list[tuple[str, str]]:
    """Headers describing ``verdict``.

    ``X-RateLimit-Reset`` is only sent when the window end is known, together
    with ``Date`` from the same clock so clients can correct for skew.
    ``Retry-After`` is only sent for blocked requests.
    """

    headers = [
        ("X-RateLimit-Limit", str(verdict.limit)),
        ("X-RateLimit-Remaining", str(verdict.remaining)),
    ]
    if verdict.reset_at is not None:
        headers.append(("Date", formatdate(now, usegmt=True)))
        headers.append(("X-RateLimit-Reset", str(math.ceil(verdict.reset_at.timestamp()))))
    if verdict.blocked and verdict.retry_after_seconds is not None:
        headers.append(("Retry-After", str(verdict.retry_after_seconds)))
    return headers


def merge_headers(
    raw_headers: list[tuple[bytes, bytes]],
    extra: list[tuple[str, str]],
) -> list[tuple[bytes, bytes]]:
    """Append ``extra`` to ASGI ``raw_headers`` without overwriting.

    Header names are compared case-insensitively; a header the application
    already set wins.
    """

    present = {name.lower() for name, _ in raw_headers}
    merged = list(raw_headers)
    for name, value in extra:
        encoded = name.lower().encode("latin-1")
        if encoded not in present:
            merged.append((encoded, value.encode("latin-1")))
    return merged
