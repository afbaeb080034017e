"""ASGI middleware applying a ``RateLimiter`` to every HTTP request.

This is a pure ASGI middleware rather than a ``BaseHTTPMiddleware`` so it can
see every completion signal of a request:

- ``http.response.body`` without ``more_body``: the response finished;
- ``http.disconnect`` received, or the app returning early: the connection
  closed before the response finished;
- an exception raised by the downstream app.

Those signals drive skip-accounting. Rate limit headers are appended to the
``http.response.start`` message, never replacing headers the app already set.

Errors from the limiter (key/limit resolution, store failures) are raised to
the host, which routes them to its error handlers. Blocked requests are not
errors: they receive the configured block handler's response.

Usage:
    app.add_middleware(RateLimitMiddleware, limiter=RateLimiter(limit=100))
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from rate_gate.core.logging import hash_key
from rate_gate.limiter.config import RateLimitConfig
from rate_gate.limiter.engine import RateLimiter
from rate_gate.limiter.evaluator import Verdict
from rate_gate.limiter.headers import build_rate_limit_headers, merge_headers
from rate_gate.limiter.resolvers import maybe_await

logger = logging.getLogger(__name__)


def default_block_response(config: RateLimitConfig) -> Response:
    """Response built from ``message`` and ``status_code``."""

    if isinstance(config.message, dict):
        return JSONResponse(config.message, status_code=config.status_code)
    return PlainTextResponse(config.message, status_code=config.status_code)


class RateLimitMiddleware:
    """Count, annotate and (when over the limit) reject HTTP requests.

    The verdict of every counted request is stored as
    ``request.state.rate_limit`` for route handlers to inspect.
    """

    def __init__(self, app: ASGIApp, limiter: RateLimiter | None = None, **options: Any) -> None:
        self.app = app
        self.limiter = limiter if limiter is not None else RateLimiter(**options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        if await self.limiter.should_skip(request):
            await self.app(scope, receive, send)
            return

        hit = await self.limiter.hit(request)
        verdict = hit.verdict
        request.state.rate_limit = verdict

        config = self.limiter.config
        extra_headers = build_rate_limit_headers(verdict, now=self.limiter.now()) if config.headers else []
        accountant = self.limiter.skip_accountant(hit.key)
        status_code = 500

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.disconnect" and accountant is not None:
                await accountant.on_close()
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                if extra_headers:
                    message = {
                        **message,
                        "headers": merge_headers(list(message.get("headers", [])), extra_headers),
                    }
            await send(message)
            if (
                accountant is not None
                and message["type"] == "http.response.body"
                and not message.get("more_body", False)
            ):
                await accountant.on_finish(status_code)

        try:
            if verdict.blocked:
                response = await self._block_response(request, verdict)
                await response(scope, receive_wrapper, send_wrapper)
            else:
                await self.app(scope, receive_wrapper, send_wrapper)
        except Exception:
            if accountant is not None:
                try:
                    await accountant.on_error()
                except Exception:
                    # The application's exception is the one to propagate
                    logger.exception(
                        "rate_limit.skip_decrement_failed",
                        extra={"key_hash": hash_key(hit.key)},
                    )
            raise

        if accountant is not None and not accountant.finished:
            await accountant.on_close()

    async def _block_response(self, request: Request, verdict: Verdict) -> Response:
        config = self.limiter.config
        if config.handler is None:
            return default_block_response(config)
        return await maybe_await(config.handler(request, verdict))
