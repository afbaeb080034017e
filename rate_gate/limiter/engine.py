"""Rate limiting engine.

``RateLimiter`` runs the per-request pipeline that does not depend on the
transport:

    key resolution -> store increment -> limit resolution -> verdict

Each step may suspend. The increment always happens before the limit is
resolved, so the recorded count reflects this request whatever the resolver
does. Key resolution failures abort before anything is counted.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable

from starlette.requests import Request

from rate_gate.adapters.store.base import IncrementResult
from rate_gate.core.errors import AppError, ConfigurationAppError, StoreAppError
from rate_gate.core.logging import hash_key
from rate_gate.limiter.config import RateLimitConfig
from rate_gate.limiter.evaluator import Verdict, evaluate
from rate_gate.limiter.resolvers import maybe_await, resolve_key, resolve_limit
from rate_gate.limiter.skip import SkipAccountant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Hit:
    """Outcome of counting one request."""

    key: str
    verdict: Verdict


class RateLimiter:
    """Count requests per key and decide whether they are allowed.

    The store is captured once at construction; management operations
    (``reset_key``/``reset_all``) go through that same reference.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
        max_notified_keys: int = 10_000,
        **options: Any,
    ) -> None:
        """Build a limiter from a config or from keyword options.

        Args:
            config: Validated configuration; mutually exclusive with ``options``.
            clock: Time source function returning UNIX time in seconds.
            max_notified_keys: Size of the notified-window table above which
                entries for finished windows are evicted.
            **options: ``RateLimitConfig`` options.

        Raises:
            ConfigurationAppError: If the options are invalid, or both a config
                and options were given.
        """

        if config is not None and options:
            raise ConfigurationAppError(
                code="conflicting_config",
                message="Pass either a RateLimitConfig or keyword options, not both.",
                details={"context": {"options": sorted(options)}},
            )
        self.config = config if config is not None else RateLimitConfig.from_options(**options)
        self._store = self.config.store
        self._clock = clock
        self._max_notified_keys = max_notified_keys
        # key -> end of the window whose limit_reached notification already fired
        self._notified: dict[str, datetime] = {}
        self._notified_lock = threading.Lock()

    @property
    def store(self) -> Any:
        return self._store

    def now(self) -> float:
        return self._clock()

    async def should_skip(self, request: Request) -> bool:
        if self.config.skip is None:
            return False
        return bool(await maybe_await(self.config.skip(request)))

    async def hit(self, request: Request) -> Hit:
        """Count ``request`` and return its verdict.

        Fires ``on_limit_reached`` for the request that first crosses the
        limit in a window.

        Raises:
            KeyResolutionError: Key derivation failed; nothing was counted.
            StoreAppError: The store failed to record the hit.
            ThresholdResolutionError: The limit could not be resolved.
        """

        key = await resolve_key(self.config.key_func, request)
        result = await self._increment(key)
        limit = await resolve_limit(self.config.limit, request)

        now = self._clock()
        verdict = evaluate(
            result.count,
            limit,
            result.reset_at,
            now=now,
            window_seconds=self.config.window_seconds,
        )
        if verdict.limit_reached and not self._claim_notification(key, result.reset_at, now):
            # Skip-accounting can bring the count back to the edge within a window
            verdict = replace(verdict, limit_reached=False)

        key_hash = hash_key(key)
        if not verdict.blocked:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "key_hash": key_hash,
                    "limit": verdict.limit,
                    "current": verdict.current,
                    "remaining": verdict.remaining,
                },
            )
            return Hit(key=key, verdict=verdict)

        if verdict.limit_reached:
            logger.warning(
                "rate_limit.limit_reached",
                extra={"key_hash": key_hash, "limit": verdict.limit, "window_s": self.config.window_seconds},
            )
            if self.config.on_limit_reached is not None:
                await maybe_await(self.config.on_limit_reached(request, verdict, self.config))

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": key_hash,
                "limit": verdict.limit,
                "current": verdict.current,
                "retry_after_s": verdict.retry_after_seconds,
            },
        )
        return Hit(key=key, verdict=verdict)

    def skip_accountant(self, key: str) -> SkipAccountant | None:
        """Per-request outcome observer, or None when skip-accounting is off."""

        if not self.config.skip_accounting:
            return None
        return SkipAccountant(
            self._store,
            key,
            skip_failed=self.config.skip_failed_requests,
            skip_successful=self.config.skip_successful_requests,
            failure_status_threshold=self.config.failure_status_threshold,
        )

    async def reset_key(self, key: str) -> None:
        """Clear the counter for ``key`` (e.g., to unblock a client)."""

        await maybe_await(self._store.reset_key(key))
        with self._notified_lock:
            self._notified.pop(key, None)
        logger.info("rate_limit.key_reset", extra={"key_hash": hash_key(key)})

    async def reset_all(self) -> None:
        """Clear every counter.

        Raises:
            ConfigurationAppError: If the store does not implement ``reset_all``.
        """

        reset_all = getattr(self._store, "reset_all", None)
        if not callable(reset_all):
            raise ConfigurationAppError(
                code="store_reset_all_unsupported",
                message="The configured store cannot reset all keys.",
                details={"hint": "Implement reset_all on the store or reset keys one by one"},
            )
        await maybe_await(reset_all())
        with self._notified_lock:
            self._notified.clear()
        logger.info("rate_limit.store_reset")

    def _claim_notification(self, key: str, reset_at: datetime | None, now: float) -> bool:
        """Record that ``key`` crossed its limit in the window ending at ``reset_at``.

        Returns False when this window was already notified. Stores that do
        not report a window end cannot be latched; every edge is notified.
        """

        if reset_at is None:
            return True

        with self._notified_lock:
            if self._notified.get(key) == reset_at:
                return False
            if key not in self._notified and len(self._notified) >= self._max_notified_keys:
                self._evict_finished_windows_locked(now)
            self._notified[key] = reset_at
            return True

    def _evict_finished_windows_locked(self, now: float) -> None:
        finished = [k for k, reset_at in self._notified.items() if reset_at.timestamp() <= now]
        for key in finished:
            del self._notified[key]

    async def _increment(self, key: str) -> IncrementResult:
        try:
            result = await maybe_await(self._store.increment(key))
            if not isinstance(result, IncrementResult):
                # Stores may also return a plain (count, reset_at) pair
                count, reset_at = result
                result = IncrementResult(count=count, reset_at=reset_at)
        except AppError:
            raise
        except Exception as exc:
            logger.error(
                "rate_limit.store_error",
                extra={"key_hash": hash_key(key), "error_type": type(exc).__name__},
            )
            raise StoreAppError(
                code="rate_limit_store_unavailable",
                message="The rate limit store failed to record the request.",
                details={"key_hash": hash_key(key)},
            ) from exc

        return result
