"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so one instance can be shared
  by several worker threads as well as by concurrent asyncio tasks.
- Each key has its own window, started by its first hit and lazily re-armed by
  the first hit after it expires. There is no background sweep.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from rate_gate.adapters.store.base import AbstractCounterStore, IncrementResult

logger = logging.getLogger(__name__)


@dataclass
class _CounterEntry:
    count: int
    reset_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping one fixed window per key in a dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker counts on its
        own.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_keys: int | None = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            window_seconds: Window length applied to every key.
            max_keys: Table size above which expired entries are evicted on the
                next increment (None disables eviction).
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If window_seconds or max_keys are invalid.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._window_seconds = window_seconds
        self._max_keys = max_keys
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _CounterEntry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCounterStore(window_seconds={self._window_seconds}, "
            f"max_keys={self._max_keys}, size={len(self._entries)})"
        )

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    async def increment(self, key: str) -> IncrementResult:
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry.reset_at:
                self._evict_expired_if_full_locked(now)
                entry = _CounterEntry(count=0, reset_at=now + self._window_seconds)
                self._entries[key] = entry

            entry.count += 1
            count = entry.count
            reset_at = entry.reset_at

        return IncrementResult(
            count=count,
            reset_at=datetime.fromtimestamp(reset_at, tz=timezone.utc),
        )

    async def decrement(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.count > 0:
                entry.count -= 1

    async def reset_key(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def reset_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, key: str) -> tuple[int, datetime] | None:
        """Read-only snapshot of a key's counter, or None when unknown/expired.

        Intended for diagnostics and tests; all mutation goes through the
        atomic operations above.
        """

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry.reset_at:
                return None
            return entry.count, datetime.fromtimestamp(entry.reset_at, tz=timezone.utc)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired_if_full_locked(self, now: float) -> None:
        if self._max_keys is None or len(self._entries) < self._max_keys:
            return

        expired = [k for k, entry in self._entries.items() if now >= entry.reset_at]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(
                "counter_store.evicted",
                extra={"evicted": len(expired), "size": len(self._entries)},
            )
