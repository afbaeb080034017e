"""Skip-accounting: un-count requests based on their outcome.

A request may report several completion signals for the same outcome (an
exception followed by a disconnect, for instance). ``SkipAccountant`` keeps a
per-request latch so at most one compensating decrement is issued, whichever
mode triggered it.
"""

from __future__ import annotations

import logging
from typing import Any

from rate_gate.core.logging import hash_key
from rate_gate.limiter.resolvers import maybe_await

logger = logging.getLogger(__name__)


class SkipAccountant:
    """Observe one request's outcome and decrement its key at most once.

    Attributes:
        decremented: Latch set once the compensating decrement was issued.
    """

    def __init__(
        self,
        store: Any,
        key: str,
        *,
        skip_failed: bool,
        skip_successful: bool,
        failure_status_threshold: int = 400,
    ) -> None:
        self._store = store
        self._key = key
        self._skip_failed = skip_failed
        self._skip_successful = skip_successful
        self._failure_status_threshold = failure_status_threshold
        self.finished = False
        self.decremented = False

    async def on_finish(self, status_code: int) -> None:
        """The response was fully sent with ``status_code``."""

        self.finished = True
        failed = status_code >= self._failure_status_threshold
        if (failed and self._skip_failed) or (not failed and self._skip_successful):
            await self._decrement("failed" if failed else "successful")

    async def on_close(self) -> None:
        """The connection closed before the response finished."""

        if not self.finished and self._skip_failed:
            await self._decrement("closed")

    async def on_error(self) -> None:
        """The downstream application raised."""

        if self._skip_failed:
            await self._decrement("error")

    async def _decrement(self, reason: str) -> None:
        if self.decremented:
            return
        # Latch before awaiting so a concurrent signal cannot decrement twice
        self.decremented = True
        await maybe_await(self._store.decrement(self._key))
        logger.debug(
            "rate_limit.skip_decrement",
            extra={"key_hash": hash_key(self._key), "reason": reason},
        )
