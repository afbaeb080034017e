"""Counter store interfaces.

The limiter depends on this abstraction (not the concrete implementation) so
the storage backend can be swapped (e.g., Redis) with minimal changes.

Subclassing is optional: any object exposing callable ``increment`` and
``reset_key`` (plus ``decrement`` when skip-accounting is enabled) is accepted.
``reset_all`` is optional; stores without it cannot be cleared in one call.
Methods may be coroutines or plain functions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class IncrementResult:
    """Result of recording one hit.

    Attributes:
        count: Hits recorded for the key in the current window, this one included.
        reset_at: When the window this hit belongs to ends (UTC), or None if the
            store does not track it.
    """

    count: int
    reset_at: datetime | None


class AbstractCounterStore(ABC):
    """Interface for counter stores."""

    @abstractmethod
    async def increment(self, key: str) -> IncrementResult:
        """Atomically add one hit for ``key``.

        Creates the counter at 1 when absent, and restarts it at 1 in a new
        window when the previous window has elapsed.
        """
        raise NotImplementedError

    @abstractmethod
    async def decrement(self, key: str) -> None:
        """Atomically remove one hit for ``key``, floored at 0."""
        raise NotImplementedError

    @abstractmethod
    async def reset_key(self, key: str) -> None:
        """Clear the counter and window for ``key``."""
        raise NotImplementedError
