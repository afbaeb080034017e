"""Counter store adapters.

The limiter only talks to the ``AbstractCounterStore`` contract so the
in-memory store can be swapped for Redis or another shared backend without
touching the middleware.
"""

from rate_gate.adapters.store.base import AbstractCounterStore, IncrementResult
from rate_gate.adapters.store.in_memory import InMemoryCounterStore

__all__ = ["AbstractCounterStore", "IncrementResult", "InMemoryCounterStore"]
