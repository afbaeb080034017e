"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports the settings module so
tests never depend on a developer's .env file.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_LIMIT", "5")
os.environ.setdefault("RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("RATE_LIMIT_ADMIN_ROUTES_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Callable
from unittest.mock import Mock

import pytest
from starlette.requests import Request


class FakeClock:
    """Deterministic clock shared by a store and a limiter."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build a bare Starlette request for a given client address and path."""

    def _make(host: str | None = "203.0.113.7", path: str = "/") -> Request:
        scope = {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": b"",
            "headers": [],
            "client": (host, 50000) if host else None,
            "server": ("testserver", 80),
            "scheme": "http",
        }
        return Request(scope)

    return _make


@pytest.fixture
def notifier() -> Mock:
    return Mock()
