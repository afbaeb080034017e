"""Tests for outcome-based un-counting."""

from unittest.mock import AsyncMock, Mock

import pytest

from rate_gate.limiter.skip import SkipAccountant


def _accountant(store, *, skip_failed: bool = False, skip_successful: bool = False) -> SkipAccountant:
    return SkipAccountant(
        store,
        "k",
        skip_failed=skip_failed,
        skip_successful=skip_successful,
    )


@pytest.mark.asyncio
async def test_failed_response_is_decremented() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_failed=True)

    await accountant.on_finish(503)

    store.decrement.assert_awaited_once_with("k")
    assert accountant.decremented is True


@pytest.mark.asyncio
async def test_successful_response_is_kept_when_skipping_failures() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_failed=True)

    await accountant.on_finish(200)
    await accountant.on_close()

    store.decrement.assert_not_awaited()


@pytest.mark.asyncio
async def test_error_then_close_decrements_once() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_failed=True)

    await accountant.on_error()
    await accountant.on_close()
    await accountant.on_error()

    store.decrement.assert_awaited_once_with("k")


@pytest.mark.asyncio
async def test_close_before_finish_counts_as_failure() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_failed=True)

    await accountant.on_close()

    store.decrement.assert_awaited_once_with("k")


@pytest.mark.asyncio
async def test_successful_response_is_decremented_when_skipping_successes() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_successful=True)

    await accountant.on_finish(204)

    store.decrement.assert_awaited_once_with("k")


@pytest.mark.asyncio
async def test_failure_is_kept_when_skipping_successes() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_successful=True)

    await accountant.on_finish(400)
    await accountant.on_error()

    store.decrement.assert_not_awaited()


@pytest.mark.asyncio
async def test_both_modes_share_one_latch() -> None:
    store = Mock(decrement=AsyncMock())
    accountant = _accountant(store, skip_failed=True, skip_successful=True)

    await accountant.on_finish(200)
    await accountant.on_error()
    await accountant.on_close()

    store.decrement.assert_awaited_once_with("k")


@pytest.mark.asyncio
async def test_sync_store_decrement_is_supported() -> None:
    store = Mock()
    accountant = _accountant(store, skip_failed=True)

    await accountant.on_finish(500)

    store.decrement.assert_called_once_with("k")
