"""
Unit tests for the bounded retry helper.

Run: pytest backend/tests/test_retry.py -v
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from shared.errors import NetworkError
from shared.utils.retry import retry_async


@pytest.mark.asyncio
async def test_succeeds_after_two_failures() -> None:
    func = AsyncMock(side_effect=[NetworkError("a"), NetworkError("b"), "ok"])
    result = await retry_async(func, attempts=3, delay_s=0.0)
    assert result == "ok"
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_raises_last_error_after_budget() -> None:
    errors = [NetworkError("first"), NetworkError("second"), NetworkError("third")]
    func = AsyncMock(side_effect=errors)
    with pytest.raises(NetworkError) as exc_info:
        await retry_async(func, attempts=3, delay_s=0.0)
    assert exc_info.value is errors[-1]
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_first_success_makes_one_call() -> None:
    func = AsyncMock(return_value=42)
    assert await retry_async(func, attempts=3, delay_s=0.0) == 42
    assert func.await_count == 1


@pytest.mark.asyncio
async def test_unlisted_errors_are_not_retried() -> None:
    func = AsyncMock(side_effect=KeyError("nope"))
    with pytest.raises(KeyError):
        await retry_async(func, attempts=3, delay_s=0.0, retry_on=(NetworkError,))
    assert func.await_count == 1


@pytest.mark.asyncio
async def test_sleeps_between_attempts_only(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep = AsyncMock()
    monkeypatch.setattr("shared.utils.retry.asyncio.sleep", sleep)
    func = AsyncMock(side_effect=NetworkError("down"))

    with pytest.raises(NetworkError):
        await retry_async(func, attempts=3, delay_s=2.0)

    assert sleep.await_count == 2
    sleep.assert_awaited_with(2.0)


@pytest.mark.asyncio
async def test_rejects_empty_budget() -> None:
    with pytest.raises(ValueError):
        await retry_async(AsyncMock(), attempts=0)
