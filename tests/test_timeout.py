from __future__ import annotations

import asyncio

import pytest

from calls.errors import CallTimeoutError
from calls.timeout import Timeout


def test_wait_without_reason_just_sleeps():
    assert asyncio.run(Timeout(0.01).wait()) is None


def test_wait_with_reason_raises():
    with pytest.raises(CallTimeoutError, match="gave up"):
        asyncio.run(Timeout(0.01, "gave up").wait())


def test_apply_returns_result_when_in_time():
    async def quick():
        return "done"

    assert asyncio.run(Timeout(1).apply(quick())) == "done"


def test_apply_expired_without_reason_returns_none():
    async def scenario():
        future = asyncio.get_running_loop().create_future()
        result = await Timeout(0.01).apply(future)
        return result, future

    result, future = asyncio.run(scenario())
    assert result is None
    # The continuation survives losing the race.
    assert not future.cancelled()


def test_apply_expired_with_reason_raises():
    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(CallTimeoutError, match="No answer") as excinfo:
        asyncio.run(Timeout(0.01, "No answer").apply(slow()))
    assert excinfo.value.status_code == 504
