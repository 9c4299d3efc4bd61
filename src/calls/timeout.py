"""Timers that can be awaited on their own or raced against a call event.

    await Timeout(2).wait()                       # sleep two seconds

    try:
        call = await Timeout(30, "No answer from AMD").apply(call.await_next_event())
    except CallTimeoutError as exc:
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from calls.errors import CallTimeoutError

T = TypeVar("T")


class Timeout:
    """A delay in seconds, optionally failing with ``reason`` when it expires."""

    def __init__(self, delay: float, reason: str | None = None) -> None:
        self.delay = delay
        self.reason = reason

    async def wait(self) -> None:
        await asyncio.sleep(self.delay)
        if self.reason is not None:
            raise CallTimeoutError(self.reason)

    async def apply(self, awaitable: Awaitable[T]) -> T | None:
        """Race ``awaitable`` against the timer.

        Futures such as call continuations are shielded, so one that loses the
        race is still pending afterwards and the call is left undisturbed.
        Coroutines are cancelled. Without a reason an expired timer yields ``None``.
        """

        if asyncio.isfuture(awaitable):
            awaitable = asyncio.shield(awaitable)
        try:
            return await asyncio.wait_for(awaitable, self.delay)
        except asyncio.TimeoutError:
            if self.reason is None:
                return None
            raise CallTimeoutError(self.reason) from None
