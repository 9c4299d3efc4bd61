from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from calls.errors import MissingCallSidError, RoutingWarning

if TYPE_CHECKING:  # pragma: no cover
    from calls.session import Call

LOGGER = logging.getLogger(__name__)


class CallRegistry:
    """In-memory map of live calls, keyed by call SID.

    Note: This is a single-process store. All access happens on the event loop
    that serves the callbacks, so no locking is needed; it does not survive a
    restart and cannot be shared between workers.
    """

    def __init__(self) -> None:
        self._calls: dict[str, Call] = {}

    def register(self, call: Call) -> None:
        if not call.sid:
            raise ValueError("Cannot register a call without a SID")
        self._calls[call.sid] = call
        LOGGER.debug("Registered call %s (%d live)", call.sid, len(self._calls))

    def lookup(self, sid: str | None) -> Call | None:
        if not sid:
            return None
        return self._calls.get(sid)

    def require(self, sid: str | None) -> Call:
        """Return the live call for ``sid`` or raise a ``RoutingWarning``."""

        if not sid:
            raise MissingCallSidError()
        call = self._calls.get(sid)
        if call is None:
            raise RoutingWarning(f"Call {sid} not found in current calls")
        return call

    def remove(self, sid: str | None) -> Call | None:
        if not sid:
            return None
        return self._calls.pop(sid, None)

    def clear(self) -> None:
        self._calls.clear()

    def __contains__(self, sid: object) -> bool:
        return sid in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    def __iter__(self) -> Iterator[Call]:
        return iter(list(self._calls.values()))
