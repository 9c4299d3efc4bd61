"""Dispatch of Twilio callbacks to the live call they belong to."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from calls.engine import CallEngine
from calls.errors import MissingCallSidError

LOGGER = logging.getLogger(__name__)


class CallbackRouter:
    """Maps each callback class onto a Call operation.

    Methods return the TwiML to send back, or ``None`` for a plain
    acknowledgment. A callback that matches no live call raises
    ``RoutingWarning``, which the HTTP layer logs and acknowledges.
    """

    def __init__(self, engine: CallEngine) -> None:
        self._engine = engine

    async def webhook(self, fields: Mapping[str, Any]) -> str | None:
        LOGGER.debug("Webhook: %s", dict(fields))
        call = self._engine.registry.require(fields.get("CallSid"))
        twiml = call.on_webhook_event(fields)
        return await twiml if twiml is not None else None

    async def status(self, fields: Mapping[str, Any]) -> None:
        LOGGER.debug("Parent status: %s", dict(fields))
        call = self._engine.registry.require(fields.get("CallSid"))
        call.on_status_event(fields)
        if call.ended:
            self._engine.registry.remove(call.sid)

    async def dial(self, fields: Mapping[str, Any]) -> str | None:
        LOGGER.debug("Child status: %s", dict(fields))
        call = self._engine.registry.require(fields.get("CallSid"))
        twiml = call.on_child_status_event(fields)
        return await twiml if twiml is not None else None

    async def inbound(self, fields: Mapping[str, Any]) -> str:
        LOGGER.debug("Inbound call: %s", dict(fields))
        if not fields.get("CallSid"):
            raise MissingCallSidError("Inbound call webhook did not contain a CallSid")
        return await self._engine.accept_inbound(fields)

    async def async_detection(self, fields: Mapping[str, Any]) -> None:
        LOGGER.debug("Async AMD callback: %s", dict(fields))
        call = self._engine.registry.require(fields.get("CallSid"))
        call.on_async_detection_event(fields)
