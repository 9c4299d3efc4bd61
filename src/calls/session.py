"""Call sessions: the state of one call leg plus the two continuations that drive it.

A script awaits the *script continuation* to learn about the next provider event.
A webhook handler awaits the *transport continuation* to learn which TwiML to send
back. Each slot holds at most one pending future; a slot is cleared before it is
settled and a new future may only be installed once the previous one is done.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from calls.errors import CallEndedError, CallValidationError, ContinuationError
from calls.properties import (
    GATHER_PROPERTIES,
    PROGRESS_STATUSES,
    PROPERTY_NAMES,
    TERMINAL_STATUSES,
    UNANSWERED_STATUSES,
    ChildCall,
    EventSource,
    map_fields,
)
from calls.twiml import TwimlElement, TwimlResponse, empty_response

if TYPE_CHECKING:  # pragma: no cover
    from calls.engine import CallEngine

LOGGER = logging.getLogger(__name__)


class Call:
    """A running call, as seen by a script.

    Properties (``sid``, ``to``, ``from_``, ``status``, ``digits``, ``answered_by``
    and the rest of ``calls.properties.PROPERTY_NAMES``) are refreshed from every
    webhook and status callback. ``event_source`` tells the script which kind of
    event updated them last, and ``child_calls`` lists the legs created by <Dial>.
    """

    sid: str | None
    to: str | None
    from_: str | None
    status: str | None
    direction: str | None
    digits: str | None
    speech_result: str | None
    answered_by: str | None
    sip_response_code: str | None

    def __init__(
        self,
        engine: CallEngine,
        properties: Mapping[str, Any],
        *,
        source: EventSource,
    ) -> None:
        for name in PROPERTY_NAMES:
            setattr(self, name, None)
        self._engine = engine
        self._script_future: asyncio.Future[Call] | None = None
        self._transport_future: asyncio.Future[str] | None = None
        self._response = TwimlResponse(engine.url_for)
        self._script_continues = True
        self.child_calls: list[ChildCall] = []
        self.event_source: EventSource = source
        self._update_properties(properties)

    def __repr__(self) -> str:
        return f"<Call sid={self.sid} status={self.status} source={self.event_source}>"

    @property
    def script_continues(self) -> bool:
        """False once the script has hung up, rejected, or sent its final response."""

        return self._script_continues

    @property
    def ended(self) -> bool:
        return self.status in TERMINAL_STATUSES

    # ------------------------------------------------------------------
    # TwiML verbs
    # ------------------------------------------------------------------

    def say(self, *args: Any, **attributes: Any) -> Any:
        return self._response.say(*args, **attributes)

    def play(self, *args: Any, **attributes: Any) -> Any:
        return self._response.play(*args, **attributes)

    def pause(self, *args: Any, **attributes: Any) -> Any:
        return self._response.pause(*args, **attributes)

    def gather(self, *args: Any, **attributes: Any) -> TwimlElement:
        """Add a <Gather>; input from a previous gather is cleared."""

        gather = self._response.gather(*args, **attributes)
        for name in GATHER_PROPERTIES:
            setattr(self, name, None)
        return gather

    def dial(self, *args: Any, **attributes: Any) -> TwimlElement:
        """Add a <Dial>. The end of the dialed leg is reported as a ``dial`` event."""

        return self._response.dial(*args, **attributes)

    def hangup(self) -> Any:
        hangup = self._response.hangup()
        self._finish_script()
        return hangup

    def reject(self, *args: Any, **attributes: Any) -> Any:
        reject = self._response.reject(*args, **attributes)
        self._finish_script()
        return reject

    # ------------------------------------------------------------------
    # Script-facing continuation
    # ------------------------------------------------------------------

    def submit_response(self, final: bool = False) -> asyncio.Future[Call]:
        """Send the TwiML built so far to the waiting webhook.

        Unless the script has finished, a <Redirect> back to the engine is appended
        so that Twilio asks for the next step. Returns a future that settles with
        this call on the next provider event, or fails with ``CallEndedError`` if
        the far end hangs up first.
        """

        transport = self._transport_future
        if transport is None or transport.done():
            raise ContinuationError(f"No webhook is waiting for a response on call {self.sid}")
        if self._script_pending():
            raise ContinuationError(f"Call {self.sid} already has a script waiting for the next event")
        if final:
            self._finish_script()
        if self._script_continues:
            self._response.redirect_to_engine()
        twiml = self._response.to_xml()

        script = self._install_script_future()
        self._transport_future = None
        LOGGER.debug("TwiML for %s: %s", self.sid, twiml)
        transport.set_result(twiml)
        if self._script_continues:
            self._response = TwimlResponse(self._engine.url_for)
        return script

    def await_next_event(self) -> asyncio.Future[Call]:
        """Wait for the next provider event without sending TwiML, e.g. after ``ringing``."""

        return self._install_script_future()

    async def cancel(self) -> None:
        """Ask Twilio to cancel a call that has not been answered yet.

        The outcome arrives later as an ordinary status callback.
        """

        if self.status not in UNANSWERED_STATUSES:
            raise CallValidationError(f"Call {self.sid} cannot be canceled once it is {self.status}")
        self._finish_script()
        await self._engine.gateway.end_call(self.sid)

    def abandon(self) -> None:
        """Answer a waiting webhook with an empty <Response/>, which ends the call."""

        self._finish_script()
        transport, self._transport_future = self._transport_future, None
        if transport is not None and not transport.done():
            transport.set_result(empty_response())

    # ------------------------------------------------------------------
    # Provider-facing events, driven by the callback router
    # ------------------------------------------------------------------

    def on_provider_event(self, fields: Mapping[str, Any], source: EventSource) -> None:
        self._update_properties(fields)
        self.event_source = source

    def on_webhook_event(self, fields: Mapping[str, Any]) -> asyncio.Future[str] | None:
        """Resume the script and return the future that will carry its TwiML.

        Returns ``None`` when nothing was waiting for this webhook.
        """

        self.on_provider_event(fields, "webhook")
        if not self._can_resume("webhook"):
            return None
        self._resume_script()
        return self._install_transport_future()

    def on_status_event(self, fields: Mapping[str, Any]) -> None:
        self.on_provider_event(fields, "status")
        if self.status in TERMINAL_STATUSES:
            LOGGER.info("Call %s ended with status %s", self.sid, self.status)
            self._settle_ended()
        elif self.status in PROGRESS_STATUSES:
            if self._script_pending():
                self._resume_script()
            else:
                LOGGER.warning("Status %s for call %s arrived with no script waiting", self.status, self.sid)
        else:
            LOGGER.warning("Unexpected status event %s for call %s", self.status, self.sid)

    def on_child_status_event(self, fields: Mapping[str, Any]) -> asyncio.Future[str] | None:
        """Record the dialed leg and resume the script.

        While the script continues, the returned future carries its next TwiML;
        otherwise it is already resolved with an empty response.
        """

        self.child_calls.append(ChildCall.from_fields(fields))
        self.event_source = "dial"
        if not self._can_resume("dial"):
            return None
        self._resume_script()
        if self._script_continues:
            return self._install_transport_future()

        done: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        done.set_result(empty_response())
        return done

    def on_inbound_event(self) -> asyncio.Future[str]:
        """Return the future carrying the inbound script's first TwiML."""

        return self._install_transport_future()

    def on_async_detection_event(self, fields: Mapping[str, Any]) -> None:
        # Scripts poll ``answered_by``; no continuation is involved.
        self.on_provider_event(fields, "async-detection")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_properties(self, fields: Mapping[str, Any]) -> None:
        for name, value in map_fields(fields).items():
            setattr(self, name, value)

    def _finish_script(self) -> None:
        self._script_continues = False

    def _script_pending(self) -> bool:
        return self._script_future is not None and not self._script_future.done()

    def _transport_pending(self) -> bool:
        return self._transport_future is not None and not self._transport_future.done()

    def _can_resume(self, kind: str) -> bool:
        if not self._script_pending():
            LOGGER.warning("Ignoring %s callback for call %s: no script is waiting", kind, self.sid)
            return False
        if self._transport_pending():
            LOGGER.warning("Ignoring %s callback for call %s: a response is already pending", kind, self.sid)
            return False
        return True

    def _install_script_future(self) -> asyncio.Future[Call]:
        if self._script_pending():
            raise ContinuationError(f"Call {self.sid} already has a script waiting for the next event")
        future: asyncio.Future[Call] = asyncio.get_running_loop().create_future()
        self._script_future = future
        if self.ended:
            # The call finished while the script was busy; settle straight away.
            self._settle_ended()
        return future

    def _install_transport_future(self) -> asyncio.Future[str]:
        if self._transport_pending():
            raise ContinuationError(f"Call {self.sid} already has a webhook waiting for TwiML")
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._transport_future = future
        return future

    def _take_script_future(self) -> asyncio.Future[Call] | None:
        future, self._script_future = self._script_future, None
        if future is None or future.done():
            return None
        return future

    def _resume_script(self) -> None:
        future = self._take_script_future()
        if future is not None:
            future.set_result(self)

    def _settle_ended(self) -> None:
        future = self._take_script_future()
        if future is None:
            return
        if self.status == "completed" and self._script_continues:
            future.set_exception(CallEndedError(self))
        else:
            future.set_result(self)
