"""Domain-specific exceptions for call scripting.

These exceptions are safe to import from API layers without pulling in the engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from calls.session import Call


class CallScriptError(Exception):
    status_code: int = 500
    default_detail: str = "Call scripting error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class CallValidationError(CallScriptError, ValueError):
    """A script asked for an attribute, option or verb the engine reserves or does not support."""

    status_code = 400
    default_detail = "Option not allowed in this context."


class CallInvocationError(CallScriptError):
    """The provider rejected or failed a REST request."""

    status_code = 502
    default_detail = "Twilio request failed."


class CallEndedError(CallScriptError):
    """The far end hung up before the script reached a terminating action."""

    status_code = 410
    default_detail = "Call ended prematurely."

    def __init__(self, call: Call, detail: str | None = None) -> None:
        super().__init__(detail or f"Call {call.sid} ended prematurely.")
        self.call = call


class RoutingWarning(CallScriptError):
    """A callback could not be routed to a waiting session; acknowledged, never raised to scripts."""

    status_code = 204
    default_detail = "Callback does not match a current call."


class MissingCallSidError(RoutingWarning):
    status_code = 400
    default_detail = "Callback did not contain a CallSid."


class ContinuationError(CallScriptError, RuntimeError):
    """A continuation slot was misused, e.g. a response sent while no webhook is waiting."""

    default_detail = "Continuation is not available."


class CallTimeoutError(CallScriptError):
    status_code = 504
    default_detail = "Timed out."
