"""Voice call scripting on top of Twilio webhooks.

A script places or accepts a call, adds TwiML verbs to it and awaits
``call.submit_response()``; the engine turns each Twilio webhook and status
callback into the next step of that script.
"""

from calls.engine import CallEngine
from calls.errors import (
    CallEndedError,
    CallInvocationError,
    CallScriptError,
    CallTimeoutError,
    CallValidationError,
    RoutingWarning,
)
from calls.session import Call
from calls.timeout import Timeout

__all__ = [
    "Call",
    "CallEndedError",
    "CallEngine",
    "CallInvocationError",
    "CallScriptError",
    "CallTimeoutError",
    "CallValidationError",
    "RoutingWarning",
    "Timeout",
]
