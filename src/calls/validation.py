"""Allow/deny tables for TwiML attributes and outbound call options.

Scripts never set callback URLs themselves: the engine routes every webhook and
status callback back to the waiting script, so any attribute that would redirect
Twilio somewhere else is rejected up front.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from calls.errors import CallValidationError

# Found principally in <Gather>, <Dial> and <Dial>'s nouns.
FORBIDDEN_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "fallbackUrl",
        "fallbackMethod",
        "applicationSid",
        "action",
        "partialResultsCallback",
        "partialResultsCallbackMethod",
        "actionOnEmptyResult",
        "method",
        "recordingStatusCallback",
        "recordingStatusCallbackMethod",
        "referUrl",
        "referMethod",
        "statusCallback",
        "statusCallbackMethod",
        "eventCallbackUrl",
        "url",
        "amdStatusCallback",
        "amdStatusCallbackMethod",
    }
)

FORBIDDEN_CALL_OPTIONS: frozenset[str] = frozenset(
    {
        "accountSid",
        "method",
        "fallbackUrl",
        "fallbackMethod",
        "statusCallback",
        "statusCallbackMethod",
        "url",
        "twiml",
        "applicationSid",
        "action",
        "partialResultsCallback",
        "partialResultsCallbackMethod",
        "actionOnEmptyResult",
        "recordingStatusCallback",
        "recordingStatusCallbackMethod",
        "amdStatusCallback",
        "amdStatusCallbackMethod",
        "asyncAmdStatusCallback",
        "asyncAmdStatusCallbackMethod",
    }
)

DUPLICATED_CALL_OPTIONS: frozenset[str] = frozenset({"to", "from"})
REFER_OPTIONS: frozenset[str] = frozenset({"referUrl", "referMethod"})


def lower_camel(name: str) -> str:
    """Normalise ``status_callback``/``from_`` style keys to Twilio's camelCase."""

    name = name.rstrip("_")
    if "_" not in name:
        return name
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def snake_case(name: str) -> str:
    """Convert camelCase keys to the keyword arguments twilio-python expects."""

    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def validate_attributes(element: str, attributes: Mapping[str, Any]) -> None:
    for key in attributes:
        if lower_camel(key) in FORBIDDEN_ATTRIBUTES:
            raise CallValidationError(f"{key} attribute not allowed in <{element.title()}>")


def validate_call_options(
    options: Mapping[str, Any],
    *,
    url_for: Callable[..., str],
) -> dict[str, Any]:
    """Check outbound call options and return snake_case keyword arguments for the REST client.

    ``url_for`` builds the engine's callback URLs; it is only consulted when
    asynchronous answering machine detection is requested.
    """

    validated: dict[str, Any] = {}
    for key, value in options.items():
        name = lower_camel(key)
        if name in FORBIDDEN_CALL_OPTIONS:
            raise CallValidationError(f"{key} is not allowed in this context")
        if name in DUPLICATED_CALL_OPTIONS:
            raise CallValidationError(f"{key} in options duplicates the {name} parameter")
        if name in REFER_OPTIONS:
            raise CallValidationError("Refer is not currently supported")
        validated[snake_case(key)] = value

    for key, value in list(validated.items()):
        name = lower_camel(key)
        if name == "statusCallbackEvent":
            events = [value] if isinstance(value, str) else list(value)
            if "completed" not in events:
                events.append("completed")
            validated[key] = events
        elif name == "asyncAmd":
            if isinstance(value, bool):
                validated[key] = "true" if value else "false"
            if str(validated[key]).lower() == "true":
                validated["async_amd_status_callback"] = url_for("amd")
                validated["async_amd_status_callback_method"] = "POST"

    return validated
