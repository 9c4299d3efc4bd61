"""Call properties carried by REST responses, webhooks and status callbacks."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

CallStatus = Literal[
    "queued",
    "initiated",
    "ringing",
    "in-progress",
    "completed",
    "busy",
    "no-answer",
    "canceled",
    "failed",
]
EventSource = Literal["api", "webhook", "status", "dial", "inbound", "async-detection"]
Direction = Literal["inbound", "outbound-api", "outbound-dial"]

PROGRESS_STATUSES: frozenset[str] = frozenset({"queued", "initiated", "ringing", "in-progress"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "busy", "no-answer", "canceled", "failed"})
UNANSWERED_STATUSES: frozenset[str] = frozenset({"queued", "initiated", "ringing"})

# Provider field name -> Call attribute. REST resources use camelCase, webhooks use PascalCase.
PROPERTY_MAPPINGS: dict[str, str] = {
    "sid": "sid",
    "CallSid": "sid",
    "parentCallSid": "parent_call_sid",
    "ParentCallSid": "parent_call_sid",
    "to": "to",
    "To": "to",
    "from": "from_",
    "From": "from_",
    "callerName": "caller_name",
    "CallerName": "caller_name",
    "status": "status",
    "CallStatus": "status",
    "duration": "duration",
    "Duration": "duration",
    "CallDuration": "duration",
    "direction": "direction",
    "Direction": "direction",
    "forwardedFrom": "forwarded_from",
    "ForwardedFrom": "forwarded_from",
    "queueTime": "queue_time",
    "QueueTime": "queue_time",
    "StirStatus": "stir_status",
    "StirVerstat": "stir_verstat",
    "StirPassportToken": "stir_passport_token",
    "CallToken": "call_token",
    "SipResponseCode": "sip_response_code",
    "ErrorCode": "error_code",
    "ErrorMessage": "error_message",
    "Digits": "digits",
    "FinishedOnKey": "finished_on_key",
    "SpeechResult": "speech_result",
    "Confidence": "confidence",
    "answeredBy": "answered_by",
    "AnsweredBy": "answered_by",
    "MachineDetectionDuration": "machine_detection_duration",
    "DialCallStatus": "dial_call_status",
    "DialCallSid": "dial_call_sid",
    "DialCallDuration": "dial_call_duration",
}

PROPERTY_NAMES: tuple[str, ...] = tuple(dict.fromkeys(PROPERTY_MAPPINGS.values()))

GATHER_PROPERTIES: tuple[str, ...] = ("digits", "finished_on_key", "speech_result", "confidence")


def map_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Translate provider fields into Call attribute names, dropping anything unmapped."""

    return {PROPERTY_MAPPINGS[name]: value for name, value in fields.items() if name in PROPERTY_MAPPINGS}


@dataclass(frozen=True)
class ChildCall:
    """Snapshot of a dialed leg, taken from the <Dial> action callback."""

    sid: str | None = None
    parent_call_sid: str | None = None
    to: str | None = None
    from_: str | None = None
    caller_name: str | None = None
    status: str | None = None
    duration: str | None = None
    direction: str | None = None
    forwarded_from: str | None = None
    queue_time: str | None = None
    stir_status: str | None = None
    stir_verstat: str | None = None
    stir_passport_token: str | None = None
    call_token: str | None = None
    sip_response_code: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    digits: str | None = None
    finished_on_key: str | None = None
    speech_result: str | None = None
    confidence: str | None = None
    answered_by: str | None = None
    machine_detection_duration: str | None = None
    dial_call_status: str | None = None
    dial_call_sid: str | None = None
    dial_call_duration: str | None = None

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> ChildCall:
        return cls(**map_fields(fields))
