"""Safe TwiML generation on top of twilio-python's VoiceResponse.

Every element a script adds is checked against an explicit allow-table before it
is created, and verbs that hand control back to Twilio (<Gather>, <Dial>) get the
engine's own action URL.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from twilio.twiml import TwiML
from twilio.twiml.voice_response import VoiceResponse

from calls.errors import CallValidationError
from calls.validation import validate_attributes

# Support for these verbs has not been added.
UNSUPPORTED_VERBS: frozenset[str] = frozenset(
    {"connect", "echo", "enqueue", "leave", "pay", "record", "redirect", "refer", "siprec", "sms", "stream"}
)


@dataclass(frozen=True)
class ElementRule:
    """Which children an element may have, and which engine endpoint it reports to."""

    name: str
    verbs: frozenset[str] = frozenset()
    action_endpoint: str | None = None
    action_query: tuple[tuple[str, str], ...] = ()
    trusted: bool = False


SCRIPT_RESPONSE = ElementRule(
    "response",
    frozenset({"say", "play", "pause", "gather", "dial", "hangup", "reject"}),
)
ENGINE_RESPONSE = ElementRule("response", frozenset({"redirect"}), trusted=True)

NESTED_RULES: dict[str, ElementRule] = {
    "gather": ElementRule(
        "gather",
        frozenset({"say", "play", "pause"}),
        action_endpoint="webhook",
        action_query=(("source", "gather"),),
    ),
    "dial": ElementRule(
        "dial",
        frozenset({"number", "client", "sip", "conference", "queue"}),
        action_endpoint="dial",
    ),
}

# Keyword twilio-python uses for an element body; it is not a routing attribute.
BODY_KEYWORDS: dict[str, str] = {"play": "url"}

UrlFor = Callable[..., str]


class TwimlElement:
    """Validating wrapper around a TwiML element that accepts nested verbs or nouns."""

    def __init__(self, element: TwiML, rule: ElementRule, url_for: UrlFor) -> None:
        self._element = element
        self._rule = rule
        self._url_for = url_for

    @property
    def element(self) -> TwiML:
        return self._element

    def _add(self, verb: str, *args: Any, **attributes: Any) -> Any:
        if verb not in self._rule.verbs:
            if verb in UNSUPPORTED_VERBS:
                raise CallValidationError(f"{verb} is not currently supported")
            raise CallValidationError(f"<{verb.title()}> is not allowed in <{self._rule.name.title()}>")
        body_keyword = BODY_KEYWORDS.get(verb)
        if body_keyword in attributes:
            args = (*args, attributes.pop(body_keyword))
        if len(args) > 1:
            raise CallValidationError(f"<{verb.title()}> accepts a single positional argument")
        if not self._rule.trusted:
            validate_attributes(verb, attributes)

        rule = NESTED_RULES.get(verb)
        if rule is not None and rule.action_endpoint:
            attributes["action"] = self._url_for(rule.action_endpoint, **dict(rule.action_query))

        child = getattr(self._element, verb)(*args, **attributes)
        if rule is None:
            return child
        return TwimlElement(child, rule, self._url_for)

    def say(self, *args: Any, **attributes: Any) -> Any:
        return self._add("say", *args, **attributes)

    def play(self, *args: Any, **attributes: Any) -> Any:
        return self._add("play", *args, **attributes)

    def pause(self, *args: Any, **attributes: Any) -> Any:
        return self._add("pause", *args, **attributes)

    def gather(self, *args: Any, **attributes: Any) -> TwimlElement:
        return self._add("gather", *args, **attributes)

    def dial(self, *args: Any, **attributes: Any) -> TwimlElement:
        return self._add("dial", *args, **attributes)

    def hangup(self, **attributes: Any) -> Any:
        return self._add("hangup", **attributes)

    def reject(self, *args: Any, **attributes: Any) -> Any:
        return self._add("reject", *args, **attributes)

    def number(self, *args: Any, **attributes: Any) -> Any:
        return self._add("number", *args, **attributes)

    def client(self, *args: Any, **attributes: Any) -> Any:
        return self._add("client", *args, **attributes)

    def sip(self, *args: Any, **attributes: Any) -> Any:
        return self._add("sip", *args, **attributes)

    def conference(self, *args: Any, **attributes: Any) -> Any:
        return self._add("conference", *args, **attributes)

    def queue(self, *args: Any, **attributes: Any) -> Any:
        return self._add("queue", *args, **attributes)

    def __getattr__(self, name: str) -> Any:
        if name in UNSUPPORTED_VERBS:
            raise CallValidationError(f"{name} is not currently supported")
        raise AttributeError(name)

    def __str__(self) -> str:
        return str(self._element)


class TwimlResponse(TwimlElement):
    """The <Response> document a script builds between two webhooks."""

    def __init__(self, url_for: UrlFor) -> None:
        super().__init__(VoiceResponse(), SCRIPT_RESPONSE, url_for)

    def redirect_to_engine(self) -> None:
        """Append the <Redirect> that brings Twilio back to the waiting script."""

        engine = TwimlElement(self._element, ENGINE_RESPONSE, self._url_for)
        engine._add("redirect", self._url_for("webhook", source="redirect"), method="POST")

    def to_xml(self) -> str:
        return str(self._element)


def empty_response() -> str:
    return str(VoiceResponse())
