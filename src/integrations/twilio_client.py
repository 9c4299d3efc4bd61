from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from twilio.base.exceptions import TwilioException, TwilioRestException

from calls.errors import CallInvocationError
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)

# CallInstance attribute -> REST field name understood by calls.properties.
CALL_RECORD_FIELDS: dict[str, str] = {
    "sid": "sid",
    "parent_call_sid": "parentCallSid",
    "to": "to",
    "from_": "from",
    "caller_name": "callerName",
    "status": "status",
    "duration": "duration",
    "direction": "direction",
    "forwarded_from": "forwardedFrom",
    "queue_time": "queueTime",
    "answered_by": "answeredBy",
}


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str | None = None
    api_key: str | None = None
    api_secret: str | None = None


def get_twilio_config() -> TwilioConfig:
    settings = get_settings()
    if not settings.twilio_account_sid:
        raise ValueError("Twilio account SID is not configured")
    has_api_key = bool(settings.twilio_api_key and settings.twilio_api_secret)
    if not has_api_key and not settings.twilio_auth_token:
        raise ValueError("Twilio credentials are not configured (API key and secret, or auth token)")

    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        api_key=settings.twilio_api_key,
        api_secret=settings.twilio_api_secret,
    )


def build_twilio_client(cfg: TwilioConfig | None = None):
    from twilio.rest import Client

    cfg = cfg or get_twilio_config()
    if cfg.api_key and cfg.api_secret:
        return Client(cfg.api_key, cfg.api_secret, cfg.account_sid)
    return Client(cfg.account_sid, cfg.auth_token)


def call_record(call: Any) -> dict[str, Any]:
    """Flatten a REST CallInstance into the field names used by webhooks' mapping table."""

    record = {}
    for attribute, field_name in CALL_RECORD_FIELDS.items():
        value = getattr(call, attribute, None)
        if value is not None:
            record[field_name] = value
    return record


class TwilioCallGateway:
    """Async facade over the synchronous twilio-python REST client.

    Requests run in a worker thread so the event loop keeps serving callbacks
    for other calls while Twilio answers.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_settings(cls) -> TwilioCallGateway:
        return cls(build_twilio_client())

    async def create_call(
        self,
        *,
        to: str,
        from_: str,
        url: str,
        status_callback: str,
        **options: Any,
    ) -> dict[str, Any]:
        try:
            call = await asyncio.to_thread(
                self._client.calls.create,
                to=to,
                from_=from_,
                url=url,
                method="POST",
                status_callback=status_callback,
                status_callback_method="POST",
                **options,
            )
        except TwilioRestException as exc:
            raise CallInvocationError(f"Call to {to} failed: {exc.msg}") from exc
        except TwilioException as exc:
            raise CallInvocationError(f"Call to {to} failed: {exc}") from exc

        LOGGER.info("Created call %s to %s", call.sid, to)
        return call_record(call)

    async def end_call(self, sid: str) -> None:
        try:
            await asyncio.to_thread(self._client.calls(sid).update, status="canceled")
        except TwilioException as exc:
            raise CallInvocationError(f"Unable to cancel call {sid}: {exc}") from exc

    async def configure_inbound_number(self, phone_number: str, voice_url: str) -> str:
        """Point ``phone_number``'s voice webhook at ``voice_url``; returns its friendly name."""

        try:
            numbers = await asyncio.to_thread(
                self._client.incoming_phone_numbers.list,
                phone_number=phone_number,
            )
            if len(numbers) != 1:
                raise CallInvocationError(f"Unable to configure {phone_number}: not found in this account")
            number = await asyncio.to_thread(
                self._client.incoming_phone_numbers(numbers[0].sid).update,
                voice_url=voice_url,
                voice_method="POST",
            )
        except TwilioException as exc:
            raise CallInvocationError(f"Unable to configure {phone_number}: {exc}") from exc

        LOGGER.info("Provisioned %s with voice URL %s", number.friendly_name, voice_url)
        return number.friendly_name
