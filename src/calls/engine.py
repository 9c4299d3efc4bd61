"""Process-wide owner of live calls, the Twilio gateway and the inbound script."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from calls.errors import CallEndedError
from calls.registry import CallRegistry
from calls.session import Call
from calls.validation import validate_call_options

if TYPE_CHECKING:  # pragma: no cover
    from config.settings import Settings
    from integrations.twilio_client import TwilioCallGateway

LOGGER = logging.getLogger(__name__)

CALLBACK_PREFIX = "/api/twilio"

InboundScript = Callable[[Call], Awaitable[Any]]


async def default_inbound_script(call: Call) -> None:
    call.say("No inbound call handler has been registered. Goodbye.")
    call.hangup()
    await call.submit_response()


class CallEngine:
    """Creates calls, routes their callbacks and runs inbound scripts.

    One engine exists per server process. It is started and stopped with the
    web application, and every callback URL handed to Twilio points back at it.
    """

    def __init__(
        self,
        *,
        gateway: TwilioCallGateway | None = None,
        server_url: str | None = None,
        inbound_script: InboundScript | None = None,
        phone_number: str | None = None,
        registry: CallRegistry | None = None,
    ) -> None:
        self.registry = registry or CallRegistry()
        self._gateway = gateway
        self._server_url = server_url.rstrip("/") if server_url else None
        self.inbound_script: InboundScript = inbound_script or default_inbound_script
        self.phone_number = phone_number
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> CallEngine:
        kwargs.setdefault("server_url", settings.public_base_url)
        kwargs.setdefault("phone_number", settings.twilio_phone_number)
        return cls(**kwargs)

    @property
    def gateway(self) -> TwilioCallGateway:
        if self._gateway is None:
            raise RuntimeError("Twilio gateway is not configured; start the engine first")
        return self._gateway

    @property
    def server_url(self) -> str:
        if self._server_url is None:
            raise RuntimeError("Server URL is not known; start the engine first")
        return self._server_url

    def url_for(self, endpoint: str, **query: str) -> str:
        url = f"{self.server_url}{CALLBACK_PREFIX}/{endpoint}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    async def start(self) -> None:
        if self._server_url is None:
            from integrations.ngrok import get_tunnel_info

            info = await get_tunnel_info()
            self._server_url = info.public_url
        if self._gateway is None:
            from integrations.twilio_client import TwilioCallGateway

            self._gateway = TwilioCallGateway.from_settings()
        if self.phone_number:
            await self.gateway.configure_inbound_number(self.phone_number, self.url_for("inbound"))
        LOGGER.info("Call engine running with URL %s", self._server_url)

    async def stop(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for call in self.registry:
            call.abandon()
        self.registry.clear()

    async def make_call(self, to: str, from_: str, **options: Any) -> Call:
        """Place an outbound call and return it once Twilio reports its first event.

        Options are passed to Twilio's call-create API; callback URLs are owned by
        the engine and may not be supplied. A rejected request raises
        ``CallInvocationError``.
        """

        options = validate_call_options(options, url_for=self.url_for)
        record = await self.gateway.create_call(
            to=to,
            from_=from_,
            url=self.url_for("webhook", source="makeCall"),
            status_callback=self.url_for("status"),
            **options,
        )
        call = Call(self, record, source="api")
        first_event = call.await_next_event()
        if not call.ended:
            self.registry.register(call)
        return await first_event

    def accept_inbound(self, fields: Mapping[str, Any]) -> asyncio.Future[str]:
        """Register a new inbound call, start the inbound script and return its pending TwiML."""

        call = Call(self, fields, source="inbound")
        self.registry.register(call)
        twiml = call.on_inbound_event()
        task = asyncio.create_task(self._run_inbound_script(call), name=f"inbound-{call.sid}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return twiml

    async def _run_inbound_script(self, call: Call) -> None:
        try:
            await self.inbound_script(call)
        except CallEndedError:
            LOGGER.info("Caller hung up on inbound call %s", call.sid)
        except Exception:
            LOGGER.exception("Inbound script failed for call %s", call.sid)
            call.abandon()
