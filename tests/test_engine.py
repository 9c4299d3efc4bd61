from __future__ import annotations

import asyncio

import pytest

from calls.engine import CallEngine
from calls.errors import CallInvocationError, CallValidationError
from config.settings import Settings


def test_url_for_builds_callback_urls(engine):
    assert engine.url_for("status") == "https://example.com/api/twilio/status"
    assert engine.url_for("webhook", source="makeCall") == "https://example.com/api/twilio/webhook?source=makeCall"


def test_server_url_trailing_slash_is_dropped(gateway):
    engine = CallEngine(gateway=gateway, server_url="https://abc.ngrok.io/")
    assert engine.url_for("dial") == "https://abc.ngrok.io/api/twilio/dial"


def test_unstarted_engine_has_no_gateway_or_url():
    engine = CallEngine()
    with pytest.raises(RuntimeError):
        engine.gateway
    with pytest.raises(RuntimeError):
        engine.url_for("status")


def test_from_settings_uses_public_url_and_phone_number(gateway):
    settings = Settings(public_base_url="https://calls.example.com", twilio_phone_number="+15550100")
    engine = CallEngine.from_settings(settings, gateway=gateway)
    assert engine.server_url == "https://calls.example.com"
    assert engine.phone_number == "+15550100"


def test_start_configures_inbound_number(gateway):
    engine = CallEngine(gateway=gateway, server_url="https://example.com", phone_number="+15550100")
    asyncio.run(engine.start())
    assert gateway.configured == [("+15550100", "https://example.com/api/twilio/inbound")]


def test_start_without_phone_number_skips_configuration(engine, gateway):
    asyncio.run(engine.start())
    assert gateway.configured == []


def test_make_call_passes_validated_options(engine, gateway):
    async def scenario():
        placing = asyncio.create_task(
            engine.make_call("+15550001", "+15550002", machine_detection="Enable", async_amd=True, timeout=20)
        )
        while "CA001" not in engine.registry:
            await asyncio.sleep(0)
        engine.registry.require("CA001").on_status_event({"CallSid": "CA001", "CallStatus": "ringing"})
        return await placing

    call = asyncio.run(scenario())
    assert call.sid == "CA001"
    assert call.status == "ringing"
    assert call.direction == "outbound-api"

    created = gateway.created[0]
    assert created["to"] == "+15550001"
    assert created["from_"] == "+15550002"
    assert created["options"] == {
        "machine_detection": "Enable",
        "async_amd": "true",
        "timeout": 20,
        "async_amd_status_callback": "https://example.com/api/twilio/amd",
        "async_amd_status_callback_method": "POST",
    }


def test_make_call_rejects_reserved_options_before_calling_twilio(engine, gateway):
    with pytest.raises(CallValidationError):
        asyncio.run(engine.make_call("+15550001", "+15550002", status_callback="https://elsewhere.example.com"))
    assert gateway.created == []


def test_make_call_failure_is_raised_to_script(engine, gateway):
    gateway.error = CallInvocationError("Call to +15550001 failed: invalid number")

    with pytest.raises(CallInvocationError, match="invalid number"):
        asyncio.run(engine.make_call("+15550001", "+15550002"))
    assert len(engine.registry) == 0


def test_stop_cancels_inbound_scripts_and_forgets_calls(engine):
    started = []

    async def waits_forever(call):
        started.append(call.sid)
        await asyncio.Event().wait()

    engine.inbound_script = waits_forever

    async def scenario():
        twiml = engine.accept_inbound({"CallSid": "CA900", "From": "+15551110000"})
        await asyncio.sleep(0)
        await engine.stop()
        return twiml

    twiml = asyncio.run(scenario())
    assert started == ["CA900"]
    assert twiml.result().endswith("<Response />")
    assert len(engine.registry) == 0


def test_stop_answers_webhooks_still_waiting_for_twiml(engine):
    async def scenario():
        placing = asyncio.create_task(engine.make_call("+15550001", "+15550002"))
        while "CA001" not in engine.registry:
            await asyncio.sleep(0)
        twiml = engine.registry.require("CA001").on_webhook_event({"CallSid": "CA001", "CallStatus": "in-progress"})
        call = await placing
        await engine.stop()
        return call, twiml

    call, twiml = asyncio.run(scenario())
    assert twiml.result().endswith("<Response />")
    assert call.script_continues is False
    assert len(engine.registry) == 0


def test_call_that_failed_on_creation_is_not_registered(engine, gateway):
    gateway.status = "failed"

    call = asyncio.run(engine.make_call("+15550001", "+15550002"))

    assert call.status == "failed"
    assert call.event_source == "api"
    assert "CA001" not in engine.registry
