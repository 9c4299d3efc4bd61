from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioRestException

from calls.errors import CallInvocationError
from config.settings import get_settings
from integrations.twilio_client import TwilioCallGateway, TwilioConfig, call_record, get_twilio_config


class FakeCalls:
    def __init__(self) -> None:
        self.created: list[dict] = []
        self.updated: list[tuple[str, dict]] = []
        self.error: Exception | None = None

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.created.append(kwargs)
        return SimpleNamespace(
            sid="CA123",
            parent_call_sid=None,
            to=kwargs["to"],
            from_=kwargs["from_"],
            caller_name=None,
            status="queued",
            direction="outbound-api",
            answered_by=None,
        )

    def __call__(self, sid: str):
        return SimpleNamespace(update=lambda **kwargs: self.updated.append((sid, kwargs)))


class FakeNumbers:
    def __init__(self, numbers: list) -> None:
        self.numbers = numbers
        self.updated: list[tuple[str, dict]] = []

    def list(self, phone_number: str):
        return [number for number in self.numbers if number.phone_number == phone_number]

    def __call__(self, sid: str):
        def update(**kwargs):
            self.updated.append((sid, kwargs))
            return SimpleNamespace(sid=sid, friendly_name="Front desk")

        return SimpleNamespace(update=update)


@pytest.fixture()
def client():
    number = SimpleNamespace(sid="PN1", phone_number="+15550100")
    return SimpleNamespace(calls=FakeCalls(), incoming_phone_numbers=FakeNumbers([number]))


@pytest.fixture()
def clean_settings(monkeypatch):
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_API_KEY", "TWILIO_API_SECRET"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


def test_create_call_uses_engine_callbacks(client):
    gateway = TwilioCallGateway(client)

    record = asyncio.run(
        gateway.create_call(
            to="+15550001",
            from_="+15550002",
            url="https://example.com/api/twilio/webhook?source=makeCall",
            status_callback="https://example.com/api/twilio/status",
            machine_detection="Enable",
        )
    )

    assert record == {
        "sid": "CA123",
        "to": "+15550001",
        "from": "+15550002",
        "status": "queued",
        "direction": "outbound-api",
    }
    created = client.calls.created[0]
    assert created["method"] == "POST"
    assert created["status_callback_method"] == "POST"
    assert created["machine_detection"] == "Enable"


def test_create_call_rest_error_becomes_invocation_error(client):
    client.calls.error = TwilioRestException(400, "/Calls", msg="The 'To' number is not a valid phone number.")
    gateway = TwilioCallGateway(client)

    with pytest.raises(CallInvocationError, match="not a valid phone number") as excinfo:
        asyncio.run(
            gateway.create_call(to="bogus", from_="+15550002", url="https://x", status_callback="https://y")
        )
    assert excinfo.value.status_code == 502
    assert "Call to bogus failed" in excinfo.value.detail


def test_end_call_cancels(client):
    asyncio.run(TwilioCallGateway(client).end_call("CA123"))
    assert client.calls.updated == [("CA123", {"status": "canceled"})]


def test_configure_inbound_number(client):
    name = asyncio.run(
        TwilioCallGateway(client).configure_inbound_number("+15550100", "https://example.com/api/twilio/inbound")
    )
    assert name == "Front desk"
    assert client.incoming_phone_numbers.updated == [
        ("PN1", {"voice_url": "https://example.com/api/twilio/inbound", "voice_method": "POST"})
    ]


def test_configure_unknown_number_fails(client):
    with pytest.raises(CallInvocationError, match="not found in this account"):
        asyncio.run(TwilioCallGateway(client).configure_inbound_number("+15559999", "https://x"))


def test_call_record_skips_missing_fields():
    call = SimpleNamespace(sid="CA1", to="+1", from_="+2", status="ringing", answered_by=None)
    assert call_record(call) == {"sid": "CA1", "to": "+1", "from": "+2", "status": "ringing"}


def test_get_twilio_config_with_auth_token(clean_settings):
    clean_settings.setenv("TWILIO_ACCOUNT_SID", "AC123")
    clean_settings.setenv("TWILIO_AUTH_TOKEN", "secret")

    assert get_twilio_config() == TwilioConfig(account_sid="AC123", auth_token="secret")


def test_get_twilio_config_with_api_key(clean_settings):
    clean_settings.setenv("TWILIO_ACCOUNT_SID", "AC123")
    clean_settings.setenv("TWILIO_API_KEY", "SK123")
    clean_settings.setenv("TWILIO_API_SECRET", "shh")

    cfg = get_twilio_config()
    assert cfg.api_key == "SK123"
    assert cfg.auth_token is None


def test_get_twilio_config_requires_credentials(clean_settings):
    clean_settings.setenv("TWILIO_ACCOUNT_SID", "AC123")
    with pytest.raises(ValueError, match="credentials are not configured"):
        get_twilio_config()
