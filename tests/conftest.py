from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

SERVER_URL = "https://example.com"


class FakeGateway:
    """Stands in for TwilioCallGateway; records requests instead of calling Twilio."""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.ended: list[str] = []
        self.configured: list[tuple[str, str]] = []
        self.error: Exception | None = None
        self.status = "queued"

    async def create_call(self, *, to: str, from_: str, url: str, status_callback: str, **options: Any) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        sid = f"CA{len(self.created) + 1:03d}"
        self.created.append(
            {"to": to, "from_": from_, "url": url, "status_callback": status_callback, "options": options}
        )
        return {"sid": sid, "to": to, "from": from_, "status": self.status, "direction": "outbound-api"}

    async def end_call(self, sid: str) -> None:
        self.ended.append(sid)

    async def configure_inbound_number(self, phone_number: str, voice_url: str) -> str:
        self.configured.append((phone_number, voice_url))
        return phone_number


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def engine(gateway):
    from calls.engine import CallEngine

    return CallEngine(gateway=gateway, server_url=SERVER_URL)


@pytest.fixture()
def app(engine):
    from main import create_app

    return create_app(engine)
