from __future__ import annotations

import pytest

from calls.errors import MissingCallSidError, RoutingWarning
from calls.registry import CallRegistry
from calls.session import Call


def _call(engine, sid):
    return Call(engine, {"CallSid": sid}, source="inbound")


def test_register_and_lookup(engine):
    registry = CallRegistry()
    call = _call(engine, "CA1")
    registry.register(call)

    assert "CA1" in registry
    assert registry.lookup("CA1") is call
    assert registry.require("CA1") is call
    assert list(registry) == [call]
    assert len(registry) == 1


def test_register_without_sid_is_rejected(engine):
    with pytest.raises(ValueError):
        CallRegistry().register(_call(engine, None))


def test_require_missing_sid():
    with pytest.raises(MissingCallSidError) as excinfo:
        CallRegistry().require(None)
    assert excinfo.value.status_code == 400


def test_require_unknown_sid():
    with pytest.raises(RoutingWarning, match="Call CA404 not found in current calls") as excinfo:
        CallRegistry().require("CA404")
    assert excinfo.value.status_code == 204


def test_remove_is_idempotent(engine):
    registry = CallRegistry()
    call = _call(engine, "CA1")
    registry.register(call)

    assert registry.remove("CA1") is call
    assert registry.remove("CA1") is None
    assert registry.remove(None) is None
    assert registry.lookup("CA1") is None
