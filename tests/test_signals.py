from __future__ import annotations

import pytest

from pynest._signals import SignalRegistry


def test_delivery_follows_registration_order() -> None:
    registry = SignalRegistry(("update",))
    seen: list[str] = []

    registry.subscribe("update", lambda value: seen.append(f"a:{value}"))
    registry.subscribe("update", lambda value: seen.append(f"b:{value}"))
    registry.emit("update", 1)

    assert seen == ["a:1", "b:1"]


def test_unsubscribe_stops_delivery() -> None:
    registry = SignalRegistry(("update",))
    seen: list[int] = []

    subscription = registry.subscribe("update", seen.append)
    assert registry.unsubscribe(subscription) is True
    assert registry.unsubscribe(subscription) is False

    registry.emit("update", 1)
    assert seen == []


def test_failing_listener_does_not_block_later_ones(caplog: pytest.LogCaptureFixture) -> None:
    registry = SignalRegistry(("update",))
    seen: list[int] = []

    def _boom(_value: int) -> None:
        raise RuntimeError("listener bug")

    registry.subscribe("update", _boom)
    registry.subscribe("update", seen.append)
    registry.emit("update", 7)

    assert seen == [7]
    assert "listener bug" in caplog.text


def test_unknown_signal_is_rejected() -> None:
    registry = SignalRegistry(("update",))

    with pytest.raises(ValueError):
        registry.subscribe("hydrated", print)
    with pytest.raises(ValueError):
        registry.emit("hydrated")


def test_listener_may_unsubscribe_itself_while_notified() -> None:
    registry = SignalRegistry(("update",))
    seen: list[str] = []
    handle = {}

    def _once(_value: int) -> None:
        seen.append("once")
        registry.unsubscribe(handle["sub"])

    handle["sub"] = registry.subscribe("update", _once)
    registry.subscribe("update", lambda _value: seen.append("always"))

    registry.emit("update", 1)
    registry.emit("update", 2)

    assert seen == ["once", "always", "always"]
    assert registry.listener_count("update") == 1
