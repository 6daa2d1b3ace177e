from __future__ import annotations

from datetime import datetime, timezone

from guildlog.connectivity import Connectivity
from guildlog.telemetry import TelemetryEvent, emit_event, register_listener


def test_listeners_receive_plain_payloads() -> None:
    received: list[TelemetryEvent] = []
    remove = register_listener(received.append)
    try:
        emit_event(
            "quest_completed",
            account_key="ash-ketchum",
            at=datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc),
            state=Connectivity.ONLINE,
            fields={"name", "difficulty"},
        )
    finally:
        remove()

    assert len(received) == 1
    event = received[0]
    assert event.name == "quest_completed"
    assert event.payload == {
        "account_key": "ash-ketchum",
        "at": "2026-10-19T09:30:00+00:00",
        "state": "online",
        "fields": ["difficulty", "name"],
    }


def test_failing_listener_does_not_block_others() -> None:
    received: list[str] = []

    def explode(event: TelemetryEvent) -> None:
        raise RuntimeError("sink down")

    remove_bad = register_listener(explode)
    remove_good = register_listener(lambda event: received.append(event.name))
    try:
        emit_event("hunter_login", account_key="misty")
    finally:
        remove_bad()
        remove_good()

    assert received == ["hunter_login"]


def test_removed_listener_stops_receiving() -> None:
    received: list[str] = []
    remove = register_listener(lambda event: received.append(event.name))
    remove()
    remove()
    emit_event("hunter_login", account_key="misty")
    assert received == []
