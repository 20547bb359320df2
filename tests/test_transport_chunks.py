from __future__ import annotations

import json

import pytest

from pynest._transport import StreamTransport
from pynest.models.event import StreamEvent, StreamEventType

_SNAPSHOT = {
    "path": "/",
    "data": {
        "devices": {
            "thermostats": {
                "peyiJNo0IldT2YlIVtYaGQ": {
                    "device_id": "peyiJNo0IldT2YlIVtYaGQ",
                    "name": "Hallway (Living Room)",
                    "target_temperature_f": 68,
                    "hvac_mode": "heat",
                }
            },
            "smoke_co_alarms": {
                "RTMTKxsQTCxzVcsySOHPxKoF4OyCifrs": {
                    "device_id": "RTMTKxsQTCxzVcsySOHPxKoF4OyCifrs",
                    "name": "Kitchen",
                    "co_alarm_state": "ok",
                }
            },
        },
        "structures": {"VqFabWH21nwVyd4RWgJgNb292wa7hG": {"name": "Home", "away": "home"}},
    },
}


def _collect(transport: StreamTransport) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    transport.add_put_listener(events.append)
    return events


def _fragments(body: str, parts: int) -> list[str]:
    """Split *body* into *parts* contiguous pieces of roughly equal size."""
    step = max(1, len(body) // parts)
    cuts = [i * step for i in range(parts)] + [len(body)]
    return [body[cuts[i] : cuts[i + 1]] for i in range(parts)]


def test_complete_put_is_emitted_immediately(transport: StreamTransport) -> None:
    events = _collect(transport)

    emitted = transport.handle_chunk(f"event: put\ndata: {json.dumps(_SNAPSHOT)}\n\n".encode())

    assert emitted is not None
    assert events == [emitted]
    assert events[0].event == StreamEventType.PUT
    assert events[0].body == _SNAPSHOT
    assert transport.pending_chunks == ()


@pytest.mark.parametrize("parts", [2, 3, 5, 17])
def test_chunked_put_is_reassembled_into_one_event(transport: StreamTransport, parts: int) -> None:
    events = _collect(transport)
    body = json.dumps(_SNAPSHOT)
    pieces = _fragments(body, parts)
    chunks = [f"event: put\ndata: {pieces[0]}"] + pieces[1:-1] + [pieces[-1] + "\n\n"]

    for chunk in chunks[:-1]:
        assert transport.handle_chunk(chunk.encode()) is None
        assert events == []

    assert transport.handle_chunk(chunks[-1].encode()) is not None
    assert len(events) == 1
    assert events[0].body == _SNAPSHOT
    assert transport.pending_chunks == ()


def test_string_split_across_chunks_keeps_its_spaces(transport: StreamTransport) -> None:
    events = _collect(transport)

    transport.handle_chunk('event: put\ndata: {"path": "/", "data": {"structures": {"s1": {"name": "My ')
    transport.handle_chunk(" ")
    transport.handle_chunk('Home"}}}}\n\n')

    assert events[0].body["data"]["structures"]["s1"]["name"] == "My  Home"


def test_new_chunked_series_replaces_incomplete_one(
    transport: StreamTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    events = _collect(transport)

    transport.handle_chunk('event: put\ndata: {"path": "/", "data": {"devices": {"therm')
    transport.handle_chunk('event: put\ndata: {"path": "/", "data": {"struct')

    assert "data loss" in caplog.text
    assert transport.pending_chunks == ('{"path": "/", "data": {"struct',)

    transport.handle_chunk('ures": {}}}\n\n')

    assert [e.body for e in events] == [{"path": "/", "data": {"structures": {}}}]


def test_lone_continuation_that_parses_is_emitted_as_put(transport: StreamTransport) -> None:
    events = _collect(transport)

    transport.handle_chunk('{"path": "/", "data": {}}')

    assert events[0].event == StreamEventType.PUT
    assert events[0].body == {"path": "/", "data": {}}


def test_auth_revoked_clears_token_and_redirect_before_listeners_run(transport: StreamTransport) -> None:
    transport._redirect_url = "https://firebase-apiserver03-tah01-iad01.dapi.production.nest.com:9553"  # noqa: SLF001
    seen: list[tuple[str | None, str | None]] = []
    transport.add_auth_revoked_listener(lambda _event: seen.append((transport.token, transport.redirect_url)))
    puts = _collect(transport)

    emitted = transport.handle_chunk(b'event: auth_revoked\ndata: "c.token-1"\n\n')

    assert emitted is not None
    assert emitted.event == StreamEventType.AUTH_REVOKED
    assert transport.token is None
    assert transport.redirect_url is None
    assert seen == [(None, None)]
    assert puts == []


def test_keep_alive_is_not_forwarded(transport: StreamTransport) -> None:
    events = _collect(transport)

    emitted = transport.handle_chunk(b"event: keep-alive\ndata: null\n\n")

    assert emitted is not None
    assert emitted.event == StreamEventType.KEEP_ALIVE
    assert events == []
    assert transport.token == "c.token-1"


def test_malformed_header_is_dropped(transport: StreamTransport, caplog: pytest.LogCaptureFixture) -> None:
    events = _collect(transport)

    assert transport.handle_chunk(b"event: \ndata: {}\n\n") is None
    assert events == []
    assert "malformed" in caplog.text


def test_undecodable_chunk_is_discarded(transport: StreamTransport, caplog: pytest.LogCaptureFixture) -> None:
    events = _collect(transport)

    assert transport.handle_chunk(b"\xff\xfe\xfd") is None
    assert events == []
    assert transport.pending_chunks == ()
    assert "not UTF-8" in caplog.text


def test_blank_chunk_outside_a_series_is_ignored(transport: StreamTransport) -> None:
    assert transport.handle_chunk(b"\n") is None
    assert transport.pending_chunks == ()


def test_character_split_between_chunks_is_decoded(
    transport: StreamTransport,
    caplog: pytest.LogCaptureFixture,
) -> None:
    events = _collect(transport)
    raw = 'event: put\ndata: {"path": "/", "data": {"structures": {"s1": {"name": "Küche"}}}}\n\n'.encode()
    cut = raw.index("ü".encode()) + 1

    assert transport.handle_chunk(raw[:cut]) is None
    assert transport.handle_chunk(raw[cut:]) is not None

    assert events[0].body["data"]["structures"]["s1"]["name"] == "Küche"
    assert "not UTF-8" not in caplog.text


def test_invalid_bytes_do_not_poison_later_chunks(transport: StreamTransport) -> None:
    events = _collect(transport)

    assert transport.handle_chunk(b"\xc3\x28") is None
    transport.handle_chunk('event: put\ndata: {"path": "/", "data": {"structures": {}}}\n\n'.encode())

    assert [e.body for e in events] == [{"path": "/", "data": {"structures": {}}}]
