"""Event-stream chunk codec.

A chunk from the streaming endpoint is either a complete two-line event::

    event: put
    data: {"path": "/", "data": {...}}

or a continuation fragment of a ``put`` body that was too large for one
network delivery. Continuations never carry the ``event:`` marker. The
helpers here are pure: they never touch transport state and report JSON
failures with ``False`` instead of raising.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from pynest._constants import DATA_PREFIX, EVENT_MARKER
from pynest.exceptions import NestMalformedEventError

NotParsed = Literal[False]


@dataclass(frozen=True, slots=True)
class EventBody:
    """The ``data:`` field of an event, raw and decoded.

    ``parsed`` is ``False`` when ``raw`` is not valid JSON, which for a
    ``put`` event means it is the first fragment of a chunked series.
    """

    raw: str
    parsed: Any | NotParsed

    @property
    def complete(self) -> bool:
        return self.parsed is not False


def parse_json(text: str) -> Any | NotParsed:
    """Decode *text*, returning ``False`` if it is not (yet) valid JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return False


def split_lines(raw: str) -> list[str]:
    return raw.split("\n")


def looks_like_new_event(raw: str) -> bool:
    """Whether *raw* opens a new event rather than continuing a chunked body."""
    return EVENT_MARKER in raw


def extract_event_type(lines: Sequence[str]) -> str:
    """Return the event type from the ``event: <type>`` header line."""
    if not lines:
        raise NestMalformedEventError("Event chunk is empty")
    header = lines[0]
    fields = header.split(":")
    if len(fields) < 2:
        raise NestMalformedEventError(f"Event header has no ':' separator: {header[:64]!r}", raw=header)
    event_type = fields[1].strip()
    if not event_type:
        raise NestMalformedEventError(f"Event header names no type: {header[:64]!r}", raw=header)
    return event_type


def extract_event_body(lines: Sequence[str]) -> EventBody:
    """Strip the ``data:`` prefix from the second line and try to decode it."""
    if len(lines) < 2:
        raise NestMalformedEventError("Event has no data line", raw="\n".join(lines))
    data_line = lines[1].lstrip()
    if not data_line.startswith(DATA_PREFIX):
        raise NestMalformedEventError(f"Event data line lacks {DATA_PREFIX!r}: {data_line[:64]!r}", raw=data_line)
    # Only leading blanks and a CR are trimmed: trailing spaces may belong to a
    # JSON string that continues in the next chunk.
    raw = data_line[len(DATA_PREFIX) :].lstrip().rstrip("\r")
    return EventBody(raw=raw, parsed=parse_json(raw))


def try_complete_chunk_buffer(buffer: Sequence[str]) -> Any | NotParsed:
    """Join buffered fragments in order and try one decode."""
    if not buffer:
        return False
    return parse_json("".join(buffer))
