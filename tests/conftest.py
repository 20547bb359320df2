from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from pynest._transport import StreamTransport
from pynest.config import NestConfig


@dataclass
class FakeResponse:
    """Just enough of ``aiohttp.ClientResponse`` for the transport."""

    status: int = 200
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    chunks: list[bytes | str] = field(default_factory=list)
    stream_error: Exception | None = None
    gate: asyncio.Event | None = None

    async def text(self) -> str:
        return self.body

    @property
    def content(self) -> _FakeContent:
        return _FakeContent(self)


class _FakeContent:
    def __init__(self, response: FakeResponse) -> None:
        self._response = response

    async def iter_any(self) -> AsyncIterator[bytes]:
        if self._response.gate is not None:
            await self._response.gate.wait()
        for chunk in self._response.chunks:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        if self._response.stream_error is not None:
            raise self._response.stream_error


class _FakeRequestContext:
    def __init__(self, outcome: FakeResponse | Exception) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *exc: Any) -> None:
        return None


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: dict[str, Any]

    @property
    def headers(self) -> dict[str, str]:
        return self.kwargs.get("headers") or {}

    @property
    def data(self) -> Any:
        return self.kwargs.get("data")


@dataclass
class FakeHttp:
    """Scripted stand-in for ``aiohttp.ClientSession``.

    Each request pops the next queued outcome: a :class:`FakeResponse`, or an
    exception raised when the request context is entered.
    """

    outcomes: list[FakeResponse | Exception] = field(default_factory=list)
    calls: list[RecordedCall] = field(default_factory=list)
    closed: bool = False

    def queue(self, *outcomes: FakeResponse | Exception) -> FakeHttp:
        self.outcomes.extend(outcomes)
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeRequestContext:
        self.calls.append(RecordedCall(method=method, url=url, kwargs=kwargs))
        if not self.outcomes:
            raise AssertionError(f"Unexpected request {method} {url}")
        return _FakeRequestContext(self.outcomes.pop(0))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def response_factory() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def config() -> NestConfig:
    return NestConfig(api_url="https://developer-api.nest.com")


@pytest.fixture
def transport(config: NestConfig, fake_http: FakeHttp) -> StreamTransport:
    return StreamTransport(config, fake_http).set_token("c.token-1")  # type: ignore[arg-type]
