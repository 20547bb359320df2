"""Streaming HTTP transport for the Nest REST API.

The transport owns the access token, the single streaming connection, the
buffer of incomplete chunked ``put`` bodies and the cached redirect host.
Every request goes through one status dispatch table so the stream, device
mutations and one-shot reads share redirect and error semantics.
"""

from __future__ import annotations

import codecs
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, NoReturn, TypeVar
from urllib.parse import urlsplit

import aiohttp

from pynest._api._request import RequestSpec
from pynest._api.devices import build_update_request, device_path
from pynest._api.oauth import build_token_request, parse_token_response
from pynest._api.stream import build_stream_request, build_structures_request
from pynest._constants import REDIRECT_SCHEME
from pynest._protocol import (
    extract_event_body,
    extract_event_type,
    looks_like_new_event,
    split_lines,
    try_complete_chunk_buffer,
)
from pynest._redact import redact_for_log, redact_token
from pynest._signals import SignalRegistry, Subscription
from pynest.config import NestConfig
from pynest.exceptions import (
    NestAuthenticationError,
    NestForbiddenError,
    NestHttpError,
    NestInternalServerError,
    NestInvalidCredentialError,
    NestInvalidRequestError,
    NestMalformedEventError,
    NestNoTokenError,
    NestPathNotFoundError,
    NestRateLimitError,
    NestServiceUnavailableError,
    NestStreamActiveError,
    NestTransportError,
)
from pynest.models.event import StreamEvent, StreamEventType
from pynest.models.token import AccessToken

_logger = logging.getLogger(__name__)

T = TypeVar("T")

SIGNAL_PUT = "put"
SIGNAL_AUTH_REVOKED = "auth_revoked"
SIGNAL_STREAM_CLOSED = "stream_closed"

# The stream is open-ended; only the connect phase is bounded.
_STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=30)

RequestBuilder = Callable[[str, str], RequestSpec]
ResponseReader = Callable[[aiohttp.ClientResponse, RequestSpec], Awaitable[T]]
StatusHandler = Callable[[RequestSpec, aiohttp.ClientResponse], Awaitable[bool]]


@dataclass(slots=True)
class StreamConnection:
    """Bookkeeping for the one outstanding streaming request."""

    url: str | None = None
    opened_at: float = field(default_factory=time.monotonic)
    chunks_received: int = 0
    events_emitted: int = 0

    @property
    def age(self) -> float:
        return time.monotonic() - self.opened_at


class StreamTransport:
    """Token holder, streaming connection and request dispatcher.

    Usage::

        transport = StreamTransport(config, http_session)
        transport.set_token(token)
        transport.add_put_listener(on_put)
        await transport.stream()  # returns when the server ends the stream
    """

    def __init__(self, config: NestConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._token: str | None = None
        self._connection: StreamConnection | None = None
        self._redirect_url: str | None = None
        self._chunks: list[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._signals = SignalRegistry((SIGNAL_PUT, SIGNAL_AUTH_REVOKED, SIGNAL_STREAM_CLOSED))

        self._event_preprocessors: dict[str, Callable[[StreamEvent], None]] = {
            StreamEventType.AUTH_REVOKED: self._process_auth_revoked,
        }
        self._event_emitters: dict[str, Callable[[StreamEvent], None]] = {
            StreamEventType.PUT: self._emit_put,
            StreamEventType.AUTH_REVOKED: self._emit_auth_revoked,
        }
        self._status_handlers: dict[int, StatusHandler] = {
            307: self._handle_redirect,
            400: self._handle_invalid_request,
            401: self._handle_auth_error,
            403: self._handle_forbidden,
            404: self._handle_not_found,
            429: self._handle_rate_limited,
            500: self._handle_internal_error,
            503: self._handle_service_unavailable,
        }

    # ------------------------------------------------------------------
    # Token and redirect state
    # ------------------------------------------------------------------

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def redirect_url(self) -> str | None:
        return self._redirect_url

    @property
    def connection(self) -> StreamConnection | None:
        return self._connection

    @property
    def is_streaming(self) -> bool:
        return self._connection is not None

    @property
    def pending_chunks(self) -> tuple[str, ...]:
        """Fragments of a chunked ``put`` body that has not completed yet."""
        return tuple(self._chunks)

    @property
    def base_url(self) -> str:
        """Host every request targets: the cached redirect, else the API root."""
        return self._redirect_url if self._redirect_url is not None else self._config.api_url

    def set_token(self, token: str) -> StreamTransport:
        if not isinstance(token, str):
            raise NestInvalidCredentialError(f"Access token must be a string, got {type(token).__name__}")
        self._token = token
        return self

    def clear_token(self) -> StreamTransport:
        self._token = None
        self._redirect_url = None
        return self

    def reset_redirect(self) -> StreamTransport:
        self._redirect_url = None
        return self

    def _require_token(self) -> str:
        if self._token is None:
            raise NestNoTokenError("No access token set; call set_token() or exchange_pin() first")
        return self._token

    def _cache_redirect_url(self, location: str) -> None:
        host = urlsplit(location).netloc
        if not host:
            raise NestTransportError(f"Redirect location has no host: {location!r}", status_code=307)
        self._redirect_url = f"{REDIRECT_SCHEME}{host}"

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_put_listener(self, callback: Callable[[StreamEvent], Any]) -> Subscription:
        return self._signals.subscribe(SIGNAL_PUT, callback)

    def add_auth_revoked_listener(self, callback: Callable[[StreamEvent], Any]) -> Subscription:
        return self._signals.subscribe(SIGNAL_AUTH_REVOKED, callback)

    def add_stream_closed_listener(self, callback: Callable[[StreamTransport], Any]) -> Subscription:
        return self._signals.subscribe(SIGNAL_STREAM_CLOSED, callback)

    def remove_listener(self, subscription: Subscription) -> bool:
        return self._signals.unsubscribe(subscription)

    # ------------------------------------------------------------------
    # Inbound chunk handling
    # ------------------------------------------------------------------

    def handle_chunk(self, chunk: bytes | str) -> StreamEvent | None:
        """Process one chunk from the stream.

        Returns the event that was dispatched, or ``None`` when the chunk was
        buffered, dropped or did not complete an event. Byte chunks are
        decoded incrementally, so a multi-byte character split between two
        chunks is carried over to the next one.
        """
        if isinstance(chunk, bytes):
            try:
                text = self._decoder.decode(chunk)
            except UnicodeDecodeError:
                _logger.warning("Discarding stream chunk that is not UTF-8 (%d bytes)", len(chunk))
                self._decoder.reset()
                return None
        else:
            text = chunk

        if self._connection is not None:
            self._connection.chunks_received += 1

        try:
            event = self._parse_chunk(text)
        except NestMalformedEventError as exc:
            _logger.warning("Discarding malformed stream chunk: %s", exc)
            return None

        if event is None:
            return None

        self._dispatch(event)
        return event

    def _parse_chunk(self, text: str) -> StreamEvent | None:
        if not text.strip() and not self._chunks:
            return None
        if not looks_like_new_event(text):
            # Middle or end of a chunked put body.
            self._chunks.append(text)
            body = try_complete_chunk_buffer(self._chunks)
            if body is False:
                _logger.debug("Buffered continuation chunk (%d pending)", len(self._chunks))
                return None
            _logger.debug("Chunked put body completed from %d fragments", len(self._chunks))
            self._wipe_chunks()
            return StreamEvent(event=StreamEventType.PUT, body=body)

        lines = split_lines(text)
        event_type = extract_event_type(lines)
        if event_type != StreamEventType.PUT:
            return StreamEvent(event=event_type)

        body = extract_event_body(lines)
        if body.complete:
            return StreamEvent(event=StreamEventType.PUT, body=body.parsed)

        # First fragment of a new chunked series.
        if self._chunks:
            _logger.warning(
                "New chunked put started before the previous one completed; "
                "discarding %d buffered fragments (data loss)",
                len(self._chunks),
            )
        self._chunks = [body.raw]
        return None

    def _wipe_chunks(self) -> None:
        self._chunks = []

    def _reset_stream_buffers(self) -> None:
        self._wipe_chunks()
        self._decoder.reset()

    def _dispatch(self, event: StreamEvent) -> None:
        preprocess = self._event_preprocessors.get(event.event)
        if preprocess is not None:
            preprocess(event)

        emit = self._event_emitters.get(event.event)
        if emit is None:
            _logger.debug("Stream event %r not forwarded", event.event)
            return
        if self._connection is not None:
            self._connection.events_emitted += 1
        emit(event)

    def _process_auth_revoked(self, _event: StreamEvent) -> None:
        _logger.warning("Server revoked the access token; clearing token and redirect cache")
        self.clear_token()

    def _emit_put(self, event: StreamEvent) -> None:
        self._signals.emit(SIGNAL_PUT, event)

    def _emit_auth_revoked(self, event: StreamEvent) -> None:
        self._signals.emit(SIGNAL_AUTH_REVOKED, event)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def stream(self) -> None:
        """Open the event stream and process it until the server closes it.

        Raises :class:`NestStreamActiveError` at once if a stream is already
        open. Any HTTP or network failure is raised to the caller after the
        connection has been discarded.
        """
        if self._connection is not None:
            raise NestStreamActiveError("A stream is already active", connection=self._connection)
        self._require_token()

        connection = StreamConnection()
        self._connection = connection
        try:
            await self._request(build_stream_request, self._consume_stream, timeout=_STREAM_TIMEOUT)
        finally:
            self._cleanup_stream(connection)

    async def _consume_stream(self, resp: aiohttp.ClientResponse, spec: RequestSpec) -> None:
        if self._connection is not None:
            self._connection.url = spec.url
        # A response reopened after a redirect fallback starts a fresh series.
        if self._chunks:
            _logger.info("Dropping %d fragments left by the previous response", len(self._chunks))
        self._reset_stream_buffers()
        _logger.info("Stream opened (HTTP %s)", resp.status)
        async for chunk in resp.content.iter_any():
            self.handle_chunk(chunk)
        _logger.info("Stream ended by server")

    def _cleanup_stream(self, connection: StreamConnection) -> None:
        if self._connection is connection:
            self._connection = None
        if self._chunks:
            _logger.warning("Stream closed with %d buffered fragments; discarding them", len(self._chunks))
        self._reset_stream_buffers()
        _logger.info(
            "Cleaning up the stream after %.1fs (%d chunks, %d events)",
            connection.age,
            connection.chunks_received,
            connection.events_emitted,
        )
        self._signals.emit(SIGNAL_STREAM_CLOSED, self)

    async def update_device(self, device: Mapping[str, Any], field: str, value: Any) -> str:
        """PUT a single field of a device and return the raw response body."""
        device_path(device, field)
        self._require_token()

        def build(base_url: str, token: str) -> RequestSpec:
            return build_update_request(base_url, token, device, field, value, user_agent=self._config.user_agent)

        return await self._request(build, self._read_text)

    async def fetch_structures(self) -> Any:
        """One-shot read of every structure visible to the token."""
        self._require_token()
        return await self._request(build_structures_request, self._read_json)

    async def exchange_pin(self, pin: str, client_id: str, client_secret: str) -> AccessToken:
        """Trade an OAuth PIN for an access token and keep it."""
        spec = build_token_request(self._config.auth_url, pin, client_id, client_secret)
        _logger.debug("%s %s", spec.method, spec.url)
        try:
            async with self._http.request(
                spec.method,
                spec.url,
                headers=spec.headers,
                data=spec.data,
                allow_redirects=False,
            ) as resp:
                # The auth host is not the API host; its redirects are never cached.
                if resp.status == 307:
                    raise NestTransportError(
                        f"Token endpoint redirected to {resp.headers.get('Location')!r}",
                        status_code=resp.status,
                        endpoint=spec.endpoint,
                    )
                await self._check_status(spec, resp)
                body = await self._read_json(resp, spec)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise NestTransportError(f"Token exchange failed: {exc}", endpoint=spec.endpoint) from exc

        token = parse_token_response(body)
        self.set_token(token.token)
        _logger.info("Successfully completed authorization flow (token %s)", redact_token(token.token))
        return token

    async def _request(self, build: RequestBuilder, read: ResponseReader[T], **request_kwargs: Any) -> T:
        """Send one logical request, following 307s and the redirect fallback."""
        redirects = 0
        fallback_used = False
        while True:
            spec = build(self.base_url, self._require_token())
            _logger.debug("%s %s", spec.method, spec.url)
            try:
                async with self._http.request(
                    spec.method,
                    spec.url,
                    headers=spec.headers,
                    data=spec.data,
                    allow_redirects=False,
                    **request_kwargs,
                ) as resp:
                    if await self._check_status(spec, resp):
                        redirects += 1
                        if redirects > self._config.max_redirects:
                            raise NestTransportError(
                                f"Too many redirects for {spec.endpoint} ({redirects})",
                                status_code=resp.status,
                                endpoint=spec.endpoint,
                            )
                        continue
                    return await read(resp, spec)
            except (aiohttp.ClientError, TimeoutError) as exc:
                if self._redirect_url is not None and not fallback_used:
                    # The redirect host may be down or gone; retry once at the API root.
                    _logger.warning(
                        "%s %s via %s failed (%s); wiping cached redirect and retrying",
                        spec.method,
                        spec.endpoint,
                        self._redirect_url,
                        exc,
                    )
                    self._redirect_url = None
                    fallback_used = True
                    continue
                raise NestTransportError(
                    f"{spec.method} {spec.endpoint} failed: {exc}",
                    endpoint=spec.endpoint,
                ) from exc

    async def _check_status(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> bool:
        """Classify *resp*. Returns ``True`` when the request must be repeated."""
        handler = self._status_handlers.get(resp.status)
        if handler is not None:
            return await handler(spec, resp)
        if resp.status >= 400:
            text = await resp.text()
            raise NestHttpError(
                f"HTTP {resp.status} from {spec.endpoint}: {text[:200]}",
                status_code=resp.status,
                endpoint=spec.endpoint,
            )
        return False

    async def _read_text(self, resp: aiohttp.ClientResponse, spec: RequestSpec) -> str:
        text = await resp.text()
        _logger.debug("%s %s -> HTTP %s %s", spec.method, spec.endpoint, resp.status, text[:200])
        return text

    async def _read_json(self, resp: aiohttp.ClientResponse, spec: RequestSpec) -> Any:
        text = await self._read_text(resp, spec)
        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise NestTransportError(
                f"Invalid JSON from {spec.endpoint}: {text[:200]}",
                status_code=resp.status,
                endpoint=spec.endpoint,
            ) from exc
        _logger.debug("%s body: %s", spec.endpoint, redact_for_log(body))
        return body

    # ------------------------------------------------------------------
    # Status handlers
    # ------------------------------------------------------------------

    async def _handle_redirect(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> bool:
        location = resp.headers.get("Location")
        if not location:
            raise NestTransportError(
                f"HTTP 307 from {spec.endpoint} without a Location header",
                status_code=resp.status,
                endpoint=spec.endpoint,
            )
        self._cache_redirect_url(location)
        _logger.info("Got redirect for %s, caching %s", spec.endpoint, self._redirect_url)
        return True

    async def _handle_rate_limited(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.warning("Rate limited on %s; retry this request later", spec.endpoint)
        raise NestRateLimitError(
            f"Rate limited on {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_not_found(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.warning("Path not found: %s", spec.endpoint)
        raise NestPathNotFoundError(
            f"Path not found: {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_internal_error(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.error("Internal server error (500) on %s", spec.endpoint)
        raise NestInternalServerError(
            f"Internal server error on {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_auth_error(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.error("Access token rejected on %s; clearing it", spec.endpoint)
        self._token = None
        raise NestAuthenticationError(
            f"Access token rejected on {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_forbidden(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.warning("Forbidden: %s is not accessible to this client", spec.endpoint)
        raise NestForbiddenError(
            f"Forbidden: {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_service_unavailable(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        _logger.error("Service unavailable (503) on %s", spec.endpoint)
        raise NestServiceUnavailableError(
            f"Service unavailable on {spec.endpoint}",
            status_code=resp.status,
            endpoint=spec.endpoint,
        )

    async def _handle_invalid_request(self, spec: RequestSpec, resp: aiohttp.ClientResponse) -> NoReturn:
        text = await resp.text()
        detail: Any
        try:
            detail = json.loads(text)
        except json.JSONDecodeError as exc:
            detail = {"unable_to_parse": True, "raw_error": text, "parsing_error": str(exc)}
        _logger.error("Invalid request to %s: %s", spec.endpoint, redact_for_log(detail))
        raise NestInvalidRequestError(
            f"Invalid request to {spec.endpoint}",
            detail=detail,
            status_code=resp.status,
            endpoint=spec.endpoint,
        )
