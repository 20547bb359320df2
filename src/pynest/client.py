"""High-level async client for the Nest REST streaming API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp

from pynest._signals import Subscription
from pynest._transport import StreamTransport
from pynest.config import NestConfig
from pynest.exceptions import NestConfigError, NestError
from pynest.models.event import StreamEvent
from pynest.models.snapshot import CacheSnapshot, DeviceCache, DeviceRecord, StructureCache
from pynest.models.token import AccessToken
from pynest.state.store import RepresentationStore

_logger = logging.getLogger(__name__)


class NestClient:
    """Async client keeping a live local mirror of Nest devices and structures.

    Usage::

        async with NestClient(NestConfig.from_env()) as client:
            client.add_hydrated_listener(on_ready)
            client.add_update_listener(on_change)
            await client.stream_changes()

    One client holds one token, one stream and one pair of caches. Create
    several clients for several accounts.
    """

    def __init__(
        self,
        config: NestConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config if config is not None else NestConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: StreamTransport | None = None
        self._store = RepresentationStore()
        self._put_subscription: Subscription | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> NestClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        transport = StreamTransport(self._config, self._http_session)
        self._put_subscription = transport.add_put_listener(self._store.handle_put_event)
        if self._config.token is not None:
            transport.set_token(self._config.token)
        self._transport = transport
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._transport is not None and self._put_subscription is not None:
            self._transport.remove_listener(self._put_subscription)
        self._put_subscription = None
        self._transport = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _require_transport(self) -> StreamTransport:
        if self._transport is None:
            raise NestError("Client not initialized. Use 'async with NestClient(...) as client:'")
        return self._transport

    @property
    def config(self) -> NestConfig:
        return self._config

    @property
    def transport(self) -> StreamTransport:
        return self._require_transport()

    @property
    def store(self) -> RepresentationStore:
        return self._store

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def set_token(self, token: str) -> NestClient:
        self._require_transport().set_token(token)
        return self

    def clear_token(self) -> NestClient:
        self._require_transport().clear_token()
        return self

    @property
    def has_token(self) -> bool:
        return self._transport is not None and self._transport.token is not None

    async def exchange_pin(
        self,
        pin: str,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
    ) -> AccessToken:
        """Trade an OAuth PIN for an access token; the token is applied."""
        resolved_id = client_id or self._config.client_id
        resolved_secret = client_secret or self._config.client_secret
        if not resolved_id or not resolved_secret:
            raise NestConfigError("client_id and client_secret are required (pass them or set them in NestConfig)")
        return await self._require_transport().exchange_pin(pin, resolved_id, resolved_secret)

    # ------------------------------------------------------------------
    # Stream and requests
    # ------------------------------------------------------------------

    async def stream_changes(self) -> None:
        """Stream changes into the local representation.

        Returns when the server ends the stream, unless
        ``config.auto_restart_stream`` is set, in which case a cleanly ended
        stream is reopened after ``config.stream_restart_delay`` seconds.
        Errors always propagate.
        """
        transport = self._require_transport()
        while True:
            await transport.stream()
            if not self._config.auto_restart_stream:
                return
            _logger.info("Stream ended; reopening in %.1fs", self._config.stream_restart_delay)
            await asyncio.sleep(self._config.stream_restart_delay)

    async def update_device(self, device: Mapping[str, Any], field: str, value: Any) -> str:
        """Set ``device[field]`` upstream. *device* is a record from this client's cache."""
        return await self._require_transport().update_device(device, field, value)

    async def fetch_structures(self) -> Any:
        return await self._require_transport().fetch_structures()

    # ------------------------------------------------------------------
    # Cache queries
    # ------------------------------------------------------------------

    @property
    def is_hydrated(self) -> bool:
        return self._store.is_hydrated

    def snapshot(self) -> CacheSnapshot:
        return self._store.snapshot()

    def get_all_devices(self) -> DeviceCache:
        return self._store.get_all_devices()

    def get_all_structures(self) -> StructureCache:
        return self._store.get_all_structures()

    def get_device_by_id(self, device_id: str) -> DeviceRecord | None:
        return self._store.get_device_by_id(device_id)

    def get_device_by_name(self, name: str) -> DeviceRecord | list[DeviceRecord] | None:
        return self._store.get_device_by_name(name)

    def find_devices_by_name(self, name: str) -> list[DeviceRecord]:
        return self._store.find_devices_by_name(name)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_hydrated_listener(self, callback: Callable[[CacheSnapshot], Any]) -> Subscription:
        return self._store.add_hydrated_listener(callback)

    def add_update_listener(self, callback: Callable[[CacheSnapshot], Any]) -> Subscription:
        return self._store.add_update_listener(callback)

    def add_put_listener(self, callback: Callable[[StreamEvent], Any]) -> Subscription:
        return self._require_transport().add_put_listener(callback)

    def add_auth_revoked_listener(self, callback: Callable[[StreamEvent], Any]) -> Subscription:
        return self._require_transport().add_auth_revoked_listener(callback)

    def add_stream_closed_listener(self, callback: Callable[[StreamTransport], Any]) -> Subscription:
        return self._require_transport().add_stream_closed_listener(callback)

    def remove_listener(self, subscription: Subscription) -> bool:
        """Remove a listener registered through any ``add_*_listener``."""
        if self._store.remove_listener(subscription):
            return True
        if self._transport is not None:
            return self._transport.remove_listener(subscription)
        return False
