"""In-memory representation store.

This is the only component allowed to change the cached device and
structure maps. Each upstream ``put`` is balanced against the caches and
subscribers receive an independent :class:`CacheSnapshot`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pynest._signals import SignalRegistry, Subscription
from pynest.models.event import StreamEvent
from pynest.models.snapshot import CacheSnapshot, DeviceCache, DeviceRecord, StructureCache
from pynest.state.policy import balance_devices, balance_structures

_logger = logging.getLogger(__name__)

SIGNAL_HYDRATED = "hydrated"
SIGNAL_UPDATE = "update"

_MISSING = object()


def _upstream_section(payload: Any, key: str) -> Any:
    """Return ``payload["data"][key]`` or ``_MISSING``."""
    if not isinstance(payload, Mapping):
        return _MISSING
    data = payload.get("data")
    if not isinstance(data, Mapping) or key not in data:
        return _MISSING
    return data[key]


class RepresentationStore:
    """Local mirror of upstream devices and structures.

    ``devices`` is keyed device type -> device id -> record, ``structures``
    is keyed structure id -> record. The first :meth:`reconcile` emits
    ``hydrated``; every later one emits ``update``.
    """

    def __init__(self) -> None:
        self._devices: DeviceCache = {}
        self._structures: StructureCache = {}
        self._hydrated = False
        self._signals = SignalRegistry((SIGNAL_HYDRATED, SIGNAL_UPDATE))

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def handle_put_event(self, event: StreamEvent) -> CacheSnapshot:
        """Listener for the transport's ``put`` events."""
        return self.reconcile(event.body)

    def reconcile(self, payload: Any) -> CacheSnapshot:
        """Balance both caches against a ``put`` body and notify subscribers."""
        path = payload.get("path") if isinstance(payload, Mapping) else None
        _logger.debug("Reconciling stream update (path=%s)", path)

        self._balance_devices(payload)
        self._balance_structures(payload)

        snapshot = self.snapshot()
        if not self._hydrated:
            self._hydrated = True
            _logger.info(
                "Representation hydrated: %d devices, %d structures",
                snapshot.device_count(),
                len(snapshot.structures),
            )
            self._signals.emit(SIGNAL_HYDRATED, snapshot)
        else:
            self._signals.emit(SIGNAL_UPDATE, snapshot)
        return snapshot

    def _balance_devices(self, payload: Any) -> None:
        upstream = _upstream_section(payload, "devices")
        if upstream is _MISSING:
            # The update does not concern devices; defer.
            return
        if not upstream:
            self._devices = {}
            return
        if not isinstance(upstream, Mapping):
            _logger.warning("Ignoring devices section of type %s", type(upstream).__name__)
            return
        self._devices = balance_devices(self._devices, upstream)

    def _balance_structures(self, payload: Any) -> None:
        upstream = _upstream_section(payload, "structures")
        if upstream is _MISSING:
            return
        if not upstream:
            self._structures = {}
            return
        if not isinstance(upstream, Mapping):
            _logger.warning("Ignoring structures section of type %s", type(upstream).__name__)
            return
        self._structures = balance_structures(self._structures, upstream)

    def reset(self) -> None:
        """Forget all cached state; the next reconcile hydrates again."""
        self._devices = {}
        self._structures = {}
        self._hydrated = False

    # ------------------------------------------------------------------
    # Queries (all results are deep copies)
    # ------------------------------------------------------------------

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot.capture(self._devices, self._structures)

    def get_all_devices(self) -> DeviceCache:
        return copy.deepcopy(self._devices)

    def get_all_structures(self) -> StructureCache:
        return copy.deepcopy(self._structures)

    def get_devices_of_type(self, device_type: str) -> dict[str, DeviceRecord]:
        return copy.deepcopy(self._devices.get(device_type, {}))

    def find_devices_by_name(self, name: str) -> list[DeviceRecord]:
        """Every cached device whose ``name`` equals *name*, across all types."""
        return [
            copy.deepcopy(record)
            for bucket in self._devices.values()
            for record in bucket.values()
            if record.get("name") == name
        ]

    def get_device_by_name(self, name: str) -> DeviceRecord | list[DeviceRecord] | None:
        """Compatibility lookup: ``None``, the single match, or a list of matches.

        Prefer :meth:`find_devices_by_name`, which always returns a list.
        """
        matches = self.find_devices_by_name(name)
        if not matches:
            return None
        if len(matches) == 1:
            return matches[0]
        return matches

    def get_device_by_id(self, device_id: str) -> DeviceRecord | None:
        for bucket in self._devices.values():
            record = bucket.get(device_id)
            if record is not None:
                return copy.deepcopy(record)
        return None

    def get_structure_by_id(self, structure_id: str) -> dict[str, Any] | None:
        record = self._structures.get(structure_id)
        return copy.deepcopy(record) if record is not None else None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_hydrated_listener(self, callback: Callable[[CacheSnapshot], Any]) -> Subscription:
        """Subscribe to hydration.

        When the store is already hydrated the callback also runs right away
        with the current snapshot.
        """
        subscription = self._signals.subscribe(SIGNAL_HYDRATED, callback)
        if self._hydrated:
            self._signals.deliver(subscription, self.snapshot())
        return subscription

    def add_update_listener(self, callback: Callable[[CacheSnapshot], Any]) -> Subscription:
        return self._signals.subscribe(SIGNAL_UPDATE, callback)

    def remove_listener(self, subscription: Subscription) -> bool:
        return self._signals.unsubscribe(subscription)
