"""Synchronous publish/subscribe registry.

Components that emit signals own a :class:`SignalRegistry` and expose only
the subscribe/emit operations relevant to their own signal set.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

_logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class Subscription:
    """Opaque handle returned by :meth:`SignalRegistry.subscribe`."""

    signal: str
    key: int


class SignalRegistry:
    """Map of signal name to callbacks, delivered in registration order."""

    def __init__(self, signals: Iterable[str]) -> None:
        self._listeners: dict[str, dict[int, Callback]] = {name: {} for name in signals}
        self._keys = itertools.count(1)

    @property
    def signals(self) -> tuple[str, ...]:
        return tuple(self._listeners)

    def _bucket(self, signal: str) -> dict[int, Callback]:
        try:
            return self._listeners[signal]
        except KeyError:
            raise ValueError(f"Unknown signal {signal!r}; expected one of {sorted(self._listeners)}") from None

    def subscribe(self, signal: str, callback: Callback) -> Subscription:
        if not callable(callback):
            raise TypeError(f"callback for {signal!r} must be callable")
        key = next(self._keys)
        self._bucket(signal)[key] = callback
        return Subscription(signal=signal, key=key)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a callback. Returns ``False`` if it was not registered."""
        bucket = self._listeners.get(subscription.signal)
        if bucket is None:
            return False
        return bucket.pop(subscription.key, None) is not None

    def listener_count(self, signal: str) -> int:
        return len(self._bucket(signal))

    def deliver(self, subscription: Subscription, *args: Any) -> None:
        """Invoke a single registered callback, isolated like :meth:`emit`."""
        callback = self._bucket(subscription.signal).get(subscription.key)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            _logger.exception("%s listener %r failed", subscription.signal, callback)

    def emit(self, signal: str, *args: Any) -> None:
        """Deliver *args* to every callback registered for *signal*.

        A failing callback is logged and does not prevent delivery to the
        callbacks registered after it.
        """
        # Copy so callbacks may (un)subscribe while being notified.
        for callback in list(self._bucket(signal).values()):
            try:
                callback(*args)
            except Exception:
                _logger.exception("%s listener %r failed", signal, callback)
