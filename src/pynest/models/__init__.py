"""Data models for the Nest streaming API."""

from pynest.models.event import StreamEvent, StreamEventType
from pynest.models.snapshot import CacheSnapshot, DeviceCache, DeviceRecord, StructureCache
from pynest.models.token import AccessToken

__all__ = [
    "AccessToken",
    "CacheSnapshot",
    "DeviceCache",
    "DeviceRecord",
    "StreamEvent",
    "StreamEventType",
    "StructureCache",
]
