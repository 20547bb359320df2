"""Cache snapshots handed to store subscribers."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DeviceRecord = dict[str, Any]
DeviceCache = dict[str, dict[str, DeviceRecord]]
StructureCache = dict[str, dict[str, Any]]


class CacheSnapshot(BaseModel):
    """Independent copy of the device and structure caches.

    Built with :meth:`capture`, which deep-copies its inputs, so nothing
    done to a snapshot reaches the store it came from.
    """

    model_config = ConfigDict(frozen=True)

    devices: DeviceCache = Field(default_factory=dict)
    structures: StructureCache = Field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        devices: Mapping[str, Mapping[str, Any]],
        structures: Mapping[str, Any],
    ) -> CacheSnapshot:
        return cls(devices=copy.deepcopy(dict(devices)), structures=copy.deepcopy(dict(structures)))

    def device_count(self) -> int:
        return sum(len(bucket) for bucket in self.devices.values())
