"""Deterministic cache balancing policy.

The functions here never mutate their arguments: each returns a new cache
that exactly mirrors which entities exist upstream, carrying over cached
fields the upstream record does not mention.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pynest.models.snapshot import DeviceCache, StructureCache

DEVICE_TYPE_KEY = "_deviceType"


def merge_record(cached: Mapping[str, Any], upstream: Mapping[str, Any]) -> dict[str, Any]:
    """Upstream wins per field; fields absent upstream are preserved."""
    merged = copy.deepcopy(dict(cached))
    merged.update(copy.deepcopy(dict(upstream)))
    return merged


def _balance_bucket(cached: Mapping[str, Any], upstream: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    # Cached ids missing upstream are dropped. Surviving ids keep their order
    # and newly seen ids follow them.
    balanced: dict[str, dict[str, Any]] = {}
    for record_id, record in cached.items():
        incoming = upstream.get(record_id)
        if isinstance(incoming, Mapping):
            balanced[record_id] = merge_record(record, incoming)
    for record_id, incoming in upstream.items():
        if record_id not in balanced and isinstance(incoming, Mapping):
            balanced[record_id] = copy.deepcopy(dict(incoming))
    return balanced


def balance_devices(cached: DeviceCache, upstream: Mapping[str, Any]) -> DeviceCache:
    """Balance the two-level device cache against an upstream ``devices`` map.

    Device-type buckets absent upstream disappear, as do buckets left with
    no devices, so a type key exists only while one of its devices does.
    Every record is stamped with its bucket under ``_deviceType``.
    """
    balanced: DeviceCache = {}
    for device_type, upstream_bucket in upstream.items():
        if not isinstance(upstream_bucket, Mapping):
            continue
        bucket = _balance_bucket(cached.get(device_type, {}), upstream_bucket)
        if not bucket:
            continue
        for record in bucket.values():
            record[DEVICE_TYPE_KEY] = device_type
        balanced[device_type] = bucket
    return balanced


def balance_structures(cached: StructureCache, upstream: Mapping[str, Any]) -> StructureCache:
    """Balance the single-level structure cache against upstream ``structures``."""
    return _balance_bucket(cached, upstream)
