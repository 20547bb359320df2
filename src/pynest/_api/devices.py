"""Device mutation endpoint.

Endpoint:
  - ``PUT /devices/<device_type>/<device_id>/<field>``
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pynest._api._request import RequestSpec, bearer, join_url

DEVICE_TYPE_KEY = "_deviceType"
DEVICE_ID_KEY = "device_id"


def device_path(device: Mapping[str, Any], field: str) -> tuple[str, str, str]:
    """Return ``(device_type, device_id, field)`` for a cached device record.

    Raises :class:`ValueError` when the record was not produced by the
    representation store (it lacks ``device_id`` or ``_deviceType``).
    """
    device_type = device.get(DEVICE_TYPE_KEY)
    device_id = device.get(DEVICE_ID_KEY)
    if not isinstance(device_type, str) or not device_type:
        raise ValueError(f"device record has no {DEVICE_TYPE_KEY!r}; pass a record from the representation store")
    if not isinstance(device_id, str) or not device_id:
        raise ValueError(f"device record has no {DEVICE_ID_KEY!r}")
    if not field:
        raise ValueError("field name must be non-empty")
    return device_type, device_id, field


def serialize_value(value: Any) -> str:
    """Render a scalar the way the API expects it in a PUT body.

    Strings go through untouched; everything else is JSON encoded so that
    booleans become ``true``/``false`` and ``None`` becomes ``null``.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value)


def build_update_request(
    base_url: str,
    token: str,
    device: Mapping[str, Any],
    field: str,
    value: Any,
    *,
    user_agent: str,
) -> RequestSpec:
    device_type, device_id, field = device_path(device, field)
    return RequestSpec(
        method="PUT",
        url=join_url(base_url, "devices", device_type, device_id, field),
        endpoint=f"/devices/{device_type}/{device_id}/{field}",
        headers={
            "Content-Type": "text",
            "User-Agent": user_agent,
            "Authorization": bearer(token),
        },
        data=serialize_value(value),
    )
