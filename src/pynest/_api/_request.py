"""Request description shared by the endpoint builders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """Everything the transport needs to send one HTTP request.

    ``endpoint`` is the path used in log lines and error messages; it never
    contains the host so cached redirects do not leak into errors.
    """

    method: str
    url: str
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None


def bearer(token: str) -> str:
    return f"Bearer {token}"


def join_url(base_url: str, *parts: str) -> str:
    return "/".join([base_url.rstrip("/"), *(str(p).strip("/") for p in parts)])
