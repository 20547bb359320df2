"""Streaming endpoint.

Endpoint:
  - ``GET /`` with ``Accept: text/event-stream``
  - ``GET /structures`` (one-shot read)
"""

from __future__ import annotations

from pynest._api._request import RequestSpec, bearer, join_url


def build_stream_request(base_url: str, token: str) -> RequestSpec:
    """Subscribe to every change visible to *token* at the API root."""
    return RequestSpec(
        method="GET",
        url=base_url,
        endpoint="/",
        headers={
            "Accept": "text/event-stream",
            "Authorization": bearer(token),
        },
    )


def build_structures_request(base_url: str, token: str) -> RequestSpec:
    return RequestSpec(
        method="GET",
        url=join_url(base_url, "structures"),
        endpoint="/structures",
        headers={
            "Accept": "application/json",
            "Authorization": bearer(token),
        },
    )
