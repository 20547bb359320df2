"""Helpers for safe debug logging.

pynest handles OAuth secrets (client secrets, PIN codes, access tokens).
Everything it logs is either an OAuth form or a decoded JSON body, so the
helpers here only walk JSON-shaped values.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MASK = "<redacted>"

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "authorization",
        "client_secret",
        "code",
        "pin",
        "token",
    }
)


def redact_token(token: str | None) -> str:
    """Return a short, non-reversible hint of *token* for log lines."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return _MASK
    return f"{token[:4]}…{_MASK}"


def redact_for_log(value: Any, *, max_string: int = 256) -> Any:
    """Return a copy of a form or JSON body with secrets masked.

    Values under sensitive keys are replaced, ``Bearer`` credentials are
    masked wherever they appear and long strings (whole device snapshots
    rendered as text, HTML error pages) are truncated.
    """
    if isinstance(value, Mapping):
        return {
            str(key): _MASK if str(key).lower() in _SENSITIVE_VALUE_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str):
        if value.startswith("Bearer "):
            return f"Bearer {_MASK}"
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
    return value
