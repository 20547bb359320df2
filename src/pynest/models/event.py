"""Structured stream events."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StreamEventType(StrEnum):
    """Event kinds the REST streaming API sends."""

    PUT = "put"
    AUTH_REVOKED = "auth_revoked"
    KEEP_ALIVE = "keep-alive"


class StreamEvent(BaseModel):
    """An event reconstructed from one or more stream chunks.

    ``event`` stays a plain string so types outside
    :class:`StreamEventType` can still be logged and ignored.
    """

    model_config = ConfigDict(frozen=True)

    event: str
    body: Any = Field(default=None, description="Decoded JSON body (put events only)")
