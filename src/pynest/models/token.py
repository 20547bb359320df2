"""OAuth access token model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AccessToken(BaseModel):
    """Token returned by the OAuth2 PIN exchange.

    Parameters
    ----------
    token : str
        The bearer token (``access_token`` in the API response).
    expires_in : int or None
        Lifetime in seconds, when the API reports one.
    raw : dict
        Full decoded response for access to additional fields.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str = Field(alias="access_token", min_length=1)
    expires_in: int | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if isinstance(values, dict) and "raw" not in values:
            return {**values, "raw": dict(values)}
        return values
