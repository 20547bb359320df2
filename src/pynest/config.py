"""Client configuration for pynest."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pynest._constants import API_URL, AUTH_URL, DEFAULT_MAX_REDIRECTS, USER_AGENT
from pynest.exceptions import NestConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class NestConfig:
    """Client configuration.

    Parameters
    ----------
    token : str or None
        OAuth2 access token. When set, the client starts with it applied to
        the transport; otherwise obtain one with ``exchange_pin``.
    client_id : str or None
        OAuth client (product) id used for the PIN exchange.
    client_secret : str or None
        OAuth client (product) secret used for the PIN exchange.
    product_id : str or None
        Works with Nest product id. Informational; carried for callers that
        persist it next to the token.
    api_url : str
        Default API root for the stream and for mutations. A cached 307
        redirect target takes precedence while it is valid.
    auth_url : str
        OAuth2 token endpoint.
    user_agent : str
        ``User-Agent`` sent with mutation requests.
    max_redirects : int
        Upper bound of consecutive 307 responses followed for one logical
        request.
    auto_restart_stream : bool
        Reopen the stream after the server ends it cleanly. Errors always
        end ``NestClient.stream_changes``.
    stream_restart_delay : float
        Seconds to wait before reopening a cleanly ended stream.
    """

    token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    product_id: str | None = None
    api_url: str = API_URL
    auth_url: str = AUTH_URL
    user_agent: str = USER_AGENT
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    auto_restart_stream: bool = False
    stream_restart_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_redirects < 0:
            raise NestConfigError(f"max_redirects must be >= 0, got {self.max_redirects}")
        if self.stream_restart_delay < 0:
            raise NestConfigError(f"stream_restart_delay must be >= 0, got {self.stream_restart_delay}")
        if not self.api_url.startswith(("http://", "https://")):
            raise NestConfigError(f"api_url must be an absolute http(s) URL, got {self.api_url!r}")
        # Trailing slashes would double up when paths are joined.
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

    @classmethod
    def from_env(cls, **overrides: Any) -> NestConfig:
        """Create configuration from environment variables.

        Reads ``NEST_TOKEN``, ``NEST_CLIENT_ID``, ``NEST_CLIENT_SECRET``,
        ``NEST_PRODUCT_ID``, ``NEST_API_URL``, ``NEST_AUTH_URL``,
        ``NEST_USER_AGENT``, ``NEST_MAX_REDIRECTS`` and
        ``NEST_AUTO_RESTART_STREAM``. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "NEST_TOKEN": "token",
            "NEST_CLIENT_ID": "client_id",
            "NEST_CLIENT_SECRET": "client_secret",
            "NEST_PRODUCT_ID": "product_id",
            "NEST_API_URL": "api_url",
            "NEST_AUTH_URL": "auth_url",
            "NEST_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        redirects_env = env.get("NEST_MAX_REDIRECTS")
        if redirects_env is not None and "max_redirects" not in overrides:
            try:
                config_kwargs["max_redirects"] = int(redirects_env)
            except ValueError as exc:
                raise NestConfigError(f"NEST_MAX_REDIRECTS is not an integer: {redirects_env!r}") from exc

        if "auto_restart_stream" not in overrides:
            config_kwargs["auto_restart_stream"] = _env_bool(env.get("NEST_AUTO_RESTART_STREAM"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
