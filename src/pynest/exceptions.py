"""Custom exception hierarchy for pynest."""

from __future__ import annotations

from typing import Any


class NestError(Exception):
    """Base exception for all pynest errors."""


class NestConfigError(NestError):
    """Invalid or missing configuration."""


class NestInvalidCredentialError(NestError):
    """A token that is not a string was handed to the transport."""


class NestNoTokenError(NestError):
    """A request was attempted before any access token was set."""


class NestMalformedEventError(NestError):
    """A stream chunk carries an event header or body that cannot be read."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


class NestStreamActiveError(NestError):
    """A stream was requested while another one is still open.

    The open connection is attached so callers can inspect it; starting a
    stream is never queued.
    """

    def __init__(self, message: str, *, connection: Any = None) -> None:
        self.connection = connection
        super().__init__(message)


class NestTransportError(NestError):
    """HTTP-level failure (network error, redirect loop, unexpected status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class NestHttpError(NestTransportError):
    """The API answered with an error status."""


class NestRateLimitError(NestHttpError):
    """The API reports that this client hit its rate limits (429).

    No retry is scheduled; callers should back off before repeating.
    """


class NestPathNotFoundError(NestHttpError):
    """The requested path does not exist (404)."""


class NestInternalServerError(NestHttpError):
    """The API reported an internal server error (500)."""


class NestAuthenticationError(NestHttpError):
    """The access token is invalid (401) or no token could be obtained.

    The transport clears its token before raising this.
    """


class NestForbiddenError(NestHttpError):
    """The path is forbidden to this client (403); do not repeat the request."""


class NestServiceUnavailableError(NestHttpError):
    """The API is temporarily unable to service requests (503)."""


class NestInvalidRequestError(NestHttpError):
    """The API rejected the request as invalid (400).

    ``detail`` holds the decoded JSON error body, or a dict describing why
    the body could not be decoded.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Any = None,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.detail = detail
        super().__init__(message, status_code=status_code, endpoint=endpoint)
