"""pynest - Async Python client for the Nest REST streaming API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pynest")
except PackageNotFoundError:
    __version__ = "0+local"
from pynest._signals import Subscription
from pynest._transport import StreamConnection, StreamTransport
from pynest.client import NestClient
from pynest.config import NestConfig
from pynest.exceptions import (
    NestAuthenticationError,
    NestConfigError,
    NestError,
    NestForbiddenError,
    NestHttpError,
    NestInternalServerError,
    NestInvalidCredentialError,
    NestInvalidRequestError,
    NestMalformedEventError,
    NestNoTokenError,
    NestPathNotFoundError,
    NestRateLimitError,
    NestServiceUnavailableError,
    NestStreamActiveError,
    NestTransportError,
)
from pynest.models import AccessToken, CacheSnapshot, StreamEvent, StreamEventType
from pynest.state import RepresentationStore

__all__ = [
    "__version__",
    "AccessToken",
    "CacheSnapshot",
    "NestAuthenticationError",
    "NestClient",
    "NestConfig",
    "NestConfigError",
    "NestError",
    "NestForbiddenError",
    "NestHttpError",
    "NestInternalServerError",
    "NestInvalidCredentialError",
    "NestInvalidRequestError",
    "NestMalformedEventError",
    "NestNoTokenError",
    "NestPathNotFoundError",
    "NestRateLimitError",
    "NestServiceUnavailableError",
    "NestStreamActiveError",
    "NestTransportError",
    "RepresentationStore",
    "StreamConnection",
    "StreamEvent",
    "StreamEventType",
    "StreamTransport",
    "Subscription",
]
