"""OAuth2 PIN exchange.

Endpoint:
  - ``POST <auth_url>`` (form encoded, ``grant_type=authorization_code``)
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pynest._api._request import RequestSpec
from pynest._redact import redact_for_log
from pynest.exceptions import NestAuthenticationError
from pynest.models.token import AccessToken

_logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "/oauth2/access_token"


def build_token_request(auth_url: str, pin: str, client_id: str, client_secret: str) -> RequestSpec:
    """Build the form POST that trades a PIN for an access token."""
    form = {
        "code": pin,
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "authorization_code",
    }
    _logger.debug("Token request form: %s", redact_for_log(form))
    return RequestSpec(
        method="POST",
        url=auth_url,
        endpoint=TOKEN_ENDPOINT,
        headers={"Accept": "application/json"},
        data=form,
    )


def parse_token_response(body: Any) -> AccessToken:
    """Validate the decoded token response.

    Raises :class:`NestAuthenticationError` if no usable ``access_token``
    is present.
    """
    if not isinstance(body, dict):
        raise NestAuthenticationError(
            "Token response is not a JSON object",
            endpoint=TOKEN_ENDPOINT,
        )
    try:
        return AccessToken.model_validate(body)
    except ValidationError as exc:
        _logger.debug("Rejected token response: %s", redact_for_log(body))
        raise NestAuthenticationError(
            "Token response carries no usable access_token",
            endpoint=TOKEN_ENDPOINT,
        ) from exc
