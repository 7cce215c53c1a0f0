"""
HTTP transport and request-header construction.

The transport performs exactly one HTTP request per call.  It knows nothing
about sessions or retries; non-2xx statuses become :class:`InteractApiError`
and network failures propagate as the ``requests`` exception raised.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

import requests

from .config import (
    CONTENT_TYPE,
    PASSWORD_HEADER,
    REQUEST_TIMEOUT_SECONDS,
    SERVLET_PATH,
    TOKEN_HEADER,
    USERNAME_HEADER,
    InteractConfig,
)
from .errors import InteractApiError

# encodeURIComponent leaves these unescaped; the servlet decodes with the same rules
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass
class TransportResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: object = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class Transport(Protocol):
    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse: ...


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------

def build_endpoint_url(config: InteractConfig) -> str:
    """
    Return the batch servlet URL for ``config.server_url``.

    Args:
        config: Client configuration.

    Returns:
        Full URL string ready for the transport.
    """
    return config.server_url.rstrip("/") + SERVLET_PATH


def build_request_headers(config: InteractConfig, token_id: str | None = None) -> dict:
    """
    Construct the HTTP headers for a batch call.

    A remembered token replaces the username/password pair.  Credentials are
    URL-encoded the way the servlet expects.

    Args:
        config: Client configuration holding optional credentials.
        token_id: Token captured from an earlier response, if any.

    Returns:
        Dict of HTTP header name → value pairs.
    """
    headers = {"Content-Type": CONTENT_TYPE}

    if token_id:
        headers[TOKEN_HEADER] = token_id
    elif config.username:
        headers[USERNAME_HEADER] = quote(config.username, safe=_URI_COMPONENT_SAFE)
        headers[PASSWORD_HEADER] = quote(config.password or "", safe=_URI_COMPONENT_SAFE)

    return headers


# ---------------------------------------------------------------------------
# requests-based transport
# ---------------------------------------------------------------------------

class HttpTransport:
    """:class:`Transport` implemented with ``requests``."""

    def __init__(self, timeout: int = REQUEST_TIMEOUT_SECONDS):
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        """
        Perform one HTTP request.

        Args:
            method: ``POST``, ``GET``, ``PUT`` or ``DELETE``.
            url: Absolute URL.
            headers: Request headers.
            body: Already-serialized request body, if any.

        Returns:
            Status, headers and the body decoded as JSON (raw text when the
            body is not JSON).

        Raises:
            InteractApiError: On a non-2xx HTTP status.
            requests.RequestException: On connection failure or timeout.
        """
        response = requests.request(
            method,
            url,
            headers=headers,
            data=body.encode("utf-8") if body is not None else None,
            timeout=self.timeout,
        )

        text = response.text
        try:
            decoded: object = json.loads(text) if text else None
        except ValueError:
            decoded = text

        if not 200 <= response.status_code < 300:
            raise InteractApiError(response.status_code, response.reason or "", decoded)

        return TransportResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=decoded,
        )
