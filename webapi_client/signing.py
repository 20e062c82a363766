"""Request signing for the Web API backend.

Two headers authenticate this client against the backend:

* ``X-AsiointivaltuudetAuthorization`` on every ``/service`` call, carrying
  ``"<client id> <timestamp> <checksum>"`` where the checksum is the base64
  HMAC-SHA256 of ``"<request path> <timestamp>"`` keyed with the client secret.
  The request path includes the query string exactly as it is sent.
* ``Authorization: Basic ...`` on the OAuth token endpoint.

Both functions are pure and keep no module state.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime
from typing import Optional

from .errors import ConfigurationError

CHECKSUM_HEADER = "X-AsiointivaltuudetAuthorization"


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ConfigurationError(f"{name} is required for request signing")
    return value


def current_timestamp() -> str:
    """Return local time as ISO-8601 with seconds and a numeric UTC offset."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def compute_checksum(client_secret: str, data: str) -> str:
    digest = hmac.new(
        client_secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def compute_checksum_header(
    client_id: str,
    client_secret: str,
    request_path: str,
    timestamp: Optional[str] = None,
) -> str:
    """Return the value of the checksum header for ``request_path``.

    Args:
        client_id: Client identifier registered with the backend.
        client_secret: Shared secret used as the HMAC key.
        request_path: Path and query string of the request, e.g.
            ``/service/hpa/api/delegate/abc?requestId=x&endUserId=y``.
        timestamp: Timestamp to sign. Defaults to :func:`current_timestamp`;
            pass one explicitly for reproducible output.
    """
    _require(client_id, "client_id")
    _require(client_secret, "client_secret")
    timestamp = timestamp or current_timestamp()
    checksum = compute_checksum(client_secret, f"{request_path} {timestamp}")
    return f"{client_id} {timestamp} {checksum}"


def compute_basic_auth_header(client_id: str, secret: str) -> str:
    """Return ``Basic base64(client_id:secret)``."""
    _require(client_id, "client_id")
    _require(secret, "secret")
    token = base64.b64encode(f"{client_id}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
