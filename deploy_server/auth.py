"""Bearer-token gate for every endpoint.

Clients authenticate with a single shared secret:

    Authorization: Bearer <auth_token>

Security Model:
    1. CORS headers (when an allowed origin is configured) go on every
       response, including rejections and preflights
    2. OPTIONS requests are answered with an empty 200 before any auth check
    3. A missing header or a scheme other than Bearer is rejected
       ("Invalid authentication")
    4. The token is compared in constant time; a mismatch is rejected
       ("Invalid token")

The gate never logs the presented token.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from fastapi.responses import Response

from .config import Settings
from .errors import UnauthorizedError
from .responses import error_response

_LOG = logging.getLogger(__name__)

BEARER_PREFIX: str = "Bearer "
"""Required prefix of the Authorization header value."""

CORS_ALLOW_METHODS: str = "POST, GET, OPTIONS"
CORS_ALLOW_HEADERS: str = "Content-Type, Authorization"


class AuthGate:
    """Request stage that admits only callers holding the shared token.

    Calling the gate with a request returns None when the request is
    admitted, or the response to send instead.

    Attributes:
        allowed_origins: Configured CORS origin ('' when CORS is off).
    """

    def __init__(self, settings: Settings) -> None:
        self._token = settings.auth_token.encode("utf-8")
        self.allowed_origins = settings.allowed_origins

    def cors_headers(self) -> dict[str, str]:
        """Headers to attach to every response, empty if CORS is off."""
        if not self.allowed_origins:
            return {}
        return {
            "Access-Control-Allow-Origin": self.allowed_origins,
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        }

    def verify_token(self, token: str) -> bool:
        """Compare a presented token with the configured one.

        Uses constant-time comparison to prevent timing attacks.
        """
        return hmac.compare_digest(token.encode("utf-8"), self._token)

    def admit(self, request: Request) -> Response | None:
        """Check a request's credentials.

        Returns:
            None if the request may proceed, otherwise the response to send.
        """
        if request.method == "OPTIONS":
            return Response(status_code=200)

        authorization = request.headers.get("authorization", "")
        if not authorization.startswith(BEARER_PREFIX):
            _LOG.warning("Rejected %s %s: missing bearer token", request.method, request.url.path)
            return error_response(UnauthorizedError("Invalid authentication"))

        if not self.verify_token(authorization[len(BEARER_PREFIX):]):
            _LOG.warning("Rejected %s %s: invalid token", request.method, request.url.path)
            return error_response(UnauthorizedError("Invalid token"))

        return None

    __call__ = admit
