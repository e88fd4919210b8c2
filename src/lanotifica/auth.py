"""Bearer token authentication for relay requests.

Every protected request must carry `Authorization: Bearer <secret>`, where
<secret> is the shared secret from the config file (delivered to the phone
in the pairing QR code).

The check is stateless: it only reads the secret captured at startup, so
any number of requests may be checked concurrently without locking.
"""

import functools
import hmac
import logging
from typing import Awaitable, Callable

from aiohttp import hdrs, web

from lanotifica.errors import AuthError

__all__ = [
    "AuthError",
    "Handler",
    "check_bearer",
    "require_bearer",
]

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

SCHEME = "Bearer"

MISSING_HEADER = "Authorization header required"
INVALID_FORMAT = "Invalid authorization format, use: Bearer <token>"
INVALID_TOKEN = "Invalid token"


def check_bearer(header: str | None, secret: str) -> None:
    """Validate an Authorization header value against the shared secret.

    Args:
        header: Raw header value, or None if absent.
        secret: Shared secret.

    Raises:
        AuthError: With a plain-text reason if the header is missing,
            malformed, or carries the wrong token.
    """
    if not header:
        raise AuthError(MISSING_HEADER)

    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0] != SCHEME:
        raise AuthError(INVALID_FORMAT)

    if not _tokens_equal(parts[1], secret):
        raise AuthError(INVALID_TOKEN)


def _tokens_equal(token: str, secret: str) -> bool:
    # compare_digest only accepts ASCII str; compare the encoded bytes instead
    return hmac.compare_digest(
        token.encode("utf-8", "surrogatepass"),
        secret.encode("utf-8", "surrogatepass"),
    )


def require_bearer(secret: str, handler: Handler) -> Handler:
    """Wrap an aiohttp handler with bearer token authentication.

    Rejected requests get a 401 with a plain-text reason and never reach
    the wrapped handler. Accepted requests are passed through and the
    handler's response is returned unchanged.

    Args:
        secret: Shared secret captured at startup.
        handler: Downstream handler.

    Returns:
        Wrapped handler.
    """

    @functools.wraps(handler)
    async def authenticated(request: web.Request) -> web.StreamResponse:
        try:
            check_bearer(request.headers.get(hdrs.AUTHORIZATION), secret)
        except AuthError as e:
            logger.warning(f"Unauthorized request to {request.path} from {request.remote}: {e}")
            return web.Response(status=401, text=str(e))
        return await handler(request)

    return authenticated
