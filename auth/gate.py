"""
auth/gate.py -- Per-request authentication gate.

Runs as HTTP middleware before any route. For every request it decides
Anonymous vs Authenticated and stores the answer on request.state.principal
(a Principal or None). Request state is allocated per request, so nothing
leaks between concurrent requests and nothing has to be cleared afterwards.

Protocol:
  1. Allow-listed paths (login page, OAuth entry/callback, static assets,
     health/monitoring) skip token handling entirely.
  2. Otherwise take the token from the "jwt" cookie, falling back to an
     "Authorization: Bearer <token>" header. Neither present -> anonymous.
  3. A token that verifies becomes a Principal.
  4. Any failure leaves the request anonymous (fail closed).
  5. The request always continues. Rejecting anonymous callers is the job
     of the dependencies in auth/dependencies.py.

Layer rule: no imports from api/, web/, or board/.
"""

from __future__ import annotations

import logging

from starlette.requests import Request

from auth.models import Principal
from auth.tokens import COOKIE_NAME, TokenCodec, get_token_codec

logger = logging.getLogger("threadboard.auth.gate")

PUBLIC_PATH_PREFIXES: tuple[str, ...] = (
    "/login",
    "/oauth2",
    "/css",
    "/js",
    "/img",
    "/images",
    "/static",
    "/monitoring",
    "/api/v1/health",
)

_BEARER = "Bearer "


def is_public_path(path: str) -> bool:
    """True for paths that bypass authentication. Matches whole path segments,
    so "/login/oauth2/code/google" is public and "/loginx" is not."""
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PUBLIC_PATH_PREFIXES)


def extract_token(request: Request) -> str | None:
    """Return the candidate token: cookie first, then Bearer header."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER):
        return auth_header[len(_BEARER) :].strip() or None
    return None


def resolve_principal(request: Request, codec: TokenCodec) -> Principal | None:
    """Map the request's credential material to a Principal, or None."""
    token = extract_token(request)
    if token is None:
        return None
    return codec.verify(token)


async def request_gate(request: Request, call_next):
    """HTTP middleware: install request.state.principal, then always call_next."""
    request.state.principal = None
    if not is_public_path(request.url.path):
        codec = getattr(request.app.state, "token_codec", None) or get_token_codec()
        try:
            principal = resolve_principal(request, codec)
        except Exception:
            logger.warning("Identity resolution failed on %s; continuing anonymously", request.url.path, exc_info=True)
            principal = None
        if principal is not None:
            logger.debug("Authenticated user_id=%d role=%s", principal.user_id, principal.role)
        request.state.principal = principal
    return await call_next(request)
