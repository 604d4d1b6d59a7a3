"""
auth/tokens.py -- Session token codec, password hashing, and cookie helpers.

Security design decisions:
  JWT: python-jose with HS512. Tokens carry sub (user id as a string),
       username, email, role, iat and exp. They are stateless: nothing about
       an issued token is stored server-side, so every token stays valid
       until its exp claim passes.

  verify() returns None on any failure -- empty, malformed, bad signature,
       expired, or missing claims. The Request Gate turns None into an
       anonymous request; it never becomes an exception in the caller.

  Signing key: HS512 needs a 512-bit key. TokenCodec refuses a secret shorter
       than 64 bytes at construction; core.config rejects it even earlier, at
       startup.

  Passwords: the optional legacy password field is stored as a bcrypt hash
       (bcrypt directly, no passlib wrapper).

Layer rule: no imports from api/, web/, or board/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from collections.abc import Callable
from functools import lru_cache

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import ClaimSet, Principal
from core.config import MIN_SECRET_BYTES, Settings, get_settings

logger = logging.getLogger("threadboard.auth")

_ALGORITHM = "HS512"

COOKIE_NAME = "jwt"

_REQUIRED_CLAIMS = ("username", "role")


def _has_canonical_signature(token: str) -> bool:
    """True when the signature segment is the exact unpadded base64url form of its bytes.

    jose decodes base64url leniently, so stray low bits in the last character
    would otherwise map to the same HMAC and pass.
    """
    segment = token.rsplit(".", 1)[-1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError):
        return False
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == segment


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Mint and verify HS512 session tokens.

    Pure function of (token, secret, TTL): holds no per-request state, so one
    instance is shared by every request.

    Usage:
        codec = TokenCodec(secret, expiration_ms=86_400_000)
        token = codec.issue(1, "alice", "a@x.com", "ROLE_USER")
        principal = codec.verify(token)      # Principal or None
        claims = codec.claims(token)         # ClaimSet, raises ValueError
    """

    def __init__(self, secret: str, expiration_ms: int, clock: Callable[[], float] = time.time) -> None:
        if not secret or len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"HS512 signing secret must be at least {MIN_SECRET_BYTES} bytes.")
        if expiration_ms <= 0:
            raise ValueError("Token expiration must be positive.")
        self._secret = secret
        self.expiration_ms = expiration_ms
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(settings.jwt_secret, settings.jwt_expiration_ms)

    def issue(self, user_id: int, username: str, email: str | None, role: str) -> str:
        """Encode a signed token for the given identity. Returns the compact JWS string."""
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "username": username,
            "email": email,
            "role": role,
            "iat": int(now),
            "exp": int(now + self.expiration_ms / 1000),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def claims(self, token: str | None) -> ClaimSet:
        """Decode and validate a token, returning its claim set.

        Raises ValueError on any failure. Call verify() first when a failure
        should simply mean "anonymous".
        """
        if not token:
            raise ValueError("empty token")
        if not _has_canonical_signature(token):
            raise ValueError("invalid token: non-canonical signature")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except ExpiredSignatureError as exc:
            raise ValueError("token expired") from exc
        except JWTError as exc:
            raise ValueError(f"invalid token: {exc}") from exc

        missing = [name for name in _REQUIRED_CLAIMS if not payload.get(name)]
        if missing:
            raise ValueError(f"token is missing claims: {', '.join(missing)}")
        return ClaimSet(
            subject=payload["sub"],
            username=payload["username"],
            email=payload.get("email"),
            role=payload["role"],
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )

    def verify(self, token: str | None) -> Principal | None:
        """Return the Principal a token identifies, or None if it does not verify.

        Never raises. Failures are logged at WARNING without the token value.
        """
        if not token:
            return None
        try:
            claims = self.claims(token)
            user_id = int(claims.subject)
        except ValueError as exc:
            logger.warning("Session token rejected: %s", exc)
            return None
        return Principal(user_id=user_id, username=claims.username, role=claims.role)


@lru_cache
def get_token_codec() -> TokenCodec:
    """Return the process-wide TokenCodec built from get_settings()."""
    return TokenCodec.from_settings(get_settings())


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes; the API layer caps passwords at
    72 characters so nothing is silently dropped for ASCII input.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings | None = None) -> None:
    """Write the session token as the "jwt" cookie on the response.

    httponly=False: the browser front end reads the token to call the API
        with a Bearer header.
    secure: only for the dev/prod profiles, which are served over HTTPS.
    path="/": the whole site.
    max_age: the token TTL, so cookie and token expire together.
    """
    cfg = settings or get_settings()
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=False,
        secure=cfg.secure_cookies,
        samesite="lax",
        path="/",
        max_age=cfg.jwt_expiration_seconds,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/")
