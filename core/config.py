"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Threadboard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a signing key with a warning; every other
      mode refuses to start without one.

Security notes:
  - The JWT signing secret must be at least 64 bytes once UTF-8 encoded.
    HS512 uses a 512-bit HMAC key; a shorter secret is a startup error,
    never a per-request one.

  - Outside DEBUG a missing JWT_SECRET is a hard startup failure. Tokens
    minted with a random key would all be invalidated on restart.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or board/.
"""

import hashlib
import hmac
import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("threadboard.config")

# HS512 signs with a 512-bit key.
MIN_SECRET_BYTES = 64

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'threadboard.db'}"

# Profiles that run behind TLS. Secure cookies and HTTPS redirects follow.
_SECURE_PROFILES = frozenset({"dev", "prod"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (as long as DEBUG=true or a
    JWT_SECRET is exported).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    active_profile: str = "local"
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:8080", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel. The validator either
    # generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_expiration_ms: int = 86_400_000

    # Signs the short-lived OAuth state session cookie. Empty means derive a
    # separate key from jwt_secret; the token key itself never signs it.
    session_secret: str = ""

    # ------------------------------------------------------------------
    # OAuth providers (empty string means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    naver_client_id: str = ""
    naver_client_secret: str = ""

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    seed_boards: bool = True
    write_rate_limit: str = "30/minute"

    @property
    def session_signing_key(self) -> str:
        """Key for SessionMiddleware: SESSION_SECRET, or an HMAC of jwt_secret."""
        if self.session_secret:
            return self.session_secret
        return hmac.new(self.jwt_secret.encode("utf-8"), b"threadboard.session", hashlib.sha256).hexdigest()

    @property
    def secure_cookies(self) -> bool:
        """True when the active profile is served over HTTPS."""
        return self.active_profile in _SECURE_PROFILES

    @property
    def jwt_expiration_seconds(self) -> int:
        return self.jwt_expiration_ms // 1000

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_settings(self) -> "Settings":
        """Enforce the signing secret policy and a positive TTL.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Issued tokens will not survive a restart.

        Any other mode: refuse to start without JWT_SECRET.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_urlsafe(MIN_SECRET_BYTES)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes for HS512.")
        if self.jwt_expiration_ms <= 0:
            raise ValueError("JWT_EXPIRATION_MS must be a positive number of milliseconds.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
