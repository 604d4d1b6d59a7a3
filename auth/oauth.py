"""
auth/oauth.py -- Authlib OAuth provider configuration and profile normalization.

Only providers with both client ID and secret configured get registered. The
login page renders a button per entry in get_enabled_providers().

OAuth state (CSRF protection) is handled by authlib via Starlette
SessionMiddleware: the state is stored in the session between the
authorization redirect and the callback.

Supported providers:
  google -- OIDC discovery; profile comes from the id_token userinfo.
  naver  -- static endpoints; profile from GET v1/nid/me, wrapped in "response".

Every provider payload is reduced to an ExternalProfile by to_external_profile().
An unrecognised provider yields None, which aborts the login.

Layer rule: no imports from api/, web/, or board/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from authlib.integrations.starlette_client import OAuth

from auth.models import ExternalProfile
from core.config import Settings, get_settings

logger = logging.getLogger("threadboard.auth.oauth")

_LABELS = {"google": "Google", "naver": "Naver"}


# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def build_oauth_registry(settings: Settings | None = None) -> OAuth:
    """Return an OAuth registry with every configured provider registered."""
    cfg = settings or get_settings()
    oauth = OAuth()

    # Google -- OIDC discovery
    if cfg.google_client_id and cfg.google_client_secret:
        oauth.register(
            name="google",
            client_id=cfg.google_client_id,
            client_secret=cfg.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")

    # Naver -- static endpoints (no discovery document)
    if cfg.naver_client_id and cfg.naver_client_secret:
        oauth.register(
            name="naver",
            client_id=cfg.naver_client_id,
            client_secret=cfg.naver_client_secret,
            access_token_url="https://nid.naver.com/oauth2.0/token",  # noqa: S106 -- URL, not a password
            authorize_url="https://nid.naver.com/oauth2.0/authorize",
            api_base_url="https://openapi.naver.com/",
            client_kwargs={"scope": "name email"},
        )
        logger.info("Naver OAuth provider registered")

    return oauth


def get_enabled_providers(settings: Settings | None = None) -> list[dict]:
    """Return {"name", "label"} for every provider with credentials configured."""
    cfg = settings or get_settings()
    providers: list[dict] = []
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append({"name": "google", "label": _LABELS["google"]})
    if cfg.naver_client_id and cfg.naver_client_secret:
        providers.append({"name": "naver", "label": _LABELS["naver"]})
    return providers


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific payloads
# ---------------------------------------------------------------------------


async def fetch_profile_attributes(client, provider: str, token: dict) -> dict:
    """Return the raw user attributes for a completed code exchange.

    Raises ValueError for a provider this module does not know.
    """
    if provider == "google":
        return dict(token.get("userinfo") or {})
    if provider == "naver":
        resp = await client.get("v1/nid/me", token=token)
        resp.raise_for_status()
        return resp.json()
    raise ValueError(f"Unknown OAuth provider: {provider!r}")


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def to_external_profile(provider: str, attributes: Mapping | None) -> ExternalProfile | None:
    """Normalize a provider payload. Returns None for an unrecognised provider.

    A None or empty payload still produces a profile, with every attribute None.
    """
    attrs: Mapping = attributes or {}
    if provider == "google":
        return ExternalProfile(
            provider="google",
            provider_id=_str_or_none(attrs.get("sub")),
            email=_str_or_none(attrs.get("email")),
            name=_str_or_none(attrs.get("name")),
        )
    if provider == "naver":
        body = attrs.get("response") or {}
        return ExternalProfile(
            provider="naver",
            provider_id=_str_or_none(body.get("id")),
            email=_str_or_none(body.get("email")),
            name=_str_or_none(body.get("name")),
        )
    logger.warning("No profile mapping for OAuth provider %r", provider)
    return None
