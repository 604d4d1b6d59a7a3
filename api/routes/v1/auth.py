"""
api/routes/v1/auth.py -- Session and identity REST endpoints.

Routes:
  GET  /api/v1/auth/me         -- current user info (requires auth)
  POST /api/v1/auth/logout     -- clears the jwt cookie; 200
  GET  /api/v1/auth/providers  -- list enabled OAuth providers (public)

There is no password login endpoint: sessions start from the OAuth callback
in web/routes.py, which sets the jwt cookie.

Logout only clears the cookie. Tokens are stateless, so a copied token stays
valid until its exp claim passes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import MeResponse, OAuthProviderInfo
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.oauth import get_enabled_providers
from auth.store import UserStore
from auth.tokens import clear_auth_cookie

# Auth policy:
# - GET  /api/v1/auth/me:         requires auth (get_current_principal)
# - POST /api/v1/auth/logout:     public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/providers:  public -- the login page renders buttons from it
router = APIRouter()


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the jwt cookie."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty when none are set up."""
    settings = getattr(request.app.state, "settings", None)
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(settings)]


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return the stored record behind the caller's token.

    The token may outlive the account: a user deleted after the token was
    issued gets 401 here.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(principal.user_id)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Account no longer exists."},
        )
    return MeResponse(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        oauth_provider=user.oauth_provider,
    )
