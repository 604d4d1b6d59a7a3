"""
web/routes.py -- Browser-facing routes: login page, OAuth flow, diagnostics.

These routes share app.state with the API routes (same stores, token codec,
OAuth registry) but speak in redirects and HTML instead of JSON.

Route registration order matters. /login/oauth2/code/{provider} is registered
before GET /login so the callback is never shadowed.

Routes:
  GET  /oauth2/authorization/{provider}  -- redirect to the provider
  GET  /login/oauth2/code/{provider}     -- OAuth callback; sets the jwt cookie
  GET  /login                            -- login page with provider buttons
  POST /logout                           -- clear cookie, redirect /login
  GET  /                                 -- /login when anonymous, else the board list
  GET  /check-proto                      -- scheme / forwarded-header report
  GET  /debug-all                        -- the request's principal as JSON

/login and /oauth2/* are on the Request Gate allow-list, so no principal is
ever resolved for them.
"""

import logging
from pathlib import Path

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from httpx import HTTPError

from auth.dependencies import get_principal
from auth.oauth import fetch_profile_attributes, get_enabled_providers
from auth.provisioning import UserProvisioner
from auth.tokens import clear_auth_cookie, set_auth_cookie

logger = logging.getLogger("threadboard.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Whitelist mapping for ?error= query params on /login.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "oauth_failed": "Social login failed. Please try again.",
    "logged_out": "You have been signed out.",
}

_OAUTH_FAILED = "/login?error=oauth_failed"

_FORWARDED_HEADERS = ("host", "x-forwarded-proto", "x-forwarded-host", "x-forwarded-port", "x-forwarded-for")


def _enabled_provider_names(request: Request) -> set[str]:
    settings = getattr(request.app.state, "settings", None)
    return {p["name"] for p in get_enabled_providers(settings)}


# ---------------------------------------------------------------------------
# OAuth -- authorization redirect and callback
# ---------------------------------------------------------------------------


@router.get("/oauth2/authorization/{provider}")
async def oauth_redirect(request: Request, provider: str) -> RedirectResponse:
    """Redirect the browser to the provider's authorization page.

    The provider name is checked against the enabled list first, so a spoofed
    name never reaches the registry.
    """
    if provider not in _enabled_provider_names(request):
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/login/oauth2/code/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish the OAuth login and start a session.

    Flow:
      1. Exchange the authorization code (authlib checks state via the session).
      2. Fetch the provider's profile attributes.
      3. Provision: look up by display name, create or refresh the user.
      4. Issue a session token from the stored user, set the jwt cookie,
         and redirect to "/".

    Provider-side failures redirect to /login?error=oauth_failed. Storage
    errors are not caught here; they reach the generic 500 handler.
    """
    if provider not in _enabled_provider_names(request):
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    client = request.app.state.oauth.create_client(provider)
    provisioner: UserProvisioner = request.app.state.provisioner

    try:
        token = await client.authorize_access_token(request)
        attributes = await fetch_profile_attributes(client, provider, token)
    except (OAuthError, HTTPError):
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    try:
        provisioned = provisioner.load_user(provider, attributes)
    except ValueError as exc:
        logger.warning("OAuth login rejected: %s", exc)
        return RedirectResponse(_OAUTH_FAILED, status_code=302)
    if provisioned is None:
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    session_token = provisioner.issue_token(request.app.state.token_codec, provisioned.user_id)
    logger.info("OAuth login succeeded for user id=%d via %s", provisioned.user_id, provider)

    resp = RedirectResponse("/", status_code=302)
    set_auth_cookie(resp, session_token, getattr(request.app.state, "settings", None))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Login page and logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page with one button per enabled provider."""
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    settings = getattr(request.app.state, "settings", None)
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "error_msg": error_msg,
            "providers": get_enabled_providers(settings),
        },
    )


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the jwt cookie and redirect to the login page."""
    resp = RedirectResponse("/login?error=logged_out", status_code=302)
    clear_auth_cookie(resp)
    return resp


@router.get("/")
def home(request: Request) -> RedirectResponse:
    if get_principal(request) is None:
        return RedirectResponse("/login", status_code=302)
    return RedirectResponse("/api/v1/boards", status_code=302)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@router.get("/check-proto", response_class=PlainTextResponse)
def check_proto(request: Request) -> PlainTextResponse:
    """Report how the request arrived: scheme plus any proxy forwarding headers.

    Used to debug HTTPS termination in front of the app (cookie Secure flag,
    OAuth redirect URIs).
    """
    lines = [f"scheme: {request.url.scheme}"]
    for name in _FORWARDED_HEADERS:
        lines.append(f"{name}: {request.headers.get(name, '-')}")
    return PlainTextResponse("\n".join(lines) + "\n")


@router.get("/debug-all")
def debug_all(request: Request) -> JSONResponse:
    """Describe the principal the Request Gate resolved for this request."""
    principal = get_principal(request)
    if principal is None:
        return JSONResponse({"authenticated": False, "principal": None})
    return JSONResponse(
        {
            "authenticated": True,
            "principal": {
                "user_id": principal.user_id,
                "username": principal.username,
                "role": principal.role,
            },
        }
    )
