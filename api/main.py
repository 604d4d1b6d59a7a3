"""
api/main.py -- FastAPI application entry point for Threadboard.

Exposes boards, replies and user accounts over HTTP. Sessions are stateless
HS512 tokens carried in the "jwt" cookie or an Authorization: Bearer header.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. HTTPSRedirectMiddleware -- dev/prod profiles only
  2. TrustedHostMiddleware   -- rejects requests with unexpected Host headers
  3. CORSMiddleware          -- adds CORS headers for allowed browser origins
  4. SlowAPIMiddleware       -- enforces per-route rate limits from api.limiter
  5. SessionMiddleware       -- authlib keeps OAuth state here
  6. log_requests            -- one log line per request
  7. request_gate            -- installs request.state.principal

Lifespan handles startup (stores, token codec, OAuth registry, seed data) and
shutdown (close DB connections) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.httpsredirect import HTTPSRedirectMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.boards import router as boards_router
from api.routes.v1.replies import router as replies_router
from api.routes.v1.users import router as users_router
from auth.dependencies import get_current_principal
from auth.gate import request_gate
from auth.models import Principal
from auth.oauth import build_oauth_registry
from auth.provisioning import UserProvisioner
from auth.store import UserStore
from auth.tokens import TokenCodec
from board.seed import seed_boards
from board.store import BoardStore
from core.config import Settings, get_settings
from core.database import check_db_connected

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("threadboard.api")

# Settings are read once at import; a bad JWT_SECRET stops the process here.
settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Stores first -- the provisioner and the seed step need them.
      2. Token codec and OAuth registry -- built from the same settings.
      3. Seed data last, only when the board table is empty.
    """
    logger.info("Threadboard API starting up (profile=%s)", settings.active_profile)
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.board_store = BoardStore(settings.database_url)
    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.oauth = build_oauth_registry(settings)
    app.state.provisioner = UserProvisioner(app.state.user_store)
    logger.info("Auth initialized (%d active users)", app.state.user_store.count())
    if settings.seed_boards:
        seed_boards(app.state.board_store)

    yield

    app.state.board_store.close()
    app.state.user_store.close()
    logger.info("Threadboard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Threadboard API",
    description="Discussion boards with threaded replies and social login.",
    version=VERSION,
    lifespan=lifespan,
    # Disable built-in /docs and /redoc so we can add auth protection.
    # Auth-protected equivalents are registered below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette builds the stack so the LAST middleware added is the OUTERMOST.
# Registration below therefore runs innermost first: request_gate, then
# log_requests, Session, SlowAPI, CORS, TrustedHost, and HTTPSRedirect last.
# ---------------------------------------------------------------------------

app.middleware("http")(request_gate)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# SessionMiddleware is required by authlib to store the OAuth state value
# between the authorization redirect and the callback. It carries no identity;
# the session token lives in the jwt cookie. It is signed with its own key.
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_signing_key,
    https_only=settings.secure_cookies,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


def install_channel_security(target: FastAPI, cfg: Settings) -> None:
    """Redirect plain-http requests to https for the profiles served over TLS.

    Added last so it is the outermost middleware.
    """
    if cfg.secure_cookies:
        target.add_middleware(HTTPSRedirectMiddleware)


install_channel_security(app, settings)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(boards_router, prefix="/api/v1", tags=["Boards"])
app.include_router(replies_router, prefix="/api/v1", tags=["Replies"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
# Web UI router is mounted by asgi.py, not here.
# api/ and web/ are independent layers -- only the top-level asgi.py imports both.


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(principal: Principal = Depends(get_current_principal)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Threadboard API")


@app.get("/redoc", include_in_schema=False)
async def redoc(principal: Principal = Depends(get_current_principal)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="Threadboard API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc.detail),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already a structured dict, use it directly as the error field
    rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# Public, and not rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    db_ok = check_db_connected(request.app.state.user_store.engine)
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        version=VERSION,
        components={"database": "ok" if db_ok else "unavailable"},
    )
