"""
auth/dependencies.py -- FastAPI Depends() helpers for authorization.

The Request Gate (auth/gate.py) has already stored the caller on
request.state.principal. These helpers read that value; they never decode
tokens themselves.

get_principal() is the soft variant (returns None when anonymous).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_principal() and raises HTTP 403 if not admin.

Layer rule: no imports from api/, web/, or board/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal


def get_principal(request: Request) -> Principal | None:
    """Return the request's Principal, or None for an anonymous request."""
    return getattr(request.state, "principal", None)


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal


def require_admin(request: Request) -> Principal:
    """Require the admin role. Raises HTTP 401 if anonymous, HTTP 403 if not admin."""
    principal = get_current_principal(request)
    if not principal.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return principal
