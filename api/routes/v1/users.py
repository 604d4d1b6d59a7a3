"""
api/routes/v1/users.py -- User account management endpoints.

Routes:
  POST   /api/v1/users            -- create user (admin only)
  GET    /api/v1/users            -- list active users (admin only)
  GET    /api/v1/users/{user_id}  -- user detail (any authenticated caller)
  PATCH  /api/v1/users/{user_id}  -- update username/email (self or admin); role (admin only)
  DELETE /api/v1/users/{user_id}  -- soft delete (admin only)

Usernames are unique and double as the OAuth match key, so a rename that
collides with another account (deleted ones included) is a 409.

Changes take effect in tokens issued afterwards. Tokens already issued keep
the claims they were minted with until they expire.
"""

from __future__ import annotations

import dataclasses

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, write_limit
from api.models import UserCreate, UserPatch, UserResponse
from auth.dependencies import get_current_principal, require_admin
from auth.models import Principal, User
from auth.store import UserStore
from auth.tokens import hash_password

router = APIRouter()


def _get_user_or_404(store: UserStore, user_id: int) -> User:
    user = store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


def _conflict() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": "conflict", "message": "A user with that username already exists."},
    )


@limiter.limit(write_limit)
@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Create an account. Admin only.

    Admins can pre-create an account whose username matches the display name
    the user will log in with; the first OAuth login then adopts it.
    """
    user_store: UserStore = request.app.state.user_store
    new_user = User(
        username=body.username,
        email=body.email,
        role=body.role,
        hashed_password=hash_password(body.password) if body.password else None,
    )
    try:
        created = user_store.save(new_user)
    except IntegrityError as exc:
        raise _conflict() from exc
    return UserResponse.from_user(created)


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, principal: Principal = Depends(require_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return UserResponse.from_user(_get_user_or_404(user_store, user_id))


@limiter.limit(write_limit)
@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Update an account. Callers may edit themselves; admins may edit anyone.

    Role changes are admin only, and an admin cannot change their own role
    (no way back without database access).
    """
    if principal.user_id != user_id and not principal.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You can only update your own account."},
        )
    if body.role is not None:
        if not principal.is_admin:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Admin access required to change roles."},
            )
        if principal.user_id == user_id:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_role_change", "message": "You cannot change your own role."},
            )

    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    user_store: UserStore = request.app.state.user_store
    target = _get_user_or_404(user_store, user_id)
    try:
        updated = user_store.save(dataclasses.replace(target, **updates))
    except IntegrityError as exc:
        raise _conflict() from exc
    if updated is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(updated)


@limiter.limit(write_limit)
@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(require_admin),
) -> Response:
    """Soft-delete an account. Admin only; admins cannot delete themselves."""
    if principal.user_id == user_id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    user_store: UserStore = request.app.state.user_store
    if not user_store.delete_logical(user_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return Response(status_code=204)
