"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the shape.

  User             -- durable identity row (auth/store.py).
  Principal        -- who is calling; built per request from verified claims.
  ClaimSet         -- decoded session token payload.
  ExternalProfile  -- normalized identity-provider payload, one login only.
  ProvisionedUser  -- result of an OAuth login handed back to the callback.

Layer rule: no imports from api/, web/, or board/.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_ROLE = "ROLE_USER"
ADMIN_ROLE = "ROLE_ADMIN"


@dataclass
class User:
    """A registered account.

    username is the display name and doubles as the OAuth match key (see
    auth/provisioning.py). hashed_password is None for OAuth-only accounts.
    oauth_provider / oauth_subject record where the account last logged in
    from; they are informational and not used for lookup.
    """

    username: str
    email: str | None = None
    role: str = DEFAULT_ROLE
    id: int | None = None
    hashed_password: str | None = None
    oauth_provider: str | None = None  # "google", "naver"
    oauth_subject: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    is_deleted: bool = False


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to one request. Never persisted."""

    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class ClaimSet:
    subject: str
    username: str
    email: str | None
    role: str
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds


@dataclass(frozen=True)
class ExternalProfile:
    """A third-party identity, normalized. Any attribute may be None when the
    provider omitted it."""

    provider: str
    provider_id: str | None
    email: str | None
    name: str | None


@dataclass(frozen=True)
class ProvisionedUser:
    """Outcome of provisioning: the profile that logged in, plus the local
    user id and role it resolved to."""

    profile: ExternalProfile
    role: str
    user_id: int

    @property
    def name(self) -> str | None:
        return self.profile.name

    @property
    def attributes(self) -> dict:
        return {
            "name": self.profile.name,
            "email": self.profile.email,
            "provider": self.profile.provider,
            "providerId": self.profile.provider_id,
        }
