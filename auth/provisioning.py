"""
auth/provisioning.py -- Turn a successful OAuth login into a local user.

Flow (one call per login attempt, before any session token exists):
  1. Normalize the provider payload (auth.oauth.to_external_profile).
     Unknown provider -> None, the login is aborted.
  2. Look up the active user whose username equals the profile's display name.
  3. Missing -> create with the default role. Present -> refresh username and
     email in place; the stored role is kept.
  4. Return a ProvisionedUser. The callback then calls issue_token() and sets
     the cookie.

Matching is by display name, not (provider, subject). Two unrelated people
with the same name resolve to the same account. provider/subject are
recorded on the row for a later move to composite-key matching.

Concurrency: users.username is UNIQUE. When two first logins for the same
name race, the losing INSERT raises IntegrityError; we re-fetch the winner's
row and continue as an update. Any other storage error propagates.

Layer rule: no imports from api/, web/, or board/.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping

from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_ROLE, ExternalProfile, ProvisionedUser, User
from auth.oauth import to_external_profile
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("threadboard.auth.provisioning")


class UserProvisioner:
    """Look up or create the local account behind an external profile."""

    def __init__(self, store: UserStore) -> None:
        self._store = store

    def load_user(self, provider: str, attributes: Mapping | None) -> ProvisionedUser | None:
        """Normalize a raw provider payload and provision it.

        Returns None when the provider is not recognised.
        """
        return self.provision(to_external_profile(provider, attributes))

    def provision(self, profile: ExternalProfile | None) -> ProvisionedUser | None:
        """Create or refresh the user for this profile.

        Raises ValueError when the profile has no display name, or when the
        name is held by a soft-deleted account. Storage errors propagate.
        """
        if profile is None:
            return None
        if not profile.name:
            raise ValueError(f"{profile.provider} OAuth: profile has no display name")

        existing = self._store.find_by_match_key(profile.name)
        if existing is None:
            try:
                user = self._store.save(
                    User(
                        username=profile.name,
                        email=profile.email,
                        role=DEFAULT_ROLE,
                        oauth_provider=profile.provider,
                        oauth_subject=profile.provider_id,
                    )
                )
                logger.info("Created user id=%d from %s login", user.id, profile.provider)
            except IntegrityError:
                existing = self._store.find_by_match_key(profile.name)
                if existing is None:
                    raise ValueError(
                        f"{profile.provider} OAuth: username is held by a deleted account"
                    ) from None
                logger.info("Lost first-login race for user id=%d; updating instead", existing.id)
                user = self._refresh(existing, profile)
        else:
            user = self._refresh(existing, profile)

        return ProvisionedUser(profile=profile, role=user.role, user_id=user.id)

    def _refresh(self, user: User, profile: ExternalProfile) -> User:
        updated = self._store.save(
            dataclasses.replace(
                user,
                username=profile.name,
                email=profile.email,
                oauth_provider=profile.provider,
                oauth_subject=profile.provider_id,
            )
        )
        if updated is None:
            raise ValueError(f"{profile.provider} OAuth: account id={user.id} was deleted during login")
        logger.info("Updated user id=%d from %s login", updated.id, profile.provider)
        return updated

    def issue_token(self, codec: TokenCodec, user_id: int) -> str:
        """Mint a session token from the stored user's current fields.

        Raises ValueError if the user does not exist (or was deleted).
        """
        user = self._store.get_by_id(user_id)
        if user is None:
            raise ValueError(f"User not found with id: {user_id}")
        return codec.issue(user.id, user.username, user.email, user.role)
