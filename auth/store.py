"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as board/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and provisioning code never touches SQL directly.

Soft delete is explicit: every read in this module filters is_deleted = 0,
and delete_logical() flips the flag instead of removing the row. Deleted
rows stay in storage and keep their username reserved.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(username) backs the OAuth match key. Two concurrent first logins
  for the same display name race on INSERT; the loser sees IntegrityError
  and re-fetches (see auth/provisioning.py).

Layer rule: no imports from api/, web/, or board/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import DEFAULT_ROLE, User
from core.config import get_settings
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255)),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("oauth_provider", String(30)),  # "google", "naver"
    Column("oauth_subject", Text),  # provider's user ID, informational
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
)

_active = _users.c.is_deleted == 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.save(User(username="alice", email="a@x.com"))
        same = store.find_by_match_key("alice")
        store.delete_logical(user.id)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count(self) -> int:
        """Return the number of active users."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users).where(_active)).scalar()
        return result or 0

    def get_by_id(self, user_id: int) -> User | None:
        """Look up an active user by primary key. Returns None if missing or deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where((_users.c.id == user_id) & _active)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_match_key(self, username: str) -> User | None:
        """Look up an active user by exact username (the OAuth match key)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where((_users.c.username == username) & _active)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all active users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_active).order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, user: User) -> User | None:
        """Insert a new user (id is None) or update an existing one.

        Returns the stored record with id and timestamps filled in, or None
        when an update finds no active row (deleted since it was read). The
        caller's object is not mutated.

        Raises sqlalchemy.exc.IntegrityError when the username is already
        taken, including by a soft-deleted row.
        """
        now = _now_iso()
        values = {
            "username": user.username,
            "email": user.email,
            "role": user.role or DEFAULT_ROLE,
            "hashed_password": user.hashed_password,
            "oauth_provider": user.oauth_provider,
            "oauth_subject": user.oauth_subject,
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            if user.id is None:
                result = conn.execute(_users.insert().values(created_at=now, is_deleted=0, **values))
                user_id = result.inserted_primary_key[0]
            else:
                result = conn.execute(_users.update().where((_users.c.id == user.id) & _active).values(**values))
                if result.rowcount == 0:
                    return None
                user_id = user.id
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def delete_logical(self, user_id: int) -> bool:
        """Soft-delete a user. Returns True if an active row was flagged."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where((_users.c.id == user_id) & _active).values(is_deleted=1, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        role=row.role,
        hashed_password=row.hashed_password,
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=bool(row.is_deleted),
    )
