"""
tests/conftest.py -- Shared test fixtures for Threadboard integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + boards
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin token for API integration tests
  - member: a second, non-admin account in the api_client database
  - web_client: TestClient with follow_redirects=False for web route tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any app module import: Settings is
read once, and api/main.py builds its middleware from it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple
from unittest.mock import MagicMock

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET", "threadboard-test-signing-secret-" + "0123456789abcdef" * 4)
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("WRITE_RATE_LIMIT", "1000/minute")
os.environ.setdefault("SEED_BOARDS", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:test_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import ADMIN_ROLE, DEFAULT_ROLE, User
from auth.provisioning import UserProvisioner
from auth.store import UserStore
from auth.tokens import get_token_codec, hash_password
from board.store import BoardStore
from core.config import get_settings


class Account(NamedTuple):
    user_id: int
    username: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def _make_test_stores(db_suffix: str) -> tuple[UserStore, BoardStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    url = memory_url(f"test_threadboard_{db_suffix}")
    return UserStore(db_url=url), BoardStore(db_url=url)


def _patch_lifespan(user_store: UserStore, board_store: BoardStore, oauth=None):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs. The OAuth registry is a MagicMock unless a test
    passes its own, so no request ever leaves the process.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.board_store = board_store
        app.state.token_codec = get_token_codec()
        app.state.oauth = oauth if oauth is not None else MagicMock()
        app.state.provisioner = UserProvisioner(user_store)
        yield

    return test_lifespan


def make_account(store: UserStore, username: str, role: str = DEFAULT_ROLE) -> Account:
    """Save a user and mint a token for it with the process-wide codec."""
    user = store.save(User(username=username, email=f"{username}@example.com", role=role))
    token = get_token_codec().issue(user.id, user.username, user.email, user.role)
    return Account(user_id=user.id, username=user.username, token=token)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for an admin account.

    The TestClient uses the real app with a patched lifespan so tests hit
    real route handlers and middleware but use isolated in-memory stores.
    Each test module gets its own database.
    """
    user_store, board_store = _make_test_stores(f"api_{uuid.uuid4().hex}")
    admin = user_store.save(
        User(
            username="testadmin",
            email="admin@example.com",
            role=ADMIN_ROLE,
            hashed_password=hash_password("testpass123"),
        )
    )
    token = get_token_codec().issue(admin.id, admin.username, admin.email, admin.role)

    app.router.lifespan_context = _patch_lifespan(user_store, board_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    board_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def member(api_client) -> Account:
    """A regular (ROLE_USER) account in the api_client database."""
    client, _token, _uid = api_client
    return make_account(client.app.state.user_store, "testmember")


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, str], None, None]:
    """Yield (client, token) for web route integration tests.

    follow_redirects=False is essential: we assert on redirect locations,
    which are invisible once the client follows the redirect.
    """
    user_store, board_store = _make_test_stores(f"web_{uuid.uuid4().hex}")
    account = make_account(user_store, "webuser")

    app.router.lifespan_context = _patch_lifespan(user_store, board_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, account.token

    board_store.close()
    user_store.close()


@pytest.fixture()
def user_store() -> Generator[UserStore, None, None]:
    """A fresh UserStore per test (unique shared-memory database)."""
    store = UserStore(memory_url(f"users_{uuid.uuid4().hex}"))
    yield store
    store.close()


@pytest.fixture()
def board_store() -> Generator[BoardStore, None, None]:
    store = BoardStore(memory_url(f"boards_{uuid.uuid4().hex}"))
    yield store
    store.close()
