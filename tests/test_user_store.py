"""
tests/test_user_store.py -- UserStore repository: save, lookups, soft delete.
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import ADMIN_ROLE, DEFAULT_ROLE, User
from auth.store import UserStore


def test_insert_assigns_id_and_timestamps(user_store: UserStore) -> None:
    user = User(username="alice", email="a@x.com")
    saved = user_store.save(user)
    assert saved.id is not None
    assert saved.role == DEFAULT_ROLE
    assert saved.created_at and saved.updated_at
    assert user.id is None  # caller's object untouched


def test_update_keeps_id_and_created_at(user_store: UserStore) -> None:
    saved = user_store.save(User(username="alice", email="a@x.com"))
    saved.email = "alice@new.com"
    saved.role = ADMIN_ROLE
    updated = user_store.save(saved)
    assert updated.id == saved.id
    assert updated.created_at == saved.created_at
    assert updated.email == "alice@new.com"
    assert updated.role == ADMIN_ROLE


def test_find_by_match_key_is_exact(user_store: UserStore) -> None:
    user_store.save(User(username="Bob"))
    assert user_store.find_by_match_key("Bob") is not None
    assert user_store.find_by_match_key("bob") is None
    assert user_store.find_by_match_key("Bo") is None


def test_duplicate_username_raises(user_store: UserStore) -> None:
    user_store.save(User(username="alice"))
    with pytest.raises(IntegrityError):
        user_store.save(User(username="alice"))


def test_soft_delete_hides_user_everywhere(user_store: UserStore) -> None:
    kept = user_store.save(User(username="kept"))
    gone = user_store.save(User(username="gone"))

    assert user_store.delete_logical(gone.id) is True

    assert user_store.get_by_id(gone.id) is None
    assert user_store.find_by_match_key("gone") is None
    assert [u.id for u in user_store.list_users()] == [kept.id]
    assert user_store.count() == 1


def test_soft_delete_twice_reports_false(user_store: UserStore) -> None:
    gone = user_store.save(User(username="gone"))
    assert user_store.delete_logical(gone.id) is True
    assert user_store.delete_logical(gone.id) is False
    assert user_store.delete_logical(12345) is False


def test_deleted_username_stays_reserved(user_store: UserStore) -> None:
    gone = user_store.save(User(username="gone"))
    user_store.delete_logical(gone.id)
    with pytest.raises(IntegrityError):
        user_store.save(User(username="gone"))


def test_update_of_deleted_user_returns_none(user_store: UserStore) -> None:
    """A row deleted after it was read is not written, and not handed back as if it were."""
    stale = user_store.save(User(username="alice", email="a@x.com"))
    user_store.delete_logical(stale.id)

    stale.email = "late@x.com"
    assert user_store.save(stale) is None
    assert user_store.get_by_id(stale.id) is None
