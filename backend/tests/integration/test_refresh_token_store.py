"""
tests/integration/test_refresh_token_store.py — RefreshTokenStore against the real schema.

Runs inside an app context with db.session; each test commits nothing and
the autouse clean_tables fixture wipes rows afterwards.
"""

from __future__ import annotations

import pytest

from backend.app.errors import StoreError
from backend.app.extensions import db
from backend.app.services import user_service
from backend.app.services.refresh_token_store import RefreshTokenStore

NOW = 1_700_000_000


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.rollback()


@pytest.fixture
def store(ctx):
    return RefreshTokenStore(db.session)


@pytest.fixture
def user_id(ctx):
    user = user_service.register_user("alice", "alice@test.com", "Password1", db.session, rounds=4)
    return user.id


def test_create_and_get_by_hash(store, user_id):
    store.create(user_id, "a" * 64, NOW + 10)

    record = store.get_by_hash("a" * 64)

    assert record.user_id == user_id
    assert record.expires_at == NOW + 10
    assert store.get_by_hash("b" * 64) is None


def test_delete_by_hash_is_idempotent(store, user_id):
    store.create(user_id, "a" * 64, NOW + 10)

    assert store.delete_by_hash("a" * 64) == 1
    assert store.delete_by_hash("a" * 64) == 0


def test_duplicate_hash_is_rejected(store, user_id):
    store.create(user_id, "a" * 64, NOW + 10)

    with pytest.raises(StoreError):
        store.create(user_id, "a" * 64, NOW + 20)


def test_ids_are_newest_first(store, user_id):
    first = store.create(user_id, "a" * 64, NOW)
    second = store.create(user_id, "b" * 64, NOW)

    assert store.get_token_ids_for_user(user_id) == [second.id, first.id]


def test_delete_tokens_and_delete_all(store, user_id):
    first = store.create(user_id, "a" * 64, NOW)
    store.create(user_id, "b" * 64, NOW)
    store.create(user_id, "c" * 64, NOW)

    assert store.delete_tokens([first.id]) == 1
    assert store.delete_all_for_user(user_id) == 2
    assert store.delete_all_for_user(user_id) == 0


def test_cleanup_expired_only_removes_past_records_of_that_user(store, user_id):
    other = user_service.register_user("bob", "bob@test.com", "Password1", db.session, rounds=4)
    store.create(user_id, "a" * 64, NOW - 1)
    store.create(user_id, "b" * 64, NOW)
    store.create(other.id, "c" * 64, NOW - 1)

    assert store.cleanup_expired(user_id, NOW) == 1

    assert store.get_by_hash("a" * 64) is None
    assert store.get_by_hash("b" * 64) is not None
    assert store.get_by_hash("c" * 64) is not None
