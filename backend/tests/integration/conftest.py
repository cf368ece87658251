"""
tests/integration/conftest.py — Fixtures for all integration tests.

Design:
  - Tests run against in-memory SQLite by default, or the database named by
    TEST_DATABASE_URL (e.g. a PostgreSQL tasknest_test).
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - Auth travels in cookies: the Flask test client keeps its own cookie jar,
    so one client = one device. Use `new_client` for a second device.

Helper fixtures return callables so tests can pass arbitrary arguments:
  - signup(client, username, ...)   → response data (user dict)
  - signin(client, username, ...)   → response data (user dict)
  - add_task(client, title, ...)    → task dict
  - shift_clock(seconds)            → moves the app clock forward
"""

from __future__ import annotations

import time

import pytest
from sqlalchemy import text

from backend.app import create_app
from backend.app.extensions import db as _db


class ShiftableClock:
    """Wall-clock time plus an offset, so cookie expiries stay in the future for the client."""

    def __init__(self) -> None:
        self.offset = 0

    def now(self) -> int:
        return int(time.time()) + self.offset


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before users."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.execute(text("DELETE FROM refresh_tokens"))
        _db.session.execute(text("DELETE FROM tasks"))
        _db.session.execute(text("DELETE FROM users"))
        _db.session.commit()


@pytest.fixture
def clock(app):
    """Installs a ShiftableClock on the app for one test."""
    original = app.extensions["clock"]
    shiftable = ShiftableClock()
    app.extensions["clock"] = shiftable
    yield shiftable
    app.extensions["clock"] = original


@pytest.fixture
def shift_clock(clock):
    def _shift(seconds: int) -> None:
        clock.offset += seconds

    return _shift


# ═══════════════════════════════════════════════════════════════════════════
# Client fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def new_client(app):
    """Factory for extra clients, one per simulated device."""
    return app.test_client


# ═══════════════════════════════════════════════════════════════════════════
# Helper fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def signup():
    def _signup(
            client,
            username: str = "alice",
            email: str | None = None,
            password: str = "Password1",
    ) -> dict:
        if email is None:
            email = f"{username}@test.com"
        resp = client.post(
            "/v1/users/signup",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, f"signup failed: {resp.get_json()}"
        return resp.get_json()["data"]

    return _signup


@pytest.fixture
def signin():
    def _signin(client, username: str, password: str = "Password1") -> dict:
        resp = client.post(
            "/v1/users/signin",
            json={"username": username, "password": password},
        )
        assert resp.status_code == 200, f"signin failed: {resp.get_json()}"
        return resp.get_json()["data"]

    return _signin


@pytest.fixture
def add_task():
    def _add_task(client, title: str = "Buy milk", description: str = "") -> dict:
        resp = client.post(
            "/v1/tasks/add",
            json={"title": title, "description": description},
        )
        assert resp.status_code == 201, f"add_task failed: {resp.get_json()}"
        return resp.get_json()["data"]

    return _add_task


@pytest.fixture
def refresh_token_count(app):
    def _count(user_id: str) -> int:
        with app.app_context():
            return _db.session.execute(
                text("SELECT COUNT(*) FROM refresh_tokens WHERE user_id = :uid"),
                {"uid": user_id},
            ).scalar_one()

    return _count
