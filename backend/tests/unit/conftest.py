"""
tests/unit/conftest.py — In-memory collaborators for the session layer.

Unit test constraints:
  - No database, no Flask application context.
  - Time is a FixedClock the test moves by hand.
  - RefreshTokenStore is replaced by InMemoryRefreshTokenStore, which keeps
    the same method names and return values (row counts).
  - The cookie jar is a plain dict that records every set/delete.
"""

from __future__ import annotations

import itertools
from types import SimpleNamespace

import pytest

from backend.app.middleware.cookie_transport import CookieTransport
from backend.app.services.session_service import SessionService
from backend.app.services.token_codec import TokenCodec

T0 = 1_700_000_000
SECRET = "unit-test-secret-key-with-enough-length"


class FixedClock:

    def __init__(self, now: int = T0) -> None:
        self.current = now

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class DictCookieJar:
    """Cookie jar backed by a dict; `writes` logs every mutation in order."""

    def __init__(self, initial: dict | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})
        self.expires: dict[str, int] = {}
        self.writes: list[tuple] = []

    def get(self, name: str) -> str | None:
        return self.values.get(name) or None

    def set(self, name: str, value: str, expires: int) -> None:
        self.values[name] = value
        self.expires[name] = expires
        self.writes.append(("set", name, value, expires))

    def delete(self, name: str) -> None:
        self.values.pop(name, None)
        self.expires.pop(name, None)
        self.writes.append(("delete", name))


class InMemoryRefreshTokenStore:

    def __init__(self) -> None:
        self.records: dict[str, SimpleNamespace] = {}
        self._ids = itertools.count(1)

    def create(self, user_id: str, token_hash: str, expires_at: int):
        record = SimpleNamespace(
            id=next(self._ids),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        self.records[token_hash] = record
        return record

    def get_by_hash(self, token_hash: str):
        return self.records.get(token_hash)

    def get_token_ids_for_user(self, user_id: str) -> list[int]:
        return sorted(
            (r.id for r in self.records.values() if r.user_id == user_id),
            reverse=True,
        )

    def delete_by_hash(self, token_hash: str) -> int:
        return 1 if self.records.pop(token_hash, None) is not None else 0

    def delete_all_for_user(self, user_id: str) -> int:
        return self._delete_where(lambda r: r.user_id == user_id)

    def delete_tokens(self, ids: list[int]) -> int:
        wanted = set(ids)
        return self._delete_where(lambda r: r.id in wanted)

    def cleanup_expired(self, user_id: str, now: int) -> int:
        return self._delete_where(lambda r: r.user_id == user_id and r.expires_at < now)

    def for_user(self, user_id: str) -> list[SimpleNamespace]:
        return [r for r in self.records.values() if r.user_id == user_id]

    def _delete_where(self, predicate) -> int:
        doomed = [h for h, r in self.records.items() if predicate(r)]
        for token_hash in doomed:
            del self.records[token_hash]
        return len(doomed)


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def codec(clock):
    return TokenCodec(SECRET, access_ttl=900, refresh_threshold=300, clock=clock)


@pytest.fixture
def store():
    return InMemoryRefreshTokenStore()


@pytest.fixture
def jar():
    return DictCookieJar()


@pytest.fixture
def make_service(codec, store, clock):
    """Builds a SessionService over the shared codec/store/clock for any jar (one per device)."""

    def _make(jar: DictCookieJar | None = None, max_sessions: int = 2) -> SessionService:
        return SessionService(
            codec=codec,
            store=store,
            cookies=CookieTransport(jar if jar is not None else DictCookieJar()),
            clock=clock,
            refresh_ttl=604800,
            max_sessions=max_sessions,
        )

    return _make


@pytest.fixture
def service(make_service, jar):
    return make_service(jar)


@pytest.fixture
def new_jar():
    """Factory for additional devices' cookie jars."""
    return DictCookieJar
