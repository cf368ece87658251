"""
services/session_service.py — Session lifecycle over access + refresh tokens.

One conceptual session exists per (user, device):

    Anonymous ──issue──▶ Authenticated ──access expires──▶ AccessExpiredRefreshValid
        ▲                    │   ▲                                  │
        │                    │   └──────── explicit_refresh ────────┘
        └────── revoke ──────┘             (rotates the refresh token)

Operations:
  issue(user_id)          signup / signin: new access cookie + stored refresh token
  silent_refresh()        every request: verify access cookie, re-issue when
                          close to expiry; anonymous on any failure
  explicit_refresh()      exchange the refresh cookie for a new pair
  revoke()                signout: drop this device's refresh record, clear cookies
  revoke_all_for_user()   account deletion: drop every refresh record of the user

Token design:
  - Access token: JWT (TokenCodec), cookie expiry = the token's own exp claim.
  - Refresh token: random value sent to the client once; only its SHA-256
    digest is stored. Single use: explicit_refresh deletes the old record
    before issuing a new one.
  - At most `max_sessions` refresh records per user; issuing evicts the oldest.

Rotation race: two concurrent refreshes with the same cookie both find the
record, but only one DELETE affects a row (token_hash is UNIQUE and the
delete runs in the request transaction). The other gets InvalidRefreshToken.

Layer rules:
  - No Flask imports. Collaborators and the clock are injected.
  - Commits are the route's responsibility — the store only flushes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from backend.app.clock import Clock, SystemClock
from backend.app.errors import InvalidRefreshToken, MissingRefreshToken, RefreshTokenExpired
from backend.app.middleware.cookie_transport import CookieTransport
from backend.app.services.refresh_token_store import RefreshTokenStore
from backend.app.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated user attached to a request."""

    user_id: str


class SessionService:

    def __init__(
            self,
            codec: TokenCodec,
            store: RefreshTokenStore,
            cookies: CookieTransport,
            clock: Clock | None = None,
            refresh_ttl: int = 604800,
            max_sessions: int = 2,
    ) -> None:
        self._codec = codec
        self._store = store
        self._cookies = cookies
        self._clock = clock or SystemClock()
        self._refresh_ttl = refresh_ttl
        self._max_sessions = max_sessions

    def _now(self, now: int | None) -> int:
        return self._clock.now() if now is None else now

    # ── Public operations ──────────────────────────────────────────────────

    def issue(self, user_id: str, now: int | None = None) -> Identity:
        """Starts a session for `user_id` (signup / signin)."""
        current = self._now(now)
        self._set_access_cookie(self._codec.create(user_id, current), current)
        self._issue_refresh_token(user_id, current)
        logger.info("Session issued for user %s", user_id)
        return Identity(user_id=user_id)

    def silent_refresh(self, now: int | None = None) -> Identity | None:
        """
        Verifies the access cookie and returns its Identity, or None.

        Never raises for a bad token: a missing, tampered or expired cookie
        simply leaves the request anonymous. When the token is inside the
        renewal window a fresh one replaces the cookie; otherwise the
        cookies are left untouched.
        """
        current = self._now(now)
        payload = self._codec.verify(self._cookies.get_access_token(), current)
        if payload is None:
            return None

        if self._codec.should_refresh(payload, current):
            self._set_access_cookie(self._codec.refresh(payload, current), current)
            logger.info("Access token silently re-issued for user %s", payload.user_id)

        return Identity(user_id=payload.user_id)

    def explicit_refresh(self, now: int | None = None) -> Identity:
        """
        Exchanges the refresh cookie for a new access token and a new
        refresh token. The presented refresh token is consumed.

        Raises:
          MissingRefreshToken  — no refresh cookie
          InvalidRefreshToken  — unknown token, or lost a concurrent rotation
          RefreshTokenExpired  — record found but expired; it is deleted first
        """
        current = self._now(now)
        raw_token = self._cookies.get_refresh_token()
        if not raw_token:
            raise MissingRefreshToken()

        token_hash = self._codec.hash_refresh_token(raw_token)
        record = self._store.get_by_hash(token_hash)
        if record is None:
            raise InvalidRefreshToken()

        user_id = str(record.user_id)

        if record.expires_at < current:
            self._store.delete_by_hash(token_hash)
            logger.info("Expired refresh token presented and revoked for user %s", user_id)
            raise RefreshTokenExpired()

        if self._store.delete_by_hash(token_hash) != 1:
            logger.warning("Refresh token for user %s was rotated concurrently", user_id)
            raise InvalidRefreshToken()

        self._set_access_cookie(self._codec.create(user_id, current), current)
        self._issue_refresh_token(user_id, current)
        logger.info("Refresh token rotated for user %s", user_id)
        return Identity(user_id=user_id)

    def revoke(self) -> None:
        """
        Ends this device's session. Idempotent: a missing refresh cookie or
        an unknown token is not an error, and both cookies are always cleared.
        """
        raw_token = self._cookies.get_refresh_token()
        if raw_token:
            deleted = self._store.delete_by_hash(self._codec.hash_refresh_token(raw_token))
            logger.info("Signout revoked %d refresh token(s)", deleted)

        self._cookies.clear_access_token()
        self._cookies.clear_refresh_token()

    def revoke_all_for_user(self, user_id: str) -> int:
        """Deletes every refresh record of `user_id`. Used by account deletion."""
        deleted = self._store.delete_all_for_user(user_id)
        logger.info("Revoked %d refresh token(s) for user %s", deleted, user_id)
        return deleted

    # ── Private helpers ────────────────────────────────────────────────────

    def _set_access_cookie(self, token: str, now: int) -> None:
        # Cookie lifetime comes from the token itself.
        payload = self._codec.decode_strict(token, now)
        self._cookies.set_access_token(token, payload.expires_at)

    def _issue_refresh_token(self, user_id: str, now: int) -> None:
        self._store.cleanup_expired(user_id, now)
        self._enforce_session_limit(user_id)

        raw_token = self._codec.create_refresh_token()
        expires_at = now + self._refresh_ttl
        self._store.create(user_id, self._codec.hash_refresh_token(raw_token), expires_at)
        self._cookies.set_refresh_token(raw_token, expires_at)

    def _enforce_session_limit(self, user_id: str) -> None:
        """
        Keeps the newest (max_sessions - 1) records so that the one about to
        be created brings the user to at most max_sessions. 0 = unlimited.
        """
        if self._max_sessions <= 0:
            return

        keep_count = self._max_sessions - 1
        stale_ids = self._store.get_token_ids_for_user(user_id)[keep_count:]
        if stale_ids:
            self._store.delete_tokens(stale_ids)
            logger.info(
                "Session limit reached for user %s; evicted %d refresh token(s)",
                user_id,
                len(stale_ids),
            )
