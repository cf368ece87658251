"""
services/token_codec.py — Access-token signing/verification and refresh-token material.

Responsibilities:
  - Create HS256 access tokens (PyJWT) for a user id
  - Verify them against signature and expiry, in two variants:
      verify()        → AccessTokenPayload | None  (never raises)
      decode_strict() → AccessTokenPayload         (raises InvalidToken)
  - Sliding-renewal predicate and stateless re-issue for silent refresh
  - Opaque refresh-token values and their deterministic SHA-256 digest

Layer rules:
  - No Flask imports, no DB access, no HTTP status codes.
  - Time comes from the injected Clock; every time-dependent method also
    accepts an explicit `now` (epoch seconds).

Expiry is checked here rather than by PyJWT so that it runs against the
injected clock: a token is expired once `now >= exp`.

Renewal policy: should_refresh() is true when fewer than `refresh_threshold`
seconds remain (defaults: 15 minute tokens, renewed in their last 5 minutes).
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

import jwt

from backend.app.clock import Clock, SystemClock
from backend.app.errors import InvalidToken


@dataclass(frozen=True)
class AccessTokenPayload:
    user_id: str
    issued_at: int
    expires_at: int


class TokenCodec:

    def __init__(
            self,
            secret: str,
            algorithm: str = "HS256",
            access_ttl: int = 900,
            refresh_threshold: int = 300,
            clock: Clock | None = None,
    ) -> None:
        if not secret:
            raise ValueError("JWT secret is not set.")
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_threshold = refresh_threshold
        self._clock = clock or SystemClock()

    def _now(self, now: int | None) -> int:
        return self._clock.now() if now is None else now

    # ── Access tokens ──────────────────────────────────────────────────────

    def create(self, user_id: str, now: int | None = None) -> str:
        """
        Signs a new access token for `user_id`.
        Claims: sub, iat, nbf, exp, jti (random, so two tokens issued in the
        same second still differ).
        """
        issued_at = self._now(now)
        claims = {
            "sub": str(user_id),
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + self.access_ttl,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode_strict(self, token: str, now: int | None = None) -> AccessTokenPayload:
        """Returns the payload or raises InvalidToken."""
        if not token:
            raise InvalidToken("Token is empty.")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # Time-based claims are checked below against the injected clock.
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(str(exc)) from exc

        try:
            user_id = str(claims["sub"])
            issued_at = int(claims["iat"])
            expires_at = int(claims["exp"])
            not_before = int(claims.get("nbf", issued_at))
        except (TypeError, ValueError) as exc:
            raise InvalidToken("Token claims are malformed.") from exc

        current = self._now(now)
        if current >= expires_at:
            raise InvalidToken("Token has expired.")
        if current < not_before:
            raise InvalidToken("Token is not yet valid.")
        if not user_id:
            raise InvalidToken("Token subject is empty.")

        return AccessTokenPayload(
            user_id=user_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: str | None, now: int | None = None) -> AccessTokenPayload | None:
        """Returns the payload, or None for a missing, tampered or expired token."""
        if not token:
            return None
        try:
            return self.decode_strict(token, now)
        except InvalidToken:
            return None

    def should_refresh(self, payload: AccessTokenPayload, now: int | None = None) -> bool:
        return (payload.expires_at - self._now(now)) < self.refresh_threshold

    def refresh(self, payload: AccessTokenPayload, now: int | None = None) -> str:
        """Re-issues a token for the same user with a fresh expiry. No store lookup."""
        return self.create(payload.user_id, now)

    # ── Refresh-token material ─────────────────────────────────────────────

    @staticmethod
    def create_refresh_token() -> str:
        """256 bits of randomness as 64 hex chars (URL-safe)."""
        return secrets.token_hex(32)

    @staticmethod
    def hash_refresh_token(raw_token: str) -> str:
        """SHA-256 hex digest. Deterministic: the digest is the DB lookup key."""
        return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
