"""
services/refresh_token_store.py — Persistence for refresh-token records.

Rows hold (user_id, token_hash, expires_at). Only the SHA-256 digest of a
refresh token ever reaches this layer; hashing is TokenCodec's job.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
  - Any SQLAlchemyError is re-raised as StoreError. This layer does not
    interpret SQL error codes; it passes success + row counts upward.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.errors import StoreError
from backend.app.models.refresh_token import RefreshToken


class RefreshTokenStore:

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, user_id: str, token_hash: str, expires_at: int) -> RefreshToken:
        """Inserts one record. A user may hold several (one per device)."""
        record = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        try:
            self._session.add(record)
            self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to store refresh token.") from exc
        return record

    def get_by_hash(self, token_hash: str) -> RefreshToken | None:
        try:
            return self._session.execute(
                select(RefreshToken).where(RefreshToken.token_hash == token_hash)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to look up refresh token.") from exc

    def get_token_ids_for_user(self, user_id: str) -> list[int]:
        """Ids of the user's records, newest first."""
        try:
            rows = self._session.execute(
                select(RefreshToken.id)
                .where(RefreshToken.user_id == user_id)
                .order_by(RefreshToken.id.desc())
            ).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list refresh tokens.") from exc
        return list(rows)

    def delete_by_hash(self, token_hash: str) -> int:
        """Deletes the record with this hash. Returns 0 when there was none."""
        return self._delete(
            delete(RefreshToken).where(RefreshToken.token_hash == token_hash),
            "Failed to delete refresh token.",
        )

    def delete_all_for_user(self, user_id: str) -> int:
        return self._delete(
            delete(RefreshToken).where(RefreshToken.user_id == user_id),
            "Failed to delete refresh tokens for user.",
        )

    def delete_tokens(self, ids: list[int]) -> int:
        if not ids:
            return 0
        return self._delete(
            delete(RefreshToken).where(RefreshToken.id.in_(ids)),
            "Failed to delete refresh tokens.",
        )

    def cleanup_expired(self, user_id: str, now: int) -> int:
        """Deletes this user's records with expires_at < now."""
        return self._delete(
            delete(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.expires_at < now,
            ),
            "Failed to clean up expired refresh tokens.",
        )

    # ── Private helpers ────────────────────────────────────────────────────

    def _delete(self, stmt, message: str) -> int:
        try:
            result = self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(message) from exc
        return result.rowcount or 0
