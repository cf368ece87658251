"""
services/user_service.py — User account business logic.

Responsibilities:
  - Registration (uniqueness checks + bcrypt hash)
  - Credential validation for signin
  - Profile read / update / delete

Sessions are not this module's concern: routes call SessionService.issue()
after register_user / authenticate_user, and revoke_all_for_user() before
delete_user.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
  - bcrypt cost comes in as `rounds` (route passes BCRYPT_LOG_ROUNDS).

Password storage:
  - Hashed with bcrypt; the raw password is never stored, never logged.
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.task import Task
from backend.app.models.user import User

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes and newer releases refuse more.
MAX_PASSWORD_BYTES = 72


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _check_unique(
        session: Session,
        username: str | None = None,
        email: str | None = None,
        exclude_user_id: str | None = None,
) -> None:
    """Raises DUPLICATE_EMAIL / DUPLICATE_USERNAME (409) when taken by another user."""
    if email is not None:
        stmt = select(User.id).where(User.email == email)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        if session.execute(stmt).scalar_one_or_none() is not None:
            raise AppError(
                ErrorCode.DUPLICATE_EMAIL,
                f"The email address '{email}' is already registered.",
                409,
                field="email",
            )

    if username is not None:
        stmt = select(User.id).where(User.username == username)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        if session.execute(stmt).scalar_one_or_none() is not None:
            raise AppError(
                ErrorCode.DUPLICATE_USERNAME,
                f"The username '{username}' is already taken.",
                409,
                field="username",
            )


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
        rounds: int = 12,
) -> User:
    """
    Creates a new user account.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)    — email already registered
      AppError(DUPLICATE_USERNAME, 409) — username already taken
    """
    _check_unique(session, username=username, email=email)

    user = User(
        username=username,
        email=email,
        password_hash=_hash_password(password, rounds),
    )
    session.add(user)
    session.flush()  # populate server defaults before the session is issued

    logger.info("Registered user %s", user.id)
    return user


def authenticate_user(username: str, password: str, session: Session) -> User:
    """
    Returns the user when the credentials match.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — username not found or password wrong.
      Same error for both to avoid username enumeration. A password longer
      than bcrypt accepts can never match, so it gets the same error.
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    encoded = password.encode("utf-8")
    if (
            user is None
            or len(encoded) > MAX_PASSWORD_BYTES
            or not bcrypt.checkpw(encoded, user.password_hash.encode("utf-8"))
    ):
        logger.info("Failed signin attempt for username %r", username)
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )

    return user


def get_user(user_id: str, session: Session) -> User:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404) — the id in the access token no longer
        exists (account deleted while the token was still valid).
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def update_user(
        user_id: str,
        session: Session,
        username: str | None = None,
        email: str | None = None,
) -> User:
    """Changes username and/or email. Fields left as None are untouched."""
    user = get_user(user_id, session)
    _check_unique(session, username=username, email=email, exclude_user_id=user_id)

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    session.flush()

    return user


def delete_user(user_id: str, session: Session) -> None:
    """
    Deletes the user's tasks and the user row.
    Refresh tokens must already be revoked (SessionService.revoke_all_for_user).
    """
    user = get_user(user_id, session)
    deleted_tasks = session.execute(
        delete(Task).where(Task.user_id == user_id)
    ).rowcount or 0
    session.delete(user)
    session.flush()

    logger.info("Deleted user %s and %d task(s)", user_id, deleted_tasks)
