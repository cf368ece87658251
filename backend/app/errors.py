"""
errors.py — AppError base class, error code registry and domain exceptions.

Every error returned by the TaskNest API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Two families live in this module:
  - AppError and its subclasses carry an HTTP status and an error code.
    The global error handler in app/__init__.py turns them into the JSON
    error envelope. Raised by services, the session layer and middleware.
  - InvalidToken and StoreError are domain-level outcomes of the token codec
    and the refresh-token store. They carry no HTTP status; the layers above
    decide what they mean for the request.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    BULK_LIMIT_EXCEEDED        = "BULK_LIMIT_EXCEEDED"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME         = "DUPLICATE_USERNAME"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    TASK_NOT_FOUND             = "TASK_NOT_FOUND"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    # UNAUTHORIZED is a request-level rejection raised by require_auth only.
    # The REFRESH_TOKEN_* codes come from the explicit refresh flow.
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"
    UNAUTHORIZED               = "UNAUTHORIZED"
    REFRESH_TOKEN_MISSING      = "REFRESH_TOKEN_MISSING"
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"
    REFRESH_TOKEN_EXPIRED      = "REFRESH_TOKEN_EXPIRED"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Session / auth errors ──────────────────────────────────────────────────
# Messages stay generic so a client cannot tell which part of a refresh token
# failed validation.

class Unauthorized(AppError):

    def __init__(self, message: str = "Unauthorized. You must be logged in.") -> None:
        super().__init__(ErrorCode.UNAUTHORIZED, message, 401)


class MissingRefreshToken(AppError):

    def __init__(self, message: str = "Refresh token missing.") -> None:
        super().__init__(ErrorCode.REFRESH_TOKEN_MISSING, message, 401)


class InvalidRefreshToken(AppError):

    def __init__(self, message: str = "Invalid refresh token.") -> None:
        super().__init__(ErrorCode.REFRESH_TOKEN_INVALID, message, 401)


class RefreshTokenExpired(AppError):

    def __init__(self, message: str = "Refresh token expired.") -> None:
        super().__init__(ErrorCode.REFRESH_TOKEN_EXPIRED, message, 401)


# ── Domain-level failures (no HTTP semantics) ──────────────────────────────

class InvalidToken(Exception):
    """Access token failed signature, structure or expiry checks."""


class StoreError(Exception):
    """The relational store failed. Wraps the underlying SQLAlchemyError."""
