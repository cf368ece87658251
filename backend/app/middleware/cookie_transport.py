"""
middleware/cookie_transport.py — Auth cookies on the request/response pair.

Two cookies, names fixed for client compatibility:
  access_token   short-lived JWT, expiry = the token's own exp claim
  refresh_token  opaque refresh value, expiry = refresh TTL

CookieTransport knows the names; the cookie jar knows the HTTP mechanics.
FlaskCookieJar reads the incoming request's cookies and queues mutations,
which apply() writes onto the outgoing response (called from an
after_request hook). Reads after a write in the same request see the
queued value, so a cleared cookie reads as None immediately.

All cookies are written httponly, with the secure / samesite / path flags
from config (AUTH_COOKIE_SECURE, AUTH_COOKIE_SAMESITE, AUTH_COOKIE_PATH).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Protocol

if TYPE_CHECKING:
    from flask import Response

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"


class CookieJar(Protocol):

    def get(self, name: str) -> str | None:
        ...

    def set(self, name: str, value: str, expires: int) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


class FlaskCookieJar:
    """Request-scoped jar: incoming cookies plus queued Set-Cookie mutations."""

    def __init__(
            self,
            incoming: Mapping[str, str],
            secure: bool = True,
            samesite: str = "Strict",
            path: str = "/",
    ) -> None:
        self._incoming = dict(incoming)
        # name -> (value, expires); value None means "clear"
        self._pending: dict[str, tuple[str | None, int | None]] = {}
        self._secure = secure
        self._samesite = samesite
        self._path = path

    def get(self, name: str) -> str | None:
        if name in self._pending:
            return self._pending[name][0]
        return self._incoming.get(name) or None

    def set(self, name: str, value: str, expires: int) -> None:
        self._pending[name] = (value, expires)

    def delete(self, name: str) -> None:
        self._pending[name] = (None, None)

    @property
    def pending(self) -> dict[str, tuple[str | None, int | None]]:
        return dict(self._pending)

    def apply(self, response: Response) -> Response:
        for name, (value, expires) in self._pending.items():
            if value is None:
                response.delete_cookie(
                    name,
                    path=self._path,
                    secure=self._secure,
                    httponly=True,
                    samesite=self._samesite,
                )
            else:
                response.set_cookie(
                    name,
                    value,
                    expires=expires,
                    path=self._path,
                    secure=self._secure,
                    httponly=True,
                    samesite=self._samesite,
                )
        return response


class CookieTransport:

    def __init__(self, jar: CookieJar) -> None:
        self._jar = jar

    # ── access_token ───────────────────────────────────────────────────────

    def get_access_token(self) -> str | None:
        return self._jar.get(ACCESS_TOKEN_COOKIE)

    def set_access_token(self, value: str, expires_at: int) -> None:
        self._jar.set(ACCESS_TOKEN_COOKIE, value, expires_at)

    def clear_access_token(self) -> None:
        self._jar.delete(ACCESS_TOKEN_COOKIE)

    # ── refresh_token ──────────────────────────────────────────────────────

    def get_refresh_token(self) -> str | None:
        return self._jar.get(REFRESH_TOKEN_COOKIE)

    def set_refresh_token(self, value: str, expires_at: int) -> None:
        self._jar.set(REFRESH_TOKEN_COOKIE, value, expires_at)

    def clear_refresh_token(self) -> None:
        self._jar.delete(REFRESH_TOKEN_COOKIE)
