"""
middleware/auth_middleware.py — Cookie-based authentication for every request.

Request lifecycle (registered by the app factory):
  1. before_request → refresh_jwt()
       Builds the request's SessionService, verifies the access_token cookie
       and attaches the Identity (or None) to flask.g.identity. A token close
       to expiry is silently re-issued. Failures are logged, never raised:
       a stale or garbage cookie must not break public routes.
  2. view decorators → @require_auth
       Rejects the request with Unauthorized (401) when g.identity is None.
       Runs strictly after refresh_jwt because before_request hooks run
       before the view function is called.
  3. after_request → apply_auth_cookies()
       Writes any queued Set-Cookie mutations onto the response.

Strict responsibility boundary:
  - This module attaches identity and rejects anonymous requests ONLY.
  - Data scoping (tasks belong to g.identity.user_id) is the services' job;
    routes pass the user id down as a plain string.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import Response, current_app, g, request

from backend.app.errors import Unauthorized
from backend.app.extensions import db
from backend.app.middleware.cookie_transport import CookieTransport, FlaskCookieJar
from backend.app.services.refresh_token_store import RefreshTokenStore
from backend.app.services.session_service import Identity, SessionService
from backend.app.services.token_codec import TokenCodec


def get_session_service() -> SessionService:
    """
    Returns the SessionService for the current request, building it on first use.

    Everything request-scoped (cookie jar, DB session) is wired here so the
    service itself never touches flask.request or flask.g.
    """
    if "session_service" not in g:
        config = current_app.config
        clock = current_app.extensions["clock"]

        jar = FlaskCookieJar(
            request.cookies,
            secure=config["AUTH_COOKIE_SECURE"],
            samesite=config["AUTH_COOKIE_SAMESITE"],
            path=config["AUTH_COOKIE_PATH"],
        )
        codec = TokenCodec(
            secret=config["JWT_SECRET_KEY"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_threshold=config["JWT_REFRESH_THRESHOLD"],
            clock=clock,
        )
        g.cookie_jar = jar
        g.session_service = SessionService(
            codec=codec,
            store=RefreshTokenStore(db.session),
            cookies=CookieTransport(jar),
            clock=clock,
            refresh_ttl=config["JWT_REFRESH_TOKEN_EXPIRES"],
            max_sessions=config["MAX_SESSIONS_PER_USER"],
        )
    return g.session_service


def refresh_jwt() -> None:
    """before_request hook: attach Identity to g, re-issuing the access token if due."""
    g.identity = None
    try:
        g.identity = get_session_service().silent_refresh()
    except Exception:
        # Advisory only: the request continues anonymously and
        # require_auth turns that into a 401 where it matters.
        current_app.logger.exception(
            "JWT refresh failed for %s %s", request.method, request.path
        )
        return

    if g.identity is not None:
        current_app.logger.debug(
            "JWT verified for %s %s (user %s)",
            request.method,
            request.path,
            g.identity.user_id,
        )


def apply_auth_cookies(response: Response) -> Response:
    """after_request hook: flush queued cookie mutations onto the response."""
    jar = g.get("cookie_jar")
    if jar is not None:
        jar.apply(response)
    return response


def current_identity() -> Identity | None:
    return g.get("identity")


def require_identity() -> Identity:
    """Returns the request's Identity or raises Unauthorized (401)."""
    identity = current_identity()
    if identity is None:
        current_app.logger.warning(
            "Auth failed for %s %s: no valid access token", request.method, request.path
        )
        raise Unauthorized()
    return identity


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces authentication.

    Usage:
        @tasks_bp.route("/add", methods=["POST"])
        @require_auth
        def add_task():
            user_id = g.identity.user_id  # always set when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        require_identity()
        return f(*args, **kwargs)

    return decorated
