"""
tests/unit/test_auth_middleware.py — refresh_jwt / require_auth / apply_auth_cookies
on a bare Flask app (no database, no blueprints from the real app).
"""

from __future__ import annotations

import pytest
from flask import Flask, g, jsonify

from backend.app.errors import AppError
from backend.app.middleware.auth_middleware import (
    apply_auth_cookies,
    current_identity,
    refresh_jwt,
    require_auth,
)
from backend.app.middleware.cookie_transport import ACCESS_TOKEN_COOKIE
from backend.app.services.session_service import SessionService
from backend.app.services.token_codec import TokenCodec

T0 = 1_700_000_000
SECRET = "unit-test-secret-key-with-enough-length"


class _Clock:

    def __init__(self, now: int) -> None:
        self.current = now

    def now(self) -> int:
        return self.current


@pytest.fixture
def gate_app():
    app = Flask(__name__)
    app.config.update(
        TESTING=True,
        JWT_SECRET_KEY=SECRET,
        JWT_ALGORITHM="HS256",
        JWT_ACCESS_TOKEN_EXPIRES=900,
        JWT_REFRESH_TOKEN_EXPIRES=604800,
        JWT_REFRESH_THRESHOLD=300,
        MAX_SESSIONS_PER_USER=2,
        AUTH_COOKIE_SECURE=False,
        AUTH_COOKIE_SAMESITE="Strict",
        AUTH_COOKIE_PATH="/",
    )
    app.extensions["clock"] = _Clock(T0)
    app.before_request(refresh_jwt)
    app.after_request(apply_auth_cookies)

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.route("/public")
    def public():
        identity = current_identity()
        return jsonify({"user_id": identity.user_id if identity else None})

    @app.route("/private")
    @require_auth
    def private():
        return jsonify({"user_id": g.identity.user_id})

    return app


@pytest.fixture
def token_for():
    codec = TokenCodec(SECRET)

    def _token(user_id: str, issued_at: int = T0) -> str:
        return codec.create(user_id, issued_at)

    return _token


def test_anonymous_request_reaches_public_route(gate_app):
    resp = gate_app.test_client().get("/public")

    assert resp.status_code == 200
    assert resp.get_json() == {"user_id": None}
    assert resp.headers.getlist("Set-Cookie") == []


def test_protected_route_rejects_anonymous_with_401(gate_app):
    resp = gate_app.test_client().get("/private")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"


def test_valid_cookie_attaches_identity(gate_app, token_for):
    client = gate_app.test_client()
    client.set_cookie(ACCESS_TOKEN_COOKIE, token_for("u1"))

    resp = client.get("/private")

    assert resp.status_code == 200
    assert resp.get_json() == {"user_id": "u1"}
    assert resp.headers.getlist("Set-Cookie") == []


def test_garbage_cookie_is_treated_as_anonymous(gate_app):
    client = gate_app.test_client()
    client.set_cookie(ACCESS_TOKEN_COOKIE, "garbage")

    assert client.get("/public").get_json() == {"user_id": None}
    assert client.get("/private").status_code == 401


def test_token_near_expiry_is_reissued_on_response(gate_app, token_for):
    gate_app.extensions["clock"].current = T0 + 700
    client = gate_app.test_client()
    client.set_cookie(ACCESS_TOKEN_COOKIE, token_for("u1"))

    resp = client.get("/private")

    assert resp.status_code == 200
    set_cookies = resp.headers.getlist("Set-Cookie")
    assert len(set_cookies) == 1
    assert set_cookies[0].startswith(f"{ACCESS_TOKEN_COOKIE}=")
    assert "HttpOnly" in set_cookies[0]


def test_failure_inside_refresh_is_logged_not_raised(gate_app, monkeypatch, caplog):
    def _boom(self, now=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(SessionService, "silent_refresh", _boom)

    resp = gate_app.test_client().get("/public")

    assert resp.status_code == 200
    assert resp.get_json() == {"user_id": None}
    assert "JWT refresh failed" in caplog.text
