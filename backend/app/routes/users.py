"""
routes/users.py — Account and session route handlers.

Layer rules:
  - Parse, validate, call the service(s), commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Cookie writes are queued on the request's cookie jar and flushed by the
    after_request hook, so handlers never touch the response directly.

Endpoints (url_prefix=/v1/users):
  POST   /signup    → 201  create account, start session
  POST   /signin    → 200  check credentials, start session
  POST   /signout   → 200  end this device's session (no auth, idempotent)
  POST   /refresh   → 200  rotate the refresh token, new access token
  GET    /me        → 200  profile
  PUT    /update    → 200  change username / email
  DELETE /delete    → 200  revoke every session, delete tasks and account
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from backend.app.errors import RefreshTokenExpired
from backend.app.extensions import db
from backend.app.middleware.auth_middleware import get_session_service, require_auth, require_identity
from backend.app.schemas.user_schema import (
    SigninSchema,
    SignupSchema,
    UpdateUserSchema,
    UserResponseSchema,
)
from backend.app.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/signup", methods=["POST"])
def signup():
    """POST /v1/users/signup — Create an account and sign it in on this device."""
    data = SignupSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.register_user(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        session=db.session,
        rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
    )
    get_session_service().issue(user.id)
    db.session.commit()
    return jsonify({"data": UserResponseSchema().dump(user), "warnings": []}), 201


@users_bp.route("/signin", methods=["POST"])
def signin():
    """POST /v1/users/signin — Check credentials and start a session."""
    data = SigninSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.authenticate_user(
        username=data["username"],
        password=data["password"],
        session=db.session,
    )
    get_session_service().issue(user.id)
    db.session.commit()
    return jsonify({"data": UserResponseSchema().dump(user), "warnings": []}), 200


@users_bp.route("/signout", methods=["POST"])
def signout():
    """POST /v1/users/signout — Drop this device's refresh token and clear cookies."""
    get_session_service().revoke()
    db.session.commit()
    return jsonify({"data": {"signed_out": True}, "warnings": []}), 200


@users_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /v1/users/refresh — Exchange the refresh cookie for a new token pair."""
    try:
        identity = get_session_service().explicit_refresh()
    except RefreshTokenExpired:
        # The expired record was deleted on the way out; keep that deletion.
        db.session.commit()
        raise
    db.session.commit()
    return jsonify({"data": {"user_id": identity.user_id}, "warnings": []}), 200


@users_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /v1/users/me — Profile of the signed-in user."""
    user = user_service.get_user(require_identity().user_id, db.session)
    return jsonify({"data": UserResponseSchema().dump(user), "warnings": []}), 200


@users_bp.route("/update", methods=["PUT"])
@require_auth
def update():
    """PUT /v1/users/update — Change username and/or email."""
    data = UpdateUserSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.update_user(
        user_id=require_identity().user_id,
        session=db.session,
        username=data.get("username"),
        email=data.get("email"),
    )
    db.session.commit()
    return jsonify({"data": UserResponseSchema().dump(user), "warnings": []}), 200


@users_bp.route("/delete", methods=["DELETE"])
@require_auth
def delete():
    """
    DELETE /v1/users/delete — Remove the account.

    Session revocation and row deletion share one transaction: every refresh
    token goes first, then tasks and the user row.
    """
    user_id = require_identity().user_id
    sessions = get_session_service()
    sessions.revoke()
    sessions.revoke_all_for_user(user_id)
    user_service.delete_user(user_id, db.session)
    db.session.commit()
    return jsonify({"data": {"deleted": True, "user_id": user_id}, "warnings": []}), 200
