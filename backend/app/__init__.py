"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - `flask db migrate` to work without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  3. Install the clock used by the session layer (app.extensions["clock"])
  4. Register the auth hooks: refresh_jwt before every request,
     apply_auth_cookies after it
  5. Register route blueprints under /v1
  6. Register global error handlers (AppError → JSON, Exception → 500)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it.
"""

from __future__ import annotations

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from backend.app.clock import SystemClock
from backend.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to "development".
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # ── Extensions ─────────────────────────────────────────────────────────
    from backend.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # Tests swap this for a fixed clock.
    app.extensions["clock"] = SystemClock()

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from backend.app.models import refresh_token, task, user  # noqa: F401

    # ── Request hooks ──────────────────────────────────────────────────────
    from backend.app.middleware.auth_middleware import apply_auth_cookies, refresh_jwt
    app.before_request(refresh_jwt)
    app.after_request(apply_auth_cookies)

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """Registers the route blueprints under the /v1 prefix."""
    from backend.app.routes.tasks import tasks_bp
    from backend.app.routes.users import users_bp

    app.register_blueprint(users_bp, url_prefix="/v1/users")
    app.register_blueprint(tasks_bp, url_prefix="/v1/tasks")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with its HTTP status
      ValidationError → first schema error as MISSING_FIELD / INVALID_FIELD (400)
      StoreError      → INTERNAL_ERROR (500), logged with traceback
      Exception       → INTERNAL_ERROR (500), logged with traceback

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError, ErrorCode, StoreError

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError — they let it propagate here."""
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST error only ("one error, not many").
        Missing required fields map to MISSING_FIELD, everything else to
        INVALID_FIELD.
        """
        field, message = _first_validation_error(error.messages)
        code = (
            ErrorCode.MISSING_FIELD
            if message.startswith("Missing data for required field")
            else ErrorCode.INVALID_FIELD
        )
        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(StoreError)
    def handle_store_error(error: StoreError):
        app.logger.error(
            "Store failure on %s %s: %s",
            request.method,
            request.path,
            error,
            exc_info=error,
        )
        return _internal_error_response(ErrorCode.INTERNAL_ERROR)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Flask's own HTTP errors (unknown URL, wrong method) keep their status.
        if isinstance(error, HTTPException):
            return jsonify({
                "error": {
                    "code": error.name.upper().replace(" ", "_"),
                    "message": error.description,
                }
            }), error.code

        app.logger.error("Unhandled exception: %s", error, exc_info=error)
        return _internal_error_response(ErrorCode.INTERNAL_ERROR)


def _internal_error_response(code: str):
    return jsonify({
        "error": {
            "code": code,
            "message": "An unexpected error occurred. Please try again later.",
        }
    }), 500


def _first_validation_error(messages) -> tuple[str | None, str]:
    """Flattens marshmallow's messages dict to the first (field, message) pair."""
    if isinstance(messages, dict):
        for field_name, field_errors in messages.items():
            field = field_name if field_name != "_schema" else None
            if isinstance(field_errors, dict):
                # Nested errors, e.g. {"ids": {0: [...]}}
                _, message = _first_validation_error(field_errors)
                return field, message
            if isinstance(field_errors, list):
                return field, str(field_errors[0]) if field_errors else "Invalid value."
            return field, str(field_errors)
    if isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Invalid input."


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API. Auth travels in cookies, so credentials
    must be allowed and the origin reflected rather than "*".
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all and origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response
