"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from backend.app.extensions import db, ma

Do not pass the app object directly to SQLAlchemy() or Marshmallow() at
import time — that would prevent running tests with a separate test app
instance.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance, used for response (dump-only) schemas.
#
# IMPORTANT: schema inheritance rule.
#   Validation schemas (the ones that .load() request bodies) inherit from
#   marshmallow.Schema directly, NOT from ma.Schema, so unit tests can
#   instantiate them without a Flask app context.
#
#   Response schemas in app/schemas/ that only .dump() inside a request
#   may inherit from ma.Schema.
ma = Marshmallow()
