"""
schemas/user_schema.py — Marshmallow schemas for the /v1/users endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, regex patterns.
  - services/user_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME checks
    (cross-entity: require a DB lookup — not a schema concern).

IMPORTANT: Request schemas inherit from marshmallow.Schema directly so unit
           tests can load them without an app. UserResponseSchema only dumps
           inside a request and uses ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates, validates_schema

from backend.app.extensions import ma
from backend.app.services.user_service import MAX_PASSWORD_BYTES

_USERNAME_FIELD_RULES = [
    validate.Length(
        min=3,
        max=50,
        error="Username must be between 3 and 50 characters.",
    ),
    validate.Regexp(
        r"^[a-zA-Z0-9_]+$",
        error="Username may only contain letters, numbers, and underscores.",
    ),
]


class SignupSchema(Schema):
    """
    POST /v1/users/signup

    Field rules:
      username : 3–50 chars, alphanumeric + underscore only
      email    : valid email format
      password : min 8 chars, at least one letter and one digit,
                 at most 72 bytes once UTF-8 encoded
    """

    username = fields.Str(required=True, validate=_USERNAME_FIELD_RULES)
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes long."
            )


class SigninSchema(Schema):
    """POST /v1/users/signin — credential correctness is checked in user_service."""

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class UpdateUserSchema(Schema):
    """PUT /v1/users/update — at least one of username / email."""

    username = fields.Str(validate=_USERNAME_FIELD_RULES)
    email = fields.Email(validate=validate.Length(max=255))

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if "username" not in data and "email" not in data:
            raise ValidationError("Provide a username or an email to update.")


class UserResponseSchema(ma.Schema):
    id = fields.Str(dump_only=True)
    username = fields.Str(dump_only=True)
    email = fields.Str(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)
