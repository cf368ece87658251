"""
schemas/task_schema.py — Marshmallow schemas for the /v1/tasks endpoints.

Validation responsibility:
  - This file: field types, title length after trim, pagination bounds.
  - services/task_service.py: ownership (TASK_NOT_FOUND), bulk id
    normalisation and BULK_LIMIT_EXCEEDED.

Bulk endpoints accept `ids` as a list of anything: non-integer entries are
dropped by the service rather than rejected here, so one bad id does not
fail the whole batch.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates

from backend.app.extensions import ma

_TITLE_RULES = validate.Length(
    min=1,
    max=255,
    error="Title must be between 1 and 255 characters.",
)


class _TrimmedTextSchema(Schema):
    """Strips surrounding whitespace from title / description before validation."""

    @pre_load
    def strip_text(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("title", "description"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        return data


class AddTaskSchema(_TrimmedTextSchema):
    """POST /v1/tasks/add"""

    title = fields.Str(required=True, validate=_TITLE_RULES)
    description = fields.Str(load_default="")


class UpdateTaskSchema(_TrimmedTextSchema):
    """PUT /v1/tasks/update — id required, other fields optional."""

    id = fields.Integer(required=True, strict=True)
    title = fields.Str(validate=_TITLE_RULES)
    description = fields.Str()
    is_done = fields.Boolean()


class MarkDoneSchema(Schema):
    """PUT /v1/tasks/mark_done"""

    id = fields.Integer(required=True, strict=True)
    is_done = fields.Boolean(load_default=True)


class DeleteTaskSchema(Schema):
    """DELETE /v1/tasks/delete"""

    id = fields.Integer(required=True, strict=True)


class BulkIdsSchema(Schema):
    """DELETE /v1/tasks/bulk_delete"""

    ids = fields.List(fields.Raw(allow_none=True), required=True)


class BulkMarkDoneSchema(BulkIdsSchema):
    """PUT /v1/tasks/bulk_mark_done"""

    is_done = fields.Boolean(load_default=True)


class ListTasksQuerySchema(Schema):
    """
    GET /v1/tasks?page=&per_page=&search=

    per_page defaults to TASKS_PER_PAGE and is capped at MAX_TASKS_PER_PAGE;
    both come in through the constructor.
    """

    class Meta:
        # Cache-busting or tracking params in the query string are ignored.
        unknown = EXCLUDE

    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    per_page = fields.Integer()
    search = fields.Str(load_default=None)

    def __init__(self, default_per_page: int = 10, max_per_page: int = 100, **kwargs):
        super().__init__(**kwargs)
        self.default_per_page = default_per_page
        self.max_per_page = max_per_page

    @validates("per_page")
    def validate_per_page(self, value: int, **kwargs) -> None:
        if value < 1 or value > self.max_per_page:
            raise ValidationError(
                f"per_page must be between 1 and {self.max_per_page}."
            )

    def load(self, data, **kwargs):
        result = super().load(data, **kwargs)
        result.setdefault("per_page", self.default_per_page)
        search = (result.get("search") or "").strip()
        result["search"] = search or None
        return result


class TaskResponseSchema(ma.Schema):
    id = fields.Integer(dump_only=True)
    title = fields.Str(dump_only=True)
    description = fields.Str(dump_only=True)
    is_done = fields.Boolean(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)
