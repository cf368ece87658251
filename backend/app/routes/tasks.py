"""
routes/tasks.py — Task route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Every call passes the signed-in user's id; scoping happens in the service.

Endpoints (url_prefix=/v1/tasks, all require auth):
  GET    ""                → 200  paginated list (?page, ?per_page, ?search)
  POST   /add              → 201  create task
  PUT    /update           → 200  update title / description / is_done
  PUT    /mark_done        → 200  set is_done on one task
  DELETE /delete           → 200  delete one task
  PUT    /bulk_mark_done   → 200  set is_done on up to BULK_TASK_LIMIT tasks
  DELETE /bulk_delete      → 200  delete up to BULK_TASK_LIMIT tasks
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth, require_identity
from backend.app.schemas.task_schema import (
    AddTaskSchema,
    BulkIdsSchema,
    BulkMarkDoneSchema,
    DeleteTaskSchema,
    ListTasksQuerySchema,
    MarkDoneSchema,
    TaskResponseSchema,
    UpdateTaskSchema,
)
from backend.app.services import task_service

tasks_bp = Blueprint("tasks", __name__)


def _json_body() -> dict:
    return request.get_json(force=True, silent=True) or {}


@tasks_bp.route("", methods=["GET"])
@require_auth
def list_tasks():
    """GET /v1/tasks — The caller's tasks, open ones first."""
    query = ListTasksQuerySchema(
        default_per_page=current_app.config["TASKS_PER_PAGE"],
        max_per_page=current_app.config["MAX_TASKS_PER_PAGE"],
    ).load(request.args.to_dict())
    result = task_service.list_tasks(
        user_id=require_identity().user_id,
        session=db.session,
        page=query["page"],
        per_page=query["per_page"],
        search=query["search"],
    )
    return jsonify({
        "data": {
            "tasks": TaskResponseSchema(many=True).dump(result["tasks"]),
            "pagination": result["pagination"],
        },
        "warnings": [],
    }), 200


@tasks_bp.route("/add", methods=["POST"])
@require_auth
def add_task():
    """POST /v1/tasks/add — Create a task for the caller."""
    data = AddTaskSchema().load(_json_body())
    task = task_service.add_task(
        user_id=require_identity().user_id,
        title=data["title"],
        description=data["description"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": TaskResponseSchema().dump(task), "warnings": []}), 201


@tasks_bp.route("/update", methods=["PUT"])
@require_auth
def update_task():
    """PUT /v1/tasks/update — Partial update of one task."""
    data = UpdateTaskSchema().load(_json_body())
    task = task_service.update_task(
        task_id=data["id"],
        user_id=require_identity().user_id,
        session=db.session,
        title=data.get("title"),
        description=data.get("description"),
        is_done=data.get("is_done"),
    )
    db.session.commit()
    return jsonify({"data": TaskResponseSchema().dump(task), "warnings": []}), 200


@tasks_bp.route("/mark_done", methods=["PUT"])
@require_auth
def mark_done():
    """PUT /v1/tasks/mark_done — Set is_done (default true) on one task."""
    data = MarkDoneSchema().load(_json_body())
    task = task_service.mark_done(
        task_id=data["id"],
        user_id=require_identity().user_id,
        is_done=data["is_done"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": TaskResponseSchema().dump(task), "warnings": []}), 200


@tasks_bp.route("/delete", methods=["DELETE"])
@require_auth
def delete_task():
    """DELETE /v1/tasks/delete — Delete one task."""
    data = DeleteTaskSchema().load(_json_body())
    task_service.delete_task(
        task_id=data["id"],
        user_id=require_identity().user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "id": data["id"]}, "warnings": []}), 200


@tasks_bp.route("/bulk_mark_done", methods=["PUT"])
@require_auth
def bulk_mark_done():
    """PUT /v1/tasks/bulk_mark_done — Set is_done on many tasks."""
    data = BulkMarkDoneSchema().load(_json_body())
    count = task_service.bulk_mark_done(
        user_id=require_identity().user_id,
        raw_ids=data["ids"],
        is_done=data["is_done"],
        session=db.session,
        limit=current_app.config["BULK_TASK_LIMIT"],
    )
    db.session.commit()
    return jsonify({"data": {"updated": count}, "warnings": []}), 200


@tasks_bp.route("/bulk_delete", methods=["DELETE"])
@require_auth
def bulk_delete():
    """DELETE /v1/tasks/bulk_delete — Delete many tasks."""
    data = BulkIdsSchema().load(_json_body())
    count = task_service.bulk_delete(
        user_id=require_identity().user_id,
        raw_ids=data["ids"],
        session=db.session,
        limit=current_app.config["BULK_TASK_LIMIT"],
    )
    db.session.commit()
    return jsonify({"data": {"deleted": count}, "warnings": []}), 200
