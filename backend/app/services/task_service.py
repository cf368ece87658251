"""
services/task_service.py — Task business logic.

Every function takes the authenticated user's id and filters on it in the
WHERE clause. A task id that belongs to another user behaves exactly like
one that does not exist (TASK_NOT_FOUND, 404).

Listing order (dashboard): open tasks first, then most recently updated,
id as the tie-breaker so pages are stable.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
import math

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.task import Task

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_task_or_404(task_id: int, user_id: str, session: Session) -> Task:
    task = session.execute(
        select(Task).where(Task.id == task_id, Task.user_id == user_id)
    ).scalar_one_or_none()
    if task is None:
        raise AppError(
            ErrorCode.TASK_NOT_FOUND,
            f"Task {task_id} not found.",
            404,
            field="id",
        )
    return task


def normalize_ids(raw_ids: list, limit: int) -> list[int]:
    """
    Keeps integer ids only (bools and numeric strings are dropped), collapses
    duplicates preserving first occurrence.

    Raises:
      AppError(BULK_LIMIT_EXCEEDED, 400) — more than `limit` distinct ids.
    """
    ids: list[int] = []
    seen: set[int] = set()
    for value in raw_ids or []:
        if isinstance(value, bool) or not isinstance(value, int):
            continue
        if value not in seen:
            seen.add(value)
            ids.append(value)

    if len(ids) > limit:
        raise AppError(
            ErrorCode.BULK_LIMIT_EXCEEDED,
            f"At most {limit} tasks can be changed at once.",
            400,
            field="ids",
        )
    return ids


# ── Public service functions ───────────────────────────────────────────────

def add_task(
        user_id: str,
        title: str,
        session: Session,
        description: str = "",
) -> Task:
    task = Task(user_id=user_id, title=title, description=description or "")
    session.add(task)
    session.flush()
    return task


def get_task(task_id: int, user_id: str, session: Session) -> Task:
    return _get_task_or_404(task_id, user_id, session)


def update_task(
        task_id: int,
        user_id: str,
        session: Session,
        title: str | None = None,
        description: str | None = None,
        is_done: bool | None = None,
) -> Task:
    """Partial update: fields left as None are untouched."""
    task = _get_task_or_404(task_id, user_id, session)
    if title is not None:
        task.title = title
    if description is not None:
        task.description = description
    if is_done is not None:
        task.is_done = is_done
    session.flush()
    return task


def mark_done(task_id: int, user_id: str, is_done: bool, session: Session) -> Task:
    return update_task(task_id, user_id, session, is_done=is_done)


def delete_task(task_id: int, user_id: str, session: Session) -> None:
    deleted = session.execute(
        delete(Task).where(Task.id == task_id, Task.user_id == user_id)
    ).rowcount or 0
    if deleted == 0:
        raise AppError(
            ErrorCode.TASK_NOT_FOUND,
            f"Task {task_id} not found.",
            404,
            field="id",
        )


def list_tasks(
        user_id: str,
        session: Session,
        page: int = 1,
        per_page: int = 10,
        search: str | None = None,
) -> dict:
    """
    Returns {"tasks": [Task, ...], "pagination": {...}}.

    `search` is a case-insensitive substring match on the title; `%` and
    `_` in it match literally. A page past the end returns an empty list,
    not an error.
    """
    conditions = [Task.user_id == user_id]
    if search:
        conditions.append(Task.title.icontains(search, autoescape=True))

    total = session.execute(
        select(func.count(Task.id)).where(*conditions)
    ).scalar_one()

    tasks = session.execute(
        select(Task)
        .where(*conditions)
        .order_by(Task.is_done.asc(), Task.updated_at.desc(), Task.id.desc())
        .limit(per_page)
        .offset((page - 1) * per_page)
    ).scalars().all()

    return {
        "tasks": list(tasks),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": max(1, math.ceil(total / per_page)),
        },
    }


def bulk_delete(user_id: str, raw_ids: list, session: Session, limit: int = 50) -> int:
    """Deletes the caller's tasks among `raw_ids`. Returns the number deleted."""
    ids = normalize_ids(raw_ids, limit)
    if not ids:
        return 0

    deleted = session.execute(
        delete(Task).where(Task.user_id == user_id, Task.id.in_(ids))
    ).rowcount or 0
    logger.info("Bulk deleted %d task(s) for user %s", deleted, user_id)
    return deleted


def bulk_mark_done(
        user_id: str,
        raw_ids: list,
        is_done: bool,
        session: Session,
        limit: int = 50,
) -> int:
    """Sets is_done on the caller's tasks among `raw_ids`. Returns the number updated."""
    ids = normalize_ids(raw_ids, limit)
    if not ids:
        return 0

    updated = session.execute(
        update(Task)
        .where(Task.user_id == user_id, Task.id.in_(ids))
        .values(is_done=is_done, updated_at=func.now())
        .execution_options(synchronize_session=False)
    ).rowcount or 0
    logger.info("Bulk marked %d task(s) is_done=%s for user %s", updated, is_done, user_id)
    return updated
