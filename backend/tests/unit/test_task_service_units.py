"""
Unit tests for task_service branches, run DB-free with a mocked session.
Ordering, search and cross-user scoping run against a real database in
tests/integration/test_tasks.py.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from backend.app.errors import AppError, ErrorCode
from backend.app.models import refresh_token, user  # noqa: F401  relationship targets for the mapper
from backend.app.services import task_service


# ── normalize_ids ──────────────────────────────────────────────────────────

def test_normalize_ids_drops_non_integers_and_duplicates():
    assert task_service.normalize_ids([3, "4", 3, None, 5.0, True, 1], limit=50) == [3, 1]


def test_normalize_ids_empty_and_none():
    assert task_service.normalize_ids([], limit=50) == []
    assert task_service.normalize_ids(None, limit=50) == []


def test_normalize_ids_limit_counts_distinct_ids():
    ids = list(range(50)) + list(range(50))
    assert len(task_service.normalize_ids(ids, limit=50)) == 50


def test_normalize_ids_over_limit_raises():
    with pytest.raises(AppError) as exc_info:
        task_service.normalize_ids(list(range(51)), limit=50)

    err = exc_info.value
    assert err.code == ErrorCode.BULK_LIMIT_EXCEEDED
    assert err.http_status == 400


# ── Single-task operations ─────────────────────────────────────────────────

def test_get_task_missing_or_foreign_raises_not_found():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        task_service.get_task(task_id=1, user_id="u2", session=session)

    assert exc_info.value.code == ErrorCode.TASK_NOT_FOUND
    assert exc_info.value.http_status == 404


def test_update_task_leaves_unspecified_fields():
    session = MagicMock()
    task = SimpleNamespace(id=1, title="old", description="d", is_done=False)
    session.execute.return_value.scalar_one_or_none.return_value = task

    task_service.update_task(1, "u1", session, title="new")

    assert (task.title, task.description, task.is_done) == ("new", "d", False)
    session.flush.assert_called_once()


def test_mark_done_sets_flag():
    session = MagicMock()
    task = SimpleNamespace(id=1, title="t", description="", is_done=False)
    session.execute.return_value.scalar_one_or_none.return_value = task

    task_service.mark_done(1, "u1", True, session)

    assert task.is_done is True


def test_delete_task_raises_when_nothing_deleted():
    session = MagicMock()
    session.execute.return_value.rowcount = 0

    with pytest.raises(AppError) as exc_info:
        task_service.delete_task(9, "u1", session)

    assert exc_info.value.code == ErrorCode.TASK_NOT_FOUND


def test_add_task_flushes_without_commit():
    session = MagicMock()

    task = task_service.add_task("u1", "Buy milk", session)

    session.add.assert_called_once_with(task)
    session.flush.assert_called_once()
    session.commit.assert_not_called()
    assert task.description == ""


# ── Bulk operations ────────────────────────────────────────────────────────

def test_bulk_delete_with_no_valid_ids_runs_no_sql():
    session = MagicMock()

    assert task_service.bulk_delete("u1", ["a", None], session) == 0
    session.execute.assert_not_called()


def test_bulk_mark_done_returns_rowcount():
    session = MagicMock()
    session.execute.return_value.rowcount = 2

    assert task_service.bulk_mark_done("u1", [1, 2, 2], True, session) == 2


# ── list_tasks ─────────────────────────────────────────────────────────────

def test_list_tasks_total_pages_is_at_least_one():
    session = MagicMock()
    session.execute.return_value.scalar_one.return_value = 0
    session.execute.return_value.scalars.return_value.all.return_value = []

    result = task_service.list_tasks("u1", session, page=1, per_page=10)

    assert result == {
        "tasks": [],
        "pagination": {"page": 1, "per_page": 10, "total": 0, "total_pages": 1},
    }


def test_list_tasks_rounds_total_pages_up():
    session = MagicMock()
    session.execute.return_value.scalar_one.return_value = 21
    session.execute.return_value.scalars.return_value.all.return_value = []

    result = task_service.list_tasks("u1", session, page=3, per_page=10)

    assert result["pagination"]["total_pages"] == 3
