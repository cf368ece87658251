"""
models/task.py — Task table definition.

No business logic. No imports from services or routes.

Every query against this table filters on user_id (see task_service); a
task is only ever visible to the user that created it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Task(db.Model):
    __tablename__ = "tasks"

    __table_args__ = (
        # Serves the dashboard listing: WHERE user_id = ? ORDER BY is_done, updated_at
        Index("idx_tasks_user_dashboard", "user_id", "is_done", "updated_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
    )

    is_done: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="tasks",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Task id={self.id} user_id={self.user_id} is_done={self.is_done}>"
