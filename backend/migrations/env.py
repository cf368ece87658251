"""Alembic environment for the TaskNest schema (users, tasks, refresh_tokens)."""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

_BACKEND_DIR = Path(__file__).resolve().parent.parent
load_dotenv(_BACKEND_DIR / ".env")
sys.path.insert(0, str(_BACKEND_DIR.parent))

from backend.app.extensions import db  # noqa: E402
from backend.app.models import refresh_token, task, user  # noqa: E402,F401

DB_URL = os.environ["TEST_DATABASE_URL" if os.getenv("TEST_RUN") else "DATABASE_URL"]

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def run_migrations() -> None:
    if context.is_offline_mode():
        context.configure(url=DB_URL, target_metadata=db.metadata, literal_binds=True)
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = create_engine(DB_URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=db.metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


run_migrations()
