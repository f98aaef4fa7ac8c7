"""Dialect helpers so conflict-aware statements run on PostgreSQL and SQLite alike."""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any):
    """
    Return an ``INSERT`` construct for ``model`` that supports
    ``on_conflict_do_nothing`` / ``on_conflict_do_update``.

    PostgreSQL is the production target; SQLite backs the test suite. Both
    dialects expose the same ``ON CONFLICT`` API, so callers stay agnostic.
    """
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "sqlite":
        return sqlite_insert(model)
    if dialect_name == "postgresql":
        return pg_insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect {dialect_name!r}")
