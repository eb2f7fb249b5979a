"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_ignoring_conflicts(session: AsyncSession, model):
    """Build an insert for *model* that silently skips unique-key conflicts.

    The statement's rowcount is 1 when the row was inserted and 0 when a
    row with the same unique key already existed.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model).on_conflict_do_nothing()
    if dialect == "sqlite":
        return sqlite.insert(model).on_conflict_do_nothing()
    raise NotImplementedError(f"Conflict-free insert not supported on {dialect}")
