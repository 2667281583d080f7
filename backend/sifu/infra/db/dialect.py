"""Dialect-specific INSERT builders for ON CONFLICT upserts."""

from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERT_BUILDERS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(session: AsyncSession, model):
    """Return an ``insert()`` that supports ``on_conflict_do_*`` for the bound dialect."""
    dialect = session.get_bind().dialect.name
    builder = _INSERT_BUILDERS.get(dialect)
    if builder is None:
        raise NotImplementedError(
            f"Upserts not supported for dialect '{dialect}'. "
            f"Supported: {', '.join(_INSERT_BUILDERS)}"
        )
    return builder(model)
