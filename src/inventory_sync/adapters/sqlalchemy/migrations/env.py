"""Alembic environment for the inventory record store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from inventory_sync.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from inventory_sync.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

start_mappers()

_OPTIONS = {
    "target_metadata": mapper_registry.metadata,
    # SQLite cannot ALTER most columns in place
    "render_as_batch": True,
    "compare_type": True,
}


def _url() -> str:
    return context.config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def _offline() -> None:
    context.configure(url=_url(), literal_binds=True, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def _online() -> None:
    shared = context.config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return
    engine = create_engine(_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    _offline()
else:
    _online()
