from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from inventory_sync.adapters.sqlalchemy import SqlAlchemyRecordStore, start_mappers
from inventory_sync.adapters.sqlalchemy.migrations import upgrade_head
from inventory_sync.adapters.sqlalchemy.unit_of_work import shutdown, startup

from tests.helpers.inventory import InMemoryRecordStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine) -> Iterator[SqlAlchemyRecordStore]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyRecordStore()
    finally:
        shutdown()


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()
