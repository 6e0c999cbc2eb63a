"""SQLAlchemy adapter package for inventory-sync."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import SqlAlchemyCanonicalRecordRepository, SqlAlchemyScopeRecordRepository
from .store import SqlAlchemyRecordStore
from .unit_of_work import SqlAlchemyInventoryUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyCanonicalRecordRepository",
    "SqlAlchemyInventoryUnitOfWork",
    "SqlAlchemyRecordStore",
    "SqlAlchemyScopeRecordRepository",
    "StartupError",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
