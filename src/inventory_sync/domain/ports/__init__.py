"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import ScopeEnumerator, SourceFeed
from .persistence import CanonicalRecordRepository, RecordStore, ScopeRecordRepository
from .unit_of_work import InventoryRepositories, InventoryUnitOfWork

__all__ = [
    "CanonicalRecordRepository",
    "InventoryRepositories",
    "InventoryUnitOfWork",
    "RecordStore",
    "ScopeEnumerator",
    "ScopeRecordRepository",
    "SourceFeed",
]
