"""Shared reconciliation contract components.

This module intentionally holds only:
- the per-pass state machine enum
- result dataclasses reported by scope passes and whole runs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from inventory_sync.domain.model import RecordKey, SourceKind


class PassState(StrEnum):
    """Stage a scope pass is in; stages only ever move forward."""

    PENDING = "pending"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    UPSERTING = "upserting"
    PURGING = "purging"
    DONE = "done"


@dataclass(slots=True, frozen=True)
class FeedFailure:
    """One feed that could not deliver records for a scope."""

    kind: SourceKind
    reason: str


@dataclass(slots=True, kw_only=True)
class PassResult:
    """Outcome of one scope pass."""

    scope_key: str
    state: PassState = PassState.PENDING
    fetched: int = 0
    rejected: int = 0
    upserted: int = 0
    upsert_failures: list[RecordKey] = field(default_factory=list["RecordKey"])
    purged: int = 0
    purge_failures: list[RecordKey] = field(default_factory=list["RecordKey"])
    feed_failures: list[FeedFailure] = field(default_factory=list[FeedFailure])
    scope_record_failed: bool = False
    error: str | None = None
    seen_keys: set[RecordKey] = field(default_factory=set["RecordKey"], repr=False)

    @property
    def failed_kinds(self) -> frozenset[SourceKind]:
        return frozenset(failure.kind for failure in self.feed_failures)

    @property
    def clean(self) -> bool:
        if self.error is not None or self.scope_record_failed:
            return False
        return not (self.feed_failures or self.upsert_failures or self.purge_failures)


@dataclass(slots=True, kw_only=True)
class RunResult:
    """Outcome of one full run across all scopes."""

    passes: list[PassResult] = field(default_factory=list[PassResult])
    skipped_scopes: list[str] = field(default_factory=list[str])
    enumeration_error: str | None = None
    cancelled: bool = False

    @property
    def clean(self) -> bool:
        return self.enumeration_error is None and all(result.clean for result in self.passes)

    def for_scope(self, scope_key: str) -> PassResult | None:
        for result in self.passes:
            if result.scope_key == scope_key:
                return result
        return None
