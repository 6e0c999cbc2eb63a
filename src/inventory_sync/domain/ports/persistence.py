"""Ports for persisting reconciled records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from inventory_sync.domain.model import (
        CanonicalRecord,
        RecordKey,
        Scope,
        ScopeRecord,
        SourceKind,
    )


@runtime_checkable
class RecordStore(Protocol):
    """Persistence contract for canonical and scope records.

    ``upsert`` is idempotent with last-write-wins semantics; ``delete`` of an
    absent key is a no-op. Every read and delete is bounded to one scope.
    """

    def is_ready(self) -> bool: ...

    def upsert(self, record_key: RecordKey, record: CanonicalRecord) -> None: ...

    def list_keys(
        self,
        scope: Scope,
        *,
        exclude_kinds: Iterable[SourceKind] = (),
    ) -> set[RecordKey]: ...

    def delete(self, scope: Scope, record_key: RecordKey) -> None: ...

    def upsert_scope(self, record: ScopeRecord) -> None: ...

    def scope_record(self, scope_key: str) -> ScopeRecord | None: ...

    def query(
        self,
        *,
        scope_key: str | None = None,
        kind: SourceKind | None = None,
    ) -> Sequence[CanonicalRecord]: ...


@runtime_checkable
class CanonicalRecordRepository(Protocol):
    """Session-bound access to canonical records."""

    def merge(self, record: CanonicalRecord) -> None: ...

    def keys_in_scope(
        self,
        scope_key: str,
        *,
        exclude_kinds: Iterable[SourceKind] = (),
    ) -> set[RecordKey]: ...

    def delete_in_scope(self, scope_key: str, record_key: RecordKey) -> None: ...

    def find(
        self,
        *,
        scope_key: str | None = None,
        kind: SourceKind | None = None,
    ) -> list[CanonicalRecord]: ...


@runtime_checkable
class ScopeRecordRepository(Protocol):
    """Session-bound access to scope records."""

    def merge(self, record: ScopeRecord) -> None: ...

    def get(self, scope_key: str) -> ScopeRecord | None: ...
