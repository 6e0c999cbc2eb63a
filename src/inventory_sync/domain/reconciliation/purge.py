"""Orphan detection for a completed scope pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

from inventory_sync.domain.model import GlobalScope, SourceKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from inventory_sync.domain.model import RecordKey, Scope
    from inventory_sync.domain.ports import RecordStore


def exempt_kinds(scope: Scope, failed_kinds: Iterable[SourceKind] = ()) -> frozenset[SourceKind]:
    """Kinds whose stored records must survive the purge of ``scope``.

    Records of a kind whose feed failed during the pass were not observed, so
    their absence says nothing about upstream deletion.
    """

    exempt = set(failed_kinds)
    if isinstance(scope, GlobalScope):
        exempt.add(SourceKind.SCOPE_METADATA)
    return frozenset(exempt)


def plan_purge(
    store: RecordStore,
    scope: Scope,
    seen_keys: set[RecordKey],
    *,
    failed_kinds: Iterable[SourceKind] = (),
) -> set[RecordKey]:
    """Return the stored keys of ``scope`` that this pass did not see."""

    stored = store.list_keys(scope, exclude_kinds=exempt_kinds(scope, failed_kinds))
    return stored - seen_keys
