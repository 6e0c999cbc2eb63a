from __future__ import annotations

from uuid import uuid4

from inventory_sync.domain.model import (
    GLOBAL_SCOPE,
    CanonicalRecord,
    OrdinaryScope,
    SourceKind,
)
from inventory_sync.domain.reconciliation.purge import exempt_kinds, plan_purge

from tests.helpers.inventory import InMemoryRecordStore

ENV_A = OrdinaryScope(id="env-a")
ENV_B = OrdinaryScope(id="env-b")


def _store_record(store: InMemoryRecordStore, scope_key: str, kind: SourceKind) -> CanonicalRecord:
    record = CanonicalRecord(record_key=uuid4(), scope_key=scope_key, kind=kind, display_name="x")
    store.records[record.record_key] = record
    return record


def test_plan_purge_returns_unseen_keys_of_scope_only() -> None:
    store = InMemoryRecordStore()
    seen = _store_record(store, ENV_A.key, SourceKind.CANVAS_APP)
    stale = _store_record(store, ENV_A.key, SourceKind.CANVAS_APP)
    _store_record(store, ENV_B.key, SourceKind.CANVAS_APP)

    assert plan_purge(store, ENV_A, {seen.record_key}) == {stale.record_key}


def test_failed_kinds_are_never_purged() -> None:
    store = InMemoryRecordStore()
    app = _store_record(store, ENV_A.key, SourceKind.CANVAS_APP)
    _store_record(store, ENV_A.key, SourceKind.CLOUD_FLOW)

    stale = plan_purge(store, ENV_A, set(), failed_kinds={SourceKind.CLOUD_FLOW})

    assert stale == {app.record_key}


def test_global_scope_exempts_scope_metadata() -> None:
    assert SourceKind.SCOPE_METADATA in exempt_kinds(GLOBAL_SCOPE)
    assert SourceKind.SCOPE_METADATA not in exempt_kinds(ENV_A)

    store = InMemoryRecordStore()
    _store_record(store, GLOBAL_SCOPE.key, SourceKind.SCOPE_METADATA)
    license_ = _store_record(store, GLOBAL_SCOPE.key, SourceKind.LICENSE)

    assert plan_purge(store, GLOBAL_SCOPE, set()) == {license_.record_key}
