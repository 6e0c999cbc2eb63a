"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from inventory_sync.adapters.powerplatform import (
    PowerPlatformScopeEnumerator,
    build_feeds,
    build_http_client,
)
from inventory_sync.adapters.sqlalchemy.store import SqlAlchemyRecordStore
from inventory_sync.adapters.sqlalchemy.unit_of_work import is_started, startup
from inventory_sync.config import get_platform_config, get_sync_config
from inventory_sync.domain.reconciliation import ReconciliationEngine, display_name_filter

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterable, Mapping, Sequence

    from inventory_sync.config import SyncConfig
    from inventory_sync.domain.model import CanonicalRecord, SourceKind
    from inventory_sync.domain.ports import RecordStore, ScopeEnumerator, SourceFeed
    from inventory_sync.domain.reconciliation import RunResult

log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_engine(
    *,
    store: RecordStore | None = None,
    feeds: Mapping[SourceKind, SourceFeed] | None = None,
    enumerator: ScopeEnumerator | None = None,
    sync_config: SyncConfig | None = None,
    max_workers: int | None = None,
    only: Iterable[str] = (),
    skip_kinds: Iterable[SourceKind] = (),
    include_global: bool = True,
) -> ReconciliationEngine:
    """Wire the reconciliation engine to the configured adapters.

    Any collaborator left as ``None`` is built from environment configuration;
    the HTTP client is only created when a feed or the enumerator needs it.
    """

    config = sync_config or get_sync_config()
    skipped = frozenset(skip_kinds)
    if feeds is None or enumerator is None:
        client = build_http_client(get_platform_config())
        if feeds is None:
            feeds = build_feeds(client, skip=tuple(skipped))
        if enumerator is None:
            enumerator = PowerPlatformScopeEnumerator(client)
    effective_feeds = {kind: feed for kind, feed in feeds.items() if kind not in skipped}

    needles = tuple(only)
    return ReconciliationEngine(
        store=store or SqlAlchemyRecordStore(),
        feeds=effective_feeds,
        enumerate_scopes=enumerator,
        max_workers=max_workers if max_workers is not None else config.max_workers,
        rich_threshold=config.rich_payload_threshold,
        include_global=include_global and config.include_global,
        scope_filter=display_name_filter(needles) if needles else None,
    )


def sync_inventory(
    *,
    max_workers: int | None = None,
    only: Sequence[str] = (),
    skip_kinds: Sequence[SourceKind] = (),
    include_global: bool = True,
    stop: threading.Event | None = None,
    store: RecordStore | None = None,
    feeds: Mapping[SourceKind, SourceFeed] | None = None,
    enumerator: ScopeEnumerator | None = None,
) -> RunResult:
    """Reconcile the tenant's inventory into the configured record store."""

    if store is None:
        _ensure_started()
    engine = build_engine(
        store=store,
        feeds=feeds,
        enumerator=enumerator,
        max_workers=max_workers,
        only=only,
        skip_kinds=skip_kinds,
        include_global=include_global,
    )
    log.info(
        "Starting inventory sync: max_workers=%s, feeds=%s, only=%s, include_global=%s",
        engine.max_workers,
        len(engine.feeds),
        list(only) or "*",
        engine.include_global,
    )

    result = engine.run(stop=stop)

    log.info(
        "Finished inventory sync: passes=%d, upserted=%d, purged=%d, skipped=%d, cancelled=%s",
        len(result.passes),
        sum(p.upserted for p in result.passes),
        sum(p.purged for p in result.passes),
        len(result.skipped_scopes),
        result.cancelled,
    )
    return result


def list_records(
    *,
    scope_key: str | None = None,
    kind: SourceKind | None = None,
    store: RecordStore | None = None,
) -> Sequence[CanonicalRecord]:
    """Return stored canonical records, optionally filtered by scope and kind."""

    if store is None:
        _ensure_started()
    effective_store = store or SqlAlchemyRecordStore()
    return effective_store.query(scope_key=scope_key, kind=kind)
