"""Orchestrator for inventory reconciliation runs.

One run checks store readiness, reconciles the global scope, enumerates the
ordinary scopes and reconciles each of them. A scope pass moves through
``FETCHING -> NORMALIZING -> UPSERTING -> PURGING -> DONE``; purging only
starts once every upsert of the pass has been attempted.

Passes over distinct scopes run concurrently up to ``max_workers``; passes over
the same scope are serialized. Cancellation is checked before each pass starts,
never inside one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from inventory_sync.config.sync import DEFAULT_MAX_WORKERS, DEFAULT_RICH_PAYLOAD_THRESHOLD
from inventory_sync.domain.errors import StoreUnavailableError, StoreWriteError
from inventory_sync.domain.model import GLOBAL_SCOPE, OrdinaryScope, SourceKind

from .contracts import FeedFailure, PassResult, PassState, RunResult
from .guard import admit, declared_scope
from .identity import resolve
from .normalize import normalize
from .purge import plan_purge
from .scopes import governance_scope_record, scope_record_from_scope

if TYPE_CHECKING:
    from collections.abc import Iterable

    from inventory_sync.domain.model import (
        CanonicalRecord,
        Payload,
        RecordKey,
        Scope,
        ScopeRecord,
        SourceRecord,
    )
    from inventory_sync.domain.ports import RecordStore, ScopeEnumerator, SourceFeed

log = logging.getLogger(__name__)

type ScopeFilter = Callable[[OrdinaryScope], bool]
type Batches = dict[SourceKind, Sequence[SourceRecord]]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def display_name_filter(needles: Iterable[str]) -> ScopeFilter:
    """Admit scopes whose label contains any of ``needles`` (case-insensitive)."""

    lowered = tuple(needle.casefold() for needle in needles if needle.strip())

    def _matches(scope: OrdinaryScope) -> bool:
        if not lowered:
            return True
        label = scope.label.casefold()
        return any(needle in label for needle in lowered)

    return _matches


@dataclass(slots=True)
class ReconciliationEngine:
    """Reconcile every feed of every scope into one record store."""

    store: RecordStore
    feeds: Mapping[SourceKind, SourceFeed]
    enumerate_scopes: ScopeEnumerator
    max_workers: int = DEFAULT_MAX_WORKERS
    rich_threshold: int = DEFAULT_RICH_PAYLOAD_THRESHOLD
    include_global: bool = True
    scope_filter: ScopeFilter | None = None
    clock: Callable[[], datetime] = _utcnow
    _locks: dict[str, threading.Lock] = field(
        default_factory=dict[str, threading.Lock], init=False, repr=False
    )
    _locks_guard: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def run(self, *, stop: threading.Event | None = None) -> RunResult:
        """Run one full reconciliation across the global and all ordinary scopes."""

        if not self.store.is_ready():
            raise StoreUnavailableError("Record store failed its readiness check")

        result = RunResult()
        if self.include_global:
            self._collect(result, GLOBAL_SCOPE, self._start_pass(GLOBAL_SCOPE, stop))

        try:
            scopes = self._ordinary_scopes()
        except Exception as exc:  # noqa: BLE001
            log.exception("Scope enumeration failed")
            result.enumeration_error = f"{type(exc).__name__}: {exc}"
            result.cancelled = _is_set(stop)
            return result

        log.info("Reconciling %d scopes with up to %d workers", len(scopes), self.max_workers)
        if self.max_workers <= 1 or len(scopes) <= 1:
            for scope in scopes:
                self._collect(result, scope, self._start_pass(scope, stop))
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="inventory-sync"
            ) as pool:
                futures = [(scope, pool.submit(self._start_pass, scope, stop)) for scope in scopes]
                for scope, future in futures:
                    self._collect(result, scope, future.result())

        result.cancelled = _is_set(stop)
        log.info(
            "Finished run: passes=%d, skipped=%d, clean=%s",
            len(result.passes),
            len(result.skipped_scopes),
            result.clean,
        )
        return result

    def reconcile_scope(self, scope: Scope) -> PassResult:
        """Run one complete pass over ``scope``."""

        with self._lock_for(scope):
            result = PassResult(scope_key=scope.key)
            try:
                self._execute(scope, result)
            except Exception as exc:  # noqa: BLE001
                log.exception("Pass over %s aborted while %s", scope.label, result.state)
                result.error = f"{type(exc).__name__}: {exc}"
            return result

    def _start_pass(self, scope: Scope, stop: threading.Event | None) -> PassResult | None:
        if _is_set(stop):
            log.info("Skipping %s: run cancelled", scope.label)
            return None
        return self.reconcile_scope(scope)

    @staticmethod
    def _collect(result: RunResult, scope: Scope, outcome: PassResult | None) -> None:
        if outcome is None:
            result.skipped_scopes.append(scope.key)
        else:
            result.passes.append(outcome)

    def _ordinary_scopes(self) -> list[OrdinaryScope]:
        scopes: list[OrdinaryScope] = []
        for scope in self.enumerate_scopes():
            if not isinstance(scope, OrdinaryScope):
                continue
            if self.scope_filter is not None and not self.scope_filter(scope):
                log.debug("Scope %s excluded by filter", scope.label)
                continue
            scopes.append(scope)
        return scopes

    def _lock_for(self, scope: Scope) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(scope.key, threading.Lock())

    def _execute(self, scope: Scope, result: PassResult) -> None:
        synced_at = self.clock()
        log.info("Reconciling %s", scope.label)

        result.state = PassState.FETCHING
        batches = self._fetch(scope, result)

        result.state = PassState.NORMALIZING
        admitted = self._normalize(scope, batches, result, synced_at=synced_at)

        result.state = PassState.UPSERTING
        for record_key, record in admitted.items():
            result.seen_keys.add(record_key)
            try:
                self.store.upsert(record_key, record)
            except StoreWriteError:
                log.exception("Upsert of %s in %s failed", record_key, scope.label)
                result.upsert_failures.append(record_key)
                continue
            result.upserted += 1
        self._write_scope_record(scope, batches, result, synced_at=synced_at)

        result.state = PassState.PURGING
        stale = plan_purge(self.store, scope, result.seen_keys, failed_kinds=result.failed_kinds)
        for record_key in sorted(stale):
            try:
                self.store.delete(scope, record_key)
            except StoreWriteError:
                log.exception("Delete of %s in %s failed", record_key, scope.label)
                result.purge_failures.append(record_key)
                continue
            result.purged += 1

        result.state = PassState.DONE
        log.info(
            "Reconciled %s: fetched=%d, rejected=%d, upserted=%d, purged=%d, failed_feeds=%d",
            scope.label,
            result.fetched,
            result.rejected,
            result.upserted,
            result.purged,
            len(result.feed_failures),
        )

    def _fetch(self, scope: Scope, result: PassResult) -> Batches:
        batches: Batches = {}
        for kind, feed in self.feeds.items():
            if not _feeds_scope(kind, scope):
                continue
            try:
                records = list(feed(scope, kind))
            except Exception as exc:  # noqa: BLE001
                reason = str(exc) or type(exc).__name__
                log.warning("Feed %s failed for %s: %s", kind, scope.label, reason)
                result.feed_failures.append(FeedFailure(kind=kind, reason=reason))
                continue
            result.fetched += len(records)
            batches[kind] = records
        return batches

    def _normalize(
        self,
        scope: Scope,
        batches: Batches,
        result: PassResult,
        *,
        synced_at: datetime,
    ) -> dict[RecordKey, CanonicalRecord]:
        admitted: dict[RecordKey, CanonicalRecord] = {}
        for records in batches.values():
            for record in records:
                if record.origin_scope != scope:
                    log.debug(
                        "Rejecting %s record tagged for %s while reconciling %s",
                        record.kind,
                        record.origin_scope.key,
                        scope.key,
                    )
                    result.rejected += 1
                    continue
                declared = declared_scope(record.payload)
                if not admit(declared, scope):
                    log.debug(
                        "Rejecting %s record %s: belongs to %s, reconciling %s",
                        record.kind,
                        record.raw_identifier,
                        declared,
                        scope.key,
                    )
                    result.rejected += 1
                    continue
                record_key = resolve(scope, record.kind, record.raw_identifier)
                canonical = normalize(
                    record,
                    record_key=record_key,
                    scope=scope,
                    rich_threshold=self.rich_threshold,
                )
                canonical.synced_at = synced_at
                admitted[record_key] = canonical
        return admitted

    def _write_scope_record(
        self,
        scope: Scope,
        batches: Batches,
        result: PassResult,
        *,
        synced_at: datetime,
    ) -> None:
        record: ScopeRecord
        if isinstance(scope, OrdinaryScope):
            record = scope_record_from_scope(scope, synced_at=synced_at)
        else:
            failed = result.failed_kinds
            record = governance_scope_record(
                capacity=_payloads(batches, SourceKind.CAPACITY),
                licensing=_payloads(batches, SourceKind.LICENSE),
                governance=_payloads(batches, SourceKind.DLP_POLICY),
                synced_at=synced_at,
                failed_kinds=failed,
                previous=self.store.scope_record(scope.key) if failed else None,
            )
        try:
            self.store.upsert_scope(record)
        except StoreWriteError:
            log.exception("Scope record upsert for %s failed", scope.label)
            result.scope_record_failed = True


def _feeds_scope(kind: SourceKind, scope: Scope) -> bool:
    if kind is SourceKind.SCOPE_METADATA:
        return False
    return kind.is_tenant_level == scope.is_global


def _payloads(batches: Batches, kind: SourceKind) -> list[Payload]:
    return [record.payload for record in batches.get(kind, ())]


def _is_set(stop: threading.Event | None) -> bool:
    return stop is not None and stop.is_set()
