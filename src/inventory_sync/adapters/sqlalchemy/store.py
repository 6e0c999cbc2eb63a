"""``RecordStore`` implementation on top of the SQLAlchemy unit of work."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from inventory_sync.domain.errors import StoreWriteError

from .unit_of_work import SqlAlchemyInventoryUnitOfWork, StartupError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from inventory_sync.domain.model import (
        CanonicalRecord,
        RecordKey,
        Scope,
        ScopeRecord,
        SourceKind,
    )
    from inventory_sync.domain.ports import InventoryUnitOfWork, RecordStore

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], InventoryUnitOfWork]


class SqlAlchemyRecordStore:
    """Session-per-operation record store; every write commits on its own."""

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory | None = None) -> None:
        self._uow_factory = unit_of_work_factory or SqlAlchemyInventoryUnitOfWork

    def is_ready(self) -> bool:
        try:
            with self._uow_factory() as uow:
                uow.repositories.records.keys_in_scope("")
        except (SQLAlchemyError, StartupError) as exc:
            log.error("Record store is not ready: %s", exc)
            return False
        return True

    def upsert(self, record_key: RecordKey, record: CanonicalRecord) -> None:
        if record.record_key != record_key:
            raise StoreWriteError(
                f"Record key mismatch: {record.record_key} stored under {record_key}"
            )
        try:
            with self._uow_factory() as uow:
                uow.repositories.records.merge(record)
                uow.commit()
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Upsert of {record_key} failed: {exc}") from exc

    def list_keys(
        self,
        scope: Scope,
        *,
        exclude_kinds: Iterable[SourceKind] = (),
    ) -> set[RecordKey]:
        with self._uow_factory() as uow:
            return uow.repositories.records.keys_in_scope(scope.key, exclude_kinds=exclude_kinds)

    def delete(self, scope: Scope, record_key: RecordKey) -> None:
        try:
            with self._uow_factory() as uow:
                uow.repositories.records.delete_in_scope(scope.key, record_key)
                uow.commit()
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Delete of {record_key} failed: {exc}") from exc

    def upsert_scope(self, record: ScopeRecord) -> None:
        try:
            with self._uow_factory() as uow:
                uow.repositories.scopes.merge(record)
                uow.commit()
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Scope record upsert for {record.scope_key} failed: {exc}") from exc

    def query(
        self,
        *,
        scope_key: str | None = None,
        kind: SourceKind | None = None,
    ) -> Sequence[CanonicalRecord]:
        with self._uow_factory() as uow:
            return uow.repositories.records.find(scope_key=scope_key, kind=kind)

    def scope_record(self, scope_key: str) -> ScopeRecord | None:
        with self._uow_factory() as uow:
            return uow.repositories.scopes.get(scope_key)


if TYPE_CHECKING:
    _store_check: RecordStore = SqlAlchemyRecordStore()
