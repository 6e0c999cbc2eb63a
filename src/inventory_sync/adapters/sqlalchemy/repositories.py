"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from inventory_sync.adapters.sqlalchemy.mappings import canonical_record_table
from inventory_sync.domain.model import CanonicalRecord, ScopeRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

    from inventory_sync.domain.model import RecordKey, SourceKind


class SqlAlchemyCanonicalRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def merge(self, record: CanonicalRecord) -> None:
        self.session.merge(record)

    def keys_in_scope(
        self,
        scope_key: str,
        *,
        exclude_kinds: Iterable[SourceKind] = (),
    ) -> set[RecordKey]:
        stmt = select(canonical_record_table.c.record_key).where(
            canonical_record_table.c.scope_key == scope_key
        )
        excluded = list(exclude_kinds)
        if excluded:
            stmt = stmt.where(canonical_record_table.c.kind.not_in(excluded))
        return set(self.session.execute(stmt).scalars())

    def delete_in_scope(self, scope_key: str, record_key: RecordKey) -> None:
        stmt = (
            delete(canonical_record_table)
            .where(canonical_record_table.c.scope_key == scope_key)
            .where(canonical_record_table.c.record_key == record_key)
        )
        self.session.execute(stmt)

    def find(
        self,
        *,
        scope_key: str | None = None,
        kind: SourceKind | None = None,
    ) -> list[CanonicalRecord]:
        stmt = select(CanonicalRecord)
        if scope_key is not None:
            stmt = stmt.where(canonical_record_table.c.scope_key == scope_key)
        if kind is not None:
            stmt = stmt.where(canonical_record_table.c.kind == kind)
        stmt = stmt.order_by(
            canonical_record_table.c.scope_key,
            canonical_record_table.c.kind,
            canonical_record_table.c.display_name,
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyScopeRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def merge(self, record: ScopeRecord) -> None:
        self.session.merge(record)

    def get(self, scope_key: str) -> ScopeRecord | None:
        return self.session.get(ScopeRecord, scope_key)
