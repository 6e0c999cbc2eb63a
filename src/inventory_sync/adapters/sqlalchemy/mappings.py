"""SQLAlchemy mapping metadata for reconciled inventory records."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from inventory_sync.domain.model import CanonicalRecord, Health, ScopeRecord, SourceKind

log = logging.getLogger(__name__)

RecordKeyType = Uuid[uuid.UUID]

SCOPE_KEY_LENGTH = 64


class UTCDateTime(TypeDecorator[datetime]):
    """Timestamps go in and come out timezone-aware in UTC; naive input is taken as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    @staticmethod
    def _as_utc(value: datetime | None) -> datetime | None:
        if value is None or value.tzinfo is not None:
            return value
        return value.replace(tzinfo=UTC)

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        aware = self._as_utc(value)
        return None if aware is None else aware.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        # SQLite drops the offset on the way back
        return self._as_utc(value)


NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "ix": "ix_%(table_name)s_%(column_0_name)s",
}

mapper_registry = orm.registry(metadata=MetaData(naming_convention=NAMING_CONVENTION))

canonical_record_table = Table(
    "canonical_record",
    mapper_registry.metadata,
    Column("record_key", RecordKeyType, primary_key=True),
    Column("scope_key", String(SCOPE_KEY_LENGTH), nullable=False),
    Column("kind", Enum(SourceKind, native_enum=False, length=32), nullable=False),
    Column("display_name", String(512), nullable=False),
    Column("owner", String(512), nullable=False, default=""),
    Column("state", String(128), nullable=False, default="Active"),
    Column("health", Enum(Health, native_enum=False, length=16), nullable=False),
    Column("is_managed", Boolean, nullable=False, default=False),
    Column("version", String(64), nullable=False, default=""),
    Column("parent_container_id", String(128), nullable=True),
    Column("launch_url", String(2048), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("modified_at", UTCDateTime(), nullable=True),
    Column("external_id", String(512), nullable=True),
    Column("raw_payload", Text, nullable=True),
    Column("synced_at", UTCDateTime(), nullable=True),
    Index("ix_canonical_record_scope_kind", "scope_key", "kind"),
)

scope_record_table = Table(
    "scope_record",
    mapper_registry.metadata,
    Column("scope_key", String(SCOPE_KEY_LENGTH), primary_key=True),
    Column("display_name", String(512), nullable=False),
    Column("environment_type", String(64), nullable=False, default=""),
    Column("sku", String(64), nullable=False, default=""),
    Column("region", String(64), nullable=False, default=""),
    Column("provisioning_state", String(64), nullable=False, default=""),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("instance_url", String(2048), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("modified_at", UTCDateTime(), nullable=True),
    Column("metadata", Text, nullable=True),
    Column("synced_at", UTCDateTime(), nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Map the domain record classes onto their tables once per process."""

    log.debug("Mapping inventory records")

    mapper_registry.map_imperatively(CanonicalRecord, canonical_record_table)
    mapper_registry.map_imperatively(ScopeRecord, scope_record_table)

    configure_mappers()
    return mapper_registry

