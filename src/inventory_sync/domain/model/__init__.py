"""Domain model for reconciled inventory records."""

from __future__ import annotations

from .enums import Health, SourceKind
from .records import (
    CanonicalRecord,
    Payload,
    RecordKey,
    ScopeRecord,
    SourceRecord,
    extract_raw_identifier,
)
from .scope import GLOBAL_SCOPE, TENANT_SENTINEL, GlobalScope, OrdinaryScope, Scope, scope_from_key

__all__ = [
    "GLOBAL_SCOPE",
    "TENANT_SENTINEL",
    "CanonicalRecord",
    "GlobalScope",
    "Health",
    "OrdinaryScope",
    "Payload",
    "RecordKey",
    "Scope",
    "ScopeRecord",
    "SourceKind",
    "SourceRecord",
    "extract_raw_identifier",
    "scope_from_key",
]
