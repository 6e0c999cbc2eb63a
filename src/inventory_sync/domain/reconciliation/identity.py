"""Deterministic record identity.

A record key is the MD5 digest of ``"{scope}_{kind}_{raw_identifier}"`` read
back as a GUID (little-endian field layout). The same logical asset in the same
scope therefore maps to the same key on every pass, while the same raw
identifier in another scope, or under another source kind, maps elsewhere.

Known limitations:
- a digest collision between two distinct triples would merge two records; at
  128 bits this is accepted as negligible.
- a source record without any identifier gets a random one, so it is
  re-created under a fresh key on every pass (and its previous incarnation is
  purged as stale).
"""

from __future__ import annotations

import hashlib
import logging
from uuid import UUID, uuid4

from inventory_sync.domain.model import RecordKey, Scope, SourceKind

log = logging.getLogger(__name__)


def composite_identity(scope: Scope, kind: SourceKind, raw_identifier: str) -> str:
    return f"{scope.key}_{kind.value}_{raw_identifier}"


def resolve(scope: Scope, kind: SourceKind, raw_identifier: str | None) -> RecordKey:
    """Derive the record key for ``raw_identifier`` in ``scope``."""

    identifier = raw_identifier or ""
    if not identifier.strip():
        identifier = str(uuid4())
        log.warning(
            "Record of kind %s in scope %s has no identifier; using random key seed %s",
            kind,
            scope.key,
            identifier,
        )
    digest = hashlib.md5(  # noqa: S324
        composite_identity(scope, kind, identifier).encode("utf-8"),
        usedforsecurity=False,
    ).digest()
    return UUID(bytes_le=digest)
