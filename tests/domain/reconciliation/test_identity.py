from __future__ import annotations

import hashlib
from uuid import UUID

from inventory_sync.domain.model import GLOBAL_SCOPE, TENANT_SENTINEL, OrdinaryScope, SourceKind
from inventory_sync.domain.reconciliation.identity import composite_identity, resolve

ENV_A = OrdinaryScope(id="env-a")
ENV_B = OrdinaryScope(id="env-b")


def test_resolve_is_deterministic() -> None:
    first = resolve(ENV_A, SourceKind.CANVAS_APP, "app-1")
    second = resolve(OrdinaryScope(id="env-a", display_name="Renamed"), SourceKind.CANVAS_APP, "app-1")

    assert first == second


def test_resolve_matches_md5_digest_read_as_little_endian_guid() -> None:
    digest = hashlib.md5(b"env-a_Canvas App_app-1").digest()  # noqa: S324

    assert resolve(ENV_A, SourceKind.CANVAS_APP, "app-1") == UUID(bytes_le=digest)


def test_same_identifier_in_two_scopes_gets_two_keys() -> None:
    assert resolve(ENV_A, SourceKind.CANVAS_APP, "app-1") != resolve(
        ENV_B, SourceKind.CANVAS_APP, "app-1"
    )


def test_same_identifier_under_two_kinds_gets_two_keys() -> None:
    flow = resolve(ENV_A, SourceKind.CLOUD_FLOW, "wf-1")
    workflow = resolve(ENV_A, SourceKind.DATAVERSE_WORKFLOW, "wf-1")

    assert flow != workflow


def test_global_scope_composes_with_sentinel() -> None:
    assert composite_identity(GLOBAL_SCOPE, SourceKind.LICENSE, "sku") == (
        f"{TENANT_SENTINEL}_License_sku"
    )


def test_missing_identifier_gets_random_key() -> None:
    first = resolve(ENV_A, SourceKind.USER, None)
    second = resolve(ENV_A, SourceKind.USER, "   ")

    assert first != second
