"""Scope-level records: one row per environment plus the tenant governance row."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Final, cast

from inventory_sync.domain.model import GLOBAL_SCOPE, ScopeRecord, SourceKind, SourceRecord

from .normalize import first_text, first_timestamp, prop, root

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import datetime

    from inventory_sync.domain.model import OrdinaryScope, Payload

UNNAMED_SCOPE: Final[str] = "Unnamed"
GOVERNANCE_DISPLAY_NAME: Final[str] = "Global Tenant Governance"
GOVERNANCE_TYPE: Final[str] = "Tenant"

_REGION_CHAIN = (prop("azureRegion"), prop("location"), root("location"))
_TYPE_CHAIN = (prop("type"), prop("environmentSku"))

_SECTIONS: Final[dict[SourceKind, str]] = {
    SourceKind.CAPACITY: "capacity",
    SourceKind.LICENSE: "licensing",
    SourceKind.DLP_POLICY: "governance",
}

log = logging.getLogger(__name__)


def scope_record_from_scope(scope: OrdinaryScope, *, synced_at: datetime) -> ScopeRecord:
    """Build the scope row from the payload the scope was enumerated with."""

    source = SourceRecord(
        kind=SourceKind.SCOPE_METADATA,
        origin_scope=scope,
        payload=scope.attributes,
    )
    return ScopeRecord(
        scope_key=scope.key,
        display_name=(
            first_text(source, (prop("displayName"),)) or scope.display_name or UNNAMED_SCOPE
        ),
        environment_type=first_text(source, _TYPE_CHAIN) or "",
        sku=first_text(source, (prop("environmentSku"),)) or "",
        region=first_text(source, _REGION_CHAIN) or "",
        provisioning_state=first_text(source, (prop("provisioningState"),)) or "",
        is_default=prop("isDefault")(source) is True,
        instance_url=first_text(source, (prop("linkedEnvironmentMetadata", "instanceUrl"),)),
        created_at=first_timestamp(source, (prop("createdTime"),)),
        modified_at=first_timestamp(source, (prop("lastModifiedTime"),)),
        metadata=_dumps(scope.attributes) if scope.attributes else None,
        synced_at=synced_at,
    )


def scavenge_licenses(capacity: Iterable[Payload]) -> list[Payload]:
    """Collect licenses nested in capacity entitlements, one per SKU."""

    seen_skus: set[str] = set()
    licenses: list[Payload] = []
    for entry in capacity:
        for entitlement in _mappings(entry.get("capacityEntitlements")):
            for license_ in _mappings(entitlement.get("licenses")):
                sku = license_.get("skuId")
                if sku is None or str(sku) in seen_skus:
                    continue
                seen_skus.add(str(sku))
                licenses.append(license_)
    return licenses


def governance_scope_record(
    *,
    capacity: Sequence[Payload],
    licensing: Sequence[Payload],
    governance: Sequence[Payload],
    synced_at: datetime,
    failed_kinds: Collection[SourceKind] = (),
    previous: ScopeRecord | None = None,
) -> ScopeRecord:
    """Aggregate tenant-level feeds into the global scope row.

    Sections whose feed failed keep what ``previous`` held for them.
    """

    metadata: dict[str, object] = {
        "capacity": list(capacity),
        "licensing": list(licensing) or scavenge_licenses(capacity),
        "governance": list(governance),
    }
    stored = _stored_sections(previous)
    for kind, section in _SECTIONS.items():
        if kind in failed_kinds and section in stored:
            metadata[section] = stored[section]
    metadata["lastSync"] = synced_at.isoformat()
    return ScopeRecord(
        scope_key=GLOBAL_SCOPE.key,
        display_name=GOVERNANCE_DISPLAY_NAME,
        environment_type=GOVERNANCE_TYPE,
        is_default=True,
        metadata=_dumps(metadata),
        synced_at=synced_at,
    )


def _stored_sections(previous: ScopeRecord | None) -> dict[str, object]:
    if previous is None or not previous.metadata:
        return {}
    try:
        decoded = json.loads(previous.metadata)
    except ValueError:
        log.warning("Stored governance metadata is not JSON; not carrying it over")
        return {}
    return cast("dict[str, object]", decoded) if isinstance(decoded, dict) else {}


def _mappings(value: object) -> list[Payload]:
    if not isinstance(value, Sequence) or isinstance(value, str | bytes):
        return []
    items = cast("Sequence[object]", value)
    return [cast("Payload", item) for item in items if isinstance(item, Mapping)]


def _dumps(value: object) -> str:
    return json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":"))
