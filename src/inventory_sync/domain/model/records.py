"""Source and canonical record shapes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, cast

from .enums import Health, SourceKind

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from .scope import Scope

type RecordKey = UUID
type Payload = Mapping[str, object]

_IDENTIFIER_FIELDS: Final[tuple[str, ...]] = (
    "name",
    "workflowid",
    "canvasappid",
    "solutionid",
    "id",
)


def extract_raw_identifier(payload: Payload) -> str | None:
    """Return the first usable identifier found at the payload root."""

    for name in _IDENTIFIER_FIELDS:
        value = payload.get(name)
        if value is None or isinstance(value, Mapping | list | bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


@dataclass(frozen=True, slots=True)
class SourceRecord:
    """A loosely-structured payload as handed over by one source feed."""

    kind: SourceKind
    origin_scope: Scope
    payload: Payload = field(repr=False)
    raw_identifier: str | None = None

    @classmethod
    def from_payload(cls, payload: Payload, *, kind: SourceKind, scope: Scope) -> SourceRecord:
        return cls(
            kind=kind,
            origin_scope=scope,
            payload=payload,
            raw_identifier=extract_raw_identifier(payload),
        )

    @property
    def properties(self) -> Payload:
        """Nested ``properties`` bag, falling back to the payload root."""

        nested = self.payload.get("properties")
        if isinstance(nested, Mapping):
            return cast(Payload, nested)
        return self.payload


@dataclass(kw_only=True, eq=False)
class CanonicalRecord:
    """The reconciled, persisted form of one asset."""

    record_key: RecordKey
    scope_key: str
    kind: SourceKind
    display_name: str
    owner: str = ""
    state: str = "Active"
    health: Health = Health.HEALTHY
    is_managed: bool = False
    version: str = ""
    parent_container_id: str | None = None
    launch_url: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    external_id: str | None = None
    raw_payload: str | None = None
    synced_at: datetime | None = None

    def snapshot(self) -> dict[str, object]:
        """Comparable view of the record that ignores sync bookkeeping."""

        return {
            "record_key": self.record_key,
            "scope_key": self.scope_key,
            "kind": self.kind,
            "display_name": self.display_name,
            "owner": self.owner,
            "state": self.state,
            "health": self.health,
            "is_managed": self.is_managed,
            "version": self.version,
            "parent_container_id": self.parent_container_id,
            "launch_url": self.launch_url,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "external_id": self.external_id,
            "raw_payload": self.raw_payload,
        }


@dataclass(kw_only=True, eq=False)
class ScopeRecord:
    """Scope-level attributes plus an aggregate metadata blob."""

    scope_key: str
    display_name: str
    environment_type: str = ""
    sku: str = ""
    region: str = ""
    provisioning_state: str = ""
    is_default: bool = False
    instance_url: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    metadata: str | None = None
    synced_at: datetime | None = None
