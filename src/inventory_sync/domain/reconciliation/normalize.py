"""Normalization of loosely-structured source payloads into canonical records.

Responsibilities of this stage:
- resolve every canonical attribute through an explicit, ordered extractor chain
- degrade missing or malformed fields to defaults instead of raising
- decide whether the raw payload is rich enough to be retained verbatim

Feeds and schema versions disagree on field names (``displayName`` vs
``displayname`` vs ``friendlyname``), and some feeds put everything under a
``properties`` bag while others use the root. The chains below are the single
place where that precedence lives.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, Literal, cast

from inventory_sync.config.sync import DEFAULT_RICH_PAYLOAD_THRESHOLD
from inventory_sync.domain.model import CanonicalRecord, SourceKind

from .health import classify

if TYPE_CHECKING:
    from inventory_sync.domain.model import Payload, RecordKey, Scope, SourceRecord

log = logging.getLogger(__name__)

UNNAMED_ASSET: Final[str] = "Unnamed Asset"
DEFAULT_STATE: Final[str] = "Active"
_OPAQUE_NAME_LENGTH: Final[int] = 30
_RESOURCE_PATH_MARKER: Final[str] = "/providers/Microsoft."
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")

type Anchor = Literal["properties", "root"]


@dataclass(frozen=True, slots=True)
class FieldRef:
    """Extract one (possibly nested) value from a source record.

    ``properties`` anchors at the record's ``properties`` bag, or the payload
    root when the bag is missing; ``root`` always anchors at the payload root.
    """

    anchor: Anchor
    path: tuple[str, ...]

    def __call__(self, record: SourceRecord) -> object | None:
        current: object = record.properties if self.anchor == "properties" else record.payload
        for segment in self.path:
            if not isinstance(current, Mapping):
                return None
            current = cast("Payload", current).get(segment)
        return current

    def text(self, record: SourceRecord) -> str | None:
        return _as_text(self(record))


def prop(*path: str) -> FieldRef:
    return FieldRef("properties", path)


def root(*path: str) -> FieldRef:
    return FieldRef("root", path)


type Chain = tuple[FieldRef, ...]

DISPLAY_NAME_CHAIN: Final[Chain] = (
    prop("displayName"),
    prop("displayname"),
    root("displayName"),
    root("displayname"),
    prop("name"),
    root("name"),
    prop("friendlyname"),
    prop("skuName"),
)
ALTERNATE_NAME_CHAIN: Final[Chain] = (prop("name"), prop("displayname"))
PACKAGE_NAME_CHAIN: Final[Chain] = (prop("friendlyname"), prop("displayName"))
SITE_NAME_CHAIN: Final[Chain] = (prop("name"),)

OWNER_CHAIN: Final[Chain] = (
    prop("owner", "displayName"),
    prop("createdBy", "displayName"),
    prop("creator", "displayName"),
    prop("owner", "email"),
    prop("creator", "email"),
    prop("owner", "userId"),
    prop("creator", "userId"),
    prop("owner", "id"),
    prop("createdBy", "userId"),
    prop("publisherDisplayName"),
)
STATE_CHAIN: Final[Chain] = (prop("state"), prop("status"), prop("provisioningState"))
CREATED_AT_CHAIN: Final[Chain] = (prop("createdTime"), prop("createdOn"), prop("createdon"))
MODIFIED_AT_CHAIN: Final[Chain] = (
    prop("lastModifiedTime"),
    prop("modifiedTime"),
    prop("modifiedOn"),
    prop("modifiedon"),
)
VERSION_CHAIN: Final[Chain] = (prop("version"), prop("appVersion"))
PARENT_CONTAINER_CHAIN: Final[Chain] = (prop("solutionId"), prop("packageId"))
LAUNCH_URL_CHAIN: Final[Chain] = (prop("appPlayUri"), prop("appOpenUri"), prop("siteUrl"))

_KIND_NAME_OVERRIDES: Final[tuple[tuple[Callable[[SourceKind], bool], Chain], ...]] = (
    (lambda kind: kind.is_package, PACKAGE_NAME_CHAIN),
    (lambda kind: kind.is_site, SITE_NAME_CHAIN),
)


def first_text(record: SourceRecord, chain: Chain) -> str | None:
    """Return the first non-blank textual value produced by ``chain``."""

    for ref in chain:
        value = ref.text(record)
        if value is not None:
            return value
    return None


def first_timestamp(record: SourceRecord, chain: Chain) -> datetime | None:
    """Return the first value in ``chain`` that parses as a timestamp."""

    for ref in chain:
        parsed = parse_timestamp(ref(record))
        if parsed is not None:
            return parsed
    return None


def resolve_display_name(record: SourceRecord) -> str:
    name = first_text(record, DISPLAY_NAME_CHAIN) or UNNAMED_ASSET

    if looks_opaque(name):
        alternate = first_text(record, ALTERNATE_NAME_CHAIN)
        if alternate and not looks_opaque(alternate) and "-" not in alternate:
            name = alternate

    for applies, chain in _KIND_NAME_OVERRIDES:
        if applies(record.kind):
            name = first_text(record, chain) or name
    return name


def looks_opaque(name: str) -> bool:
    """Heuristic for GUIDs and technical names masquerading as display names."""
    return len(name) > _OPAQUE_NAME_LENGTH and "-" in name


def resolve_is_managed(record: SourceRecord) -> bool:
    flag = _as_bool(prop("isManaged")(record))
    if flag is not None:
        return flag
    return prop("almMode").text(record) == "Solution"


def serialize_payload(payload: Payload) -> str:
    return json.dumps(payload, default=str, ensure_ascii=False, separators=(",", ":"))


def is_rich(payload: Payload, serialized: str, *, threshold: int) -> bool:
    """Decide whether a payload is worth retaining verbatim."""

    if len(serialized) > threshold:
        return True
    resource_id = payload.get("id")
    if isinstance(resource_id, str) and _RESOURCE_PATH_MARKER in resource_id:
        return True
    return payload.get("tags") is not None


def normalize(
    record: SourceRecord,
    *,
    record_key: RecordKey,
    scope: Scope | None = None,
    rich_threshold: int = DEFAULT_RICH_PAYLOAD_THRESHOLD,
) -> CanonicalRecord:
    """Map ``record`` into its canonical shape. Never raises on odd payloads."""

    target = scope or record.origin_scope
    state = first_text(record, STATE_CHAIN) or DEFAULT_STATE
    serialized = serialize_payload(record.payload)
    retained = serialized if is_rich(record.payload, serialized, threshold=rich_threshold) else None

    return CanonicalRecord(
        record_key=record_key,
        scope_key=target.key,
        kind=record.kind,
        display_name=resolve_display_name(record),
        owner=first_text(record, OWNER_CHAIN) or "",
        state=state,
        health=classify(state),
        is_managed=resolve_is_managed(record),
        version=first_text(record, VERSION_CHAIN) or "",
        parent_container_id=first_text(record, PARENT_CONTAINER_CHAIN),
        launch_url=first_text(record, LAUNCH_URL_CHAIN),
        created_at=first_timestamp(record, CREATED_AT_CHAIN),
        modified_at=first_timestamp(record, MODIFIED_AT_CHAIN),
        external_id=record.raw_identifier,
        raw_payload=retained,
    )


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning ``None`` when it is not one."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        normalized = value.strip()
        if normalized.endswith(("Z", "z")):
            normalized = normalized[:-1] + "+00:00"
        normalized = _EXCESS_FRACTION.sub(r"\1", normalized)
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            log.debug("Ignoring unparseable timestamp %r", value)
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except (OverflowError, ValueError):
        log.debug("Ignoring out-of-range timestamp %r", value)
        return None


def _as_text(value: object) -> str | None:
    if value is None or isinstance(value, Mapping | list):
        return None
    text = str(value).strip()
    return text or None


def _as_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().casefold()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    return None
