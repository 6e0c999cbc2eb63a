from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from inventory_sync.domain.model import Health, OrdinaryScope, SourceKind, SourceRecord
from inventory_sync.domain.reconciliation.normalize import (
    UNNAMED_ASSET,
    is_rich,
    looks_opaque,
    normalize,
    parse_timestamp,
    resolve_display_name,
    serialize_payload,
)

ENV = OrdinaryScope(id="env-a")
GUID_NAME = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"


def _record(payload: dict[str, object], kind: SourceKind = SourceKind.CANVAS_APP) -> SourceRecord:
    return SourceRecord.from_payload(payload, kind=kind, scope=ENV)


def test_display_name_prefers_properties_display_name() -> None:
    record = _record({"name": "app-1", "displayName": "Root", "properties": {"displayName": "Nested"}})

    assert resolve_display_name(record) == "Nested"


def test_display_name_falls_back_through_chain() -> None:
    assert resolve_display_name(_record({"properties": {"displayname": "lower"}})) == "lower"
    assert resolve_display_name(_record({"properties": {"friendlyname": "Friendly"}})) == "Friendly"
    assert resolve_display_name(_record({"properties": {"skuName": "E5"}})) == "E5"


def test_display_name_defaults_when_nothing_matches() -> None:
    assert resolve_display_name(_record({"properties": {"displayName": "   "}})) == UNNAMED_ASSET


def test_opaque_display_name_is_replaced_by_readable_alternate() -> None:
    record = _record({"properties": {"displayName": GUID_NAME, "name": "Expense Tracker"}})

    assert looks_opaque(GUID_NAME)
    assert resolve_display_name(record) == "Expense Tracker"


def test_opaque_display_name_is_kept_when_alternate_is_also_technical() -> None:
    record = _record({"properties": {"displayName": GUID_NAME, "name": "expense-tracker"}})

    assert resolve_display_name(record) == GUID_NAME


def test_packages_prefer_friendly_name() -> None:
    record = _record(
        {"name": "pkg", "properties": {"displayName": "Display", "friendlyname": "Friendly"}},
        kind=SourceKind.DATAVERSE_SOLUTION,
    )

    assert resolve_display_name(record) == "Friendly"


def test_sites_prefer_name() -> None:
    record = _record(
        {"properties": {"displayName": "Display", "name": "Partner Portal"}},
        kind=SourceKind.POWER_PAGE,
    )

    assert resolve_display_name(record) == "Partner Portal"


def test_normalize_populates_canonical_fields() -> None:
    key = uuid4()
    record = _record(
        {
            "name": "app-1",
            "properties": {
                "displayName": "Expense Tracker",
                "owner": {"displayName": "Ada", "email": "ada@example.com"},
                "status": "Stopped",
                "appVersion": "1.2.3",
                "almMode": "Solution",
                "solutionId": "sol-1",
                "appPlayUri": "https://apps.example/play/app-1",
                "createdTime": "2024-01-07T12:00:00Z",
                "lastModifiedTime": "2024-02-01T08:30:00.1234567+02:00",
            },
        }
    )

    canonical = normalize(record, record_key=key)

    assert canonical.record_key == key
    assert canonical.scope_key == "env-a"
    assert canonical.kind is SourceKind.CANVAS_APP
    assert canonical.display_name == "Expense Tracker"
    assert canonical.owner == "Ada"
    assert canonical.state == "Stopped"
    assert canonical.health is Health.DISABLED
    assert canonical.is_managed is True
    assert canonical.version == "1.2.3"
    assert canonical.parent_container_id == "sol-1"
    assert canonical.launch_url == "https://apps.example/play/app-1"
    assert canonical.created_at == datetime(2024, 1, 7, 12, tzinfo=UTC)
    assert canonical.modified_at == datetime(2024, 2, 1, 6, 30, 0, 123456, tzinfo=UTC)
    assert canonical.external_id == "app-1"


def test_normalize_degrades_malformed_payload_to_defaults() -> None:
    record = _record(
        {
            "properties": {
                "displayName": ["not", "text"],
                "owner": "not-a-mapping",
                "createdTime": "yesterday",
                "isManaged": "maybe",
            }
        }
    )

    canonical = normalize(record, record_key=uuid4())

    assert canonical.display_name == UNNAMED_ASSET
    assert canonical.owner == ""
    assert canonical.state == "Active"
    assert canonical.health is Health.HEALTHY
    assert canonical.is_managed is False
    assert canonical.version == ""
    assert canonical.created_at is None
    assert canonical.external_id is None


def test_owner_chain_falls_back_to_creator_and_publisher() -> None:
    creator = _record({"properties": {"creator": {"email": "c@example.com"}}})
    publisher = _record({"properties": {"publisherDisplayName": "Contoso"}})

    assert normalize(creator, record_key=uuid4()).owner == "c@example.com"
    assert normalize(publisher, record_key=uuid4()).owner == "Contoso"


@pytest.mark.parametrize(
    ("flag", "expected"),
    [(True, True), (False, False), ("true", True), ("False", False), (1, True)],
)
def test_explicit_managed_flag_wins(flag: object, expected: bool) -> None:
    record = _record({"properties": {"isManaged": flag, "almMode": "Solution"}})

    assert normalize(record, record_key=uuid4()).is_managed is expected


def test_small_plain_payload_is_not_retained() -> None:
    record = _record({"name": "a", "properties": {"displayName": "A"}})

    assert normalize(record, record_key=uuid4(), rich_threshold=500).raw_payload is None


def test_large_payload_is_retained_verbatim() -> None:
    payload = {"name": "a", "properties": {"description": "x" * 600}}

    canonical = normalize(_record(payload), record_key=uuid4(), rich_threshold=500)

    assert canonical.raw_payload is not None
    assert json.loads(canonical.raw_payload) == payload


def test_resource_path_or_tags_make_payload_rich() -> None:
    arm = {"id": "/providers/Microsoft.PowerApps/apps/a"}
    tagged = {"id": "a", "tags": {}}
    plain = {"id": "a"}

    assert is_rich(arm, serialize_payload(arm), threshold=500)
    assert is_rich(tagged, serialize_payload(tagged), threshold=500)
    assert not is_rich(plain, serialize_payload(plain), threshold=500)


def test_normalize_targets_given_scope() -> None:
    other = OrdinaryScope(id="env-b")

    canonical = normalize(_record({"name": "a"}), record_key=uuid4(), scope=other)

    assert canonical.scope_key == "env-b"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-01-07T12:00:00Z", datetime(2024, 1, 7, 12, tzinfo=UTC)),
        ("2024-01-07T12:00:00", datetime(2024, 1, 7, 12, tzinfo=UTC)),
        ("2024-01-07T14:00:00+02:00", datetime(2024, 1, 7, 12, tzinfo=UTC)),
        ("", None),
        ("not a date", None),
        ("0001-01-01T00:00:00+01:00", None),
        ("9999-12-31T23:59:59-01:00", None),
        (12345, None),
        (None, None),
    ],
)
def test_parse_timestamp(value: object, expected: datetime | None) -> None:
    assert parse_timestamp(value) == expected


def test_out_of_range_timestamp_leaves_field_empty() -> None:
    record = _record(
        {"name": "app-1", "properties": {"createdTime": "0001-01-01T00:00:00+01:00"}},
    )

    canonical = normalize(record, record_key=uuid4(), scope=ENV)

    assert canonical.created_at is None
    assert canonical.external_id == "app-1"
