from __future__ import annotations

from collections.abc import Sequence  # noqa: TC003

import pytest

from inventory_sync.adapters.powerplatform import (
    Endpoint,
    PowerPlatformAPIError,
    PowerPlatformScopeEnumerator,
    PowerPlatformSourceFeed,
    build_feeds,
)
from inventory_sync.adapters.powerplatform.feeds import (
    reshape_adx_website,
    reshape_dataverse_solution,
    reshape_dataverse_workflow,
    scope_chain,
    tenant_chain,
)
from inventory_sync.domain.errors import FeedFetchError
from inventory_sync.domain.model import (
    GLOBAL_SCOPE,
    TENANT_SENTINEL,
    OrdinaryScope,
    Payload,
    SourceKind,
)

INSTANCE = "https://contoso.crm4.dynamics.com/"
LINKED = OrdinaryScope(
    id="env-a",
    attributes={"properties": {"linkedEnvironmentMetadata": {"instanceUrl": INSTANCE}}},
)
BARE = OrdinaryScope(id="env-b")


class _RecordingClient:
    """Stands in for ``PowerPlatformClient``; answers per URL substring."""

    def __init__(
        self,
        listings: dict[str, list[Payload]] | None = None,
        details: dict[str, Payload | Exception] | None = None,
    ) -> None:
        self.listings = listings or {}
        self.details = details or {}
        self.chains: list[list[Endpoint]] = []

    def list_first(self, endpoints: Sequence[Endpoint], *, accept: object = None) -> list[Payload]:
        self.chains.append(list(endpoints))
        for endpoint in endpoints:
            for fragment, items in self.listings.items():
                if fragment in endpoint.url:
                    return list(items)
        return []

    def get_item(self, endpoint: Endpoint) -> Payload:
        for fragment, detail in self.details.items():
            if fragment in endpoint.url:
                if isinstance(detail, Exception):
                    raise detail
                return detail
        raise PowerPlatformAPIError("not found", status_code=404, url=endpoint.url)


def test_tenant_chains_fall_back_across_api_generations() -> None:
    capacity = [str(endpoint) for endpoint in tenant_chain(SourceKind.CAPACITY)]

    assert capacity[0].endswith("/licensing/tenantCapacity")
    assert capacity[-1].startswith("https://api.bap.microsoft.com")
    assert tenant_chain(SourceKind.CANVAS_APP) == ()


def test_dataverse_kinds_need_an_instance_url() -> None:
    assert scope_chain(SourceKind.DATAVERSE_WORKFLOW, BARE) == ()

    (endpoint,) = scope_chain(SourceKind.DATAVERSE_WORKFLOW, LINKED)
    assert endpoint.url == "https://contoso.crm4.dynamics.com/api/data/v9.2/workflows"
    assert endpoint.audience == "https://contoso.crm4.dynamics.com"
    assert endpoint.params["$filter"] == "category eq 5"


def test_power_pages_fall_back_to_dataverse_tables() -> None:
    assert len(scope_chain(SourceKind.POWER_PAGE, BARE)) == 1

    urls = [endpoint.url for endpoint in scope_chain(SourceKind.POWER_PAGE, LINKED)]
    assert urls[0].endswith("/powerpages/environments/env-a/websites")
    assert [url.rsplit("/", 1)[-1] for url in urls[1:]] == [
        "adx_websites",
        "powerpagesites",
        "mspp_websites",
    ]


def test_dataverse_rows_are_reshaped_into_envelopes() -> None:
    solution = reshape_dataverse_solution(
        {
            "solutionid": "sol-1",
            "friendlyname": "Core",
            "uniquename": "core",
            "ismanaged": True,
            "publisherid": {"friendlyname": "Contoso"},
            "modifiedon": None,
        }
    )
    workflow = reshape_dataverse_workflow({"workflowid": "wf-1", "name": "Approve"})
    site = reshape_adx_website({"adx_websiteid": "w-1", "adx_primarydomainname": "portal.example"})

    assert solution == {
        "name": "sol-1",
        "properties": {
            "displayName": "Core",
            "name": "core",
            "isManaged": True,
            "publisherDisplayName": "Contoso",
        },
    }
    assert workflow == {"name": "wf-1", "properties": {"displayName": "Approve"}}
    assert site["properties"]["siteUrl"] == "https://portal.example"  # type: ignore[index]


def test_feed_wraps_payloads_as_source_records() -> None:
    client = _RecordingClient({"/apps": [{"name": "app-1"}, {"properties": {}}]})
    feed = PowerPlatformSourceFeed(client)  # type: ignore[arg-type]

    records = feed(BARE, SourceKind.CANVAS_APP)

    assert [record.raw_identifier for record in records] == ["app-1", None]
    assert all(record.origin_scope == BARE for record in records)
    assert all(record.kind is SourceKind.CANVAS_APP for record in records)


def test_feed_returns_nothing_without_endpoints() -> None:
    client = _RecordingClient()
    feed = PowerPlatformSourceFeed(client)  # type: ignore[arg-type]

    assert feed(BARE, SourceKind.DATAVERSE_SOLUTION) == []
    assert feed(GLOBAL_SCOPE, SourceKind.USER) == []
    assert client.chains == []


def test_feed_errors_propagate() -> None:
    class _Failing(_RecordingClient):
        def list_first(self, endpoints: Sequence[Endpoint], *, accept: object = None) -> list[Payload]:
            raise PowerPlatformAPIError("HTTP 500: boom", status_code=500)

    feed = PowerPlatformSourceFeed(_Failing())  # type: ignore[arg-type]

    with pytest.raises(FeedFetchError, match="boom") as excinfo:
        feed(BARE, SourceKind.CLOUD_FLOW)

    assert excinfo.value.kind == "Cloud Flow"
    assert excinfo.value.scope_key == "env-b"
    assert isinstance(excinfo.value.__cause__, PowerPlatformAPIError)


def test_build_feeds_covers_every_fetchable_kind() -> None:
    feeds = build_feeds(_RecordingClient(), skip=[SourceKind.USER])  # type: ignore[arg-type]

    assert SourceKind.SCOPE_METADATA not in feeds
    assert SourceKind.USER not in feeds
    assert SourceKind.CANVAS_APP in feeds
    assert SourceKind.LICENSE in feeds


def test_enumerator_builds_scopes_and_hydrates_capacity() -> None:
    environments: list[Payload] = [
        {"name": "env-a", "properties": {"displayName": "Prod", "capacity": [{"type": "db"}]}},
        {"name": "env-b", "properties": {"displayName": "Dev"}},
        {"name": "env-c", "properties": {"displayName": "Test"}},
        {"id": "/environments/nameless"},
        {"name": TENANT_SENTINEL},
    ]
    client = _RecordingClient(
        listings={"environmentmanagement/environments": environments},
        details={
            "environments/env-b": {"properties": {"capacity": [{"type": "file"}]}},
            "environments/env-c": PowerPlatformAPIError("HTTP 404: missing", status_code=404),
        },
    )

    scopes = PowerPlatformScopeEnumerator(client)()  # type: ignore[arg-type]

    assert [scope.id for scope in scopes] == ["env-a", "env-b", "env-c"]
    assert [scope.label for scope in scopes] == ["Prod", "Dev", "Test"]
    hydrated = scopes[1].attributes["properties"]
    assert hydrated == {"displayName": "Dev", "capacity": [{"type": "file"}]}
    assert "capacity" not in scopes[2].attributes["properties"]  # type: ignore[operator]


def test_enumerator_can_skip_hydration() -> None:
    client = _RecordingClient(
        listings={"environmentmanagement/environments": [{"name": "env-b", "properties": {}}]},
        details={"environments/env-b": AssertionError("should not hydrate")},
    )

    scopes = PowerPlatformScopeEnumerator(client, hydrate_capacity=False)()  # type: ignore[arg-type]

    assert [scope.id for scope in scopes] == ["env-b"]
