from __future__ import annotations

from collections.abc import Callable  # noqa: TC003
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from inventory_sync.adapters.http_resilience import ResilientClient
from inventory_sync.adapters.powerplatform import (
    ClientCredentialsTokenProvider,
    Endpoint,
    PowerPlatformAPIError,
    PowerPlatformClient,
)
from inventory_sync.config import PlatformConfig, ResilienceConfig, RetryPolicy

TOKEN_HOST = "login.microsoftonline.com"
API = "https://api.example.test"

Handler = Callable[[httpx.Request], httpx.Response]


def _config() -> PlatformConfig:
    return PlatformConfig(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="secret",
        resilience=ResilienceConfig(name="test", retry=RetryPolicy.disabled()),
    )


def _factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return factory


def _with_token(handler: Handler, token_requests: list[httpx.Request] | None = None) -> Handler:
    def route(request: httpx.Request) -> httpx.Response:
        if request.url.host == TOKEN_HOST:
            if token_requests is not None:
                token_requests.append(request)
            return httpx.Response(200, json={"access_token": "tok", "expires_in": "3600"})
        assert request.headers["Authorization"] == "Bearer tok"
        return handler(request)

    return route


def _client(handler: Handler, token_requests: list[httpx.Request] | None = None) -> PowerPlatformClient:
    return PowerPlatformClient(
        config=_config(), client_factory=_factory(_with_token(handler, token_requests))
    )


def test_list_items_follows_next_links() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/apps":
            assert request.url.params["api-version"] == "1"
            return httpx.Response(
                200, json={"value": [{"name": "a"}], "@odata.nextLink": f"{API}/apps/page2"}
            )
        return httpx.Response(200, json={"value": [{"name": "b"}, "junk"]})

    items = _client(handler).list_items(Endpoint(audience=API, url=f"{API}/apps", params={"api-version": "1"}))

    assert items == [{"name": "a"}, {"name": "b"}]


def test_list_first_skips_failing_and_empty_endpoints() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        match request.url.path:
            case "/broken":
                return httpx.Response(404, json={"error": {"code": "NotFound", "message": "gone"}})
            case "/empty":
                return httpx.Response(200, json={"value": []})
            case _:
                return httpx.Response(200, json={"tenantCapacities": [{"capacityType": "Database"}]})

    chain = [Endpoint(audience=API, url=f"{API}/{path}") for path in ("broken", "empty", "full")]

    assert _client(handler).list_first(chain) == [{"capacityType": "Database"}]


def test_list_first_returns_first_success_when_nothing_is_accepted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/broken":
            return httpx.Response(400, text="bad")
        return httpx.Response(200, json={"value": []})

    chain = [Endpoint(audience=API, url=f"{API}/{path}") for path in ("broken", "empty")]

    assert _client(handler).list_first(chain) == []


def test_list_first_raises_last_error_when_every_endpoint_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": "Forbidden", "message": "denied"}})

    with pytest.raises(PowerPlatformAPIError, match="HTTP 403: denied") as excinfo:
        _client(handler).list_first([Endpoint(audience=API, url=f"{API}/x")])

    assert excinfo.value.status_code == 403


def test_reshape_is_applied_to_every_item() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"value": [{"id": "1"}, {"id": "2"}]})

    endpoint = Endpoint(audience=API, url=f"{API}/rows", reshape=lambda row: {"name": row["id"]})

    assert _client(handler).list_items(endpoint) == [{"name": "1"}, {"name": "2"}]


def test_get_item_rejects_non_objects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    with pytest.raises(PowerPlatformAPIError):
        _client(handler).get_item(Endpoint(audience=API, url=f"{API}/one"))


def test_tokens_are_cached_per_audience() -> None:
    token_requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"value": [{"name": "a"}]})

    client = _client(handler, token_requests)
    client.list_items(Endpoint(audience=API, url=f"{API}/a"))
    client.list_items(Endpoint(audience=f"{API}/", url=f"{API}/b"))
    client.list_items(Endpoint(audience="https://other.test", url=f"{API}/c"))

    assert len(token_requests) == 2
    body = token_requests[0].content.decode()
    assert "grant_type=client_credentials" in body
    assert "scope=https%3A%2F%2Fapi.example.test%2F.default" in body
    assert token_requests[0].url.path == "/tenant-1/oauth2/v2.0/token"


def test_expired_tokens_are_refreshed() -> None:
    token_requests: list[httpx.Request] = []
    now = datetime(2025, 1, 1, tzinfo=UTC)
    clock = [now]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"value": []})

    config = _config()
    factory = _factory(_with_token(handler, token_requests))
    provider = ClientCredentialsTokenProvider(config, client_factory=factory, clock=lambda: clock[0])
    client = PowerPlatformClient(config=config, token_provider=provider, client_factory=factory)

    client.list_items(Endpoint(audience=API, url=f"{API}/a"))
    clock[0] = now + timedelta(seconds=3590)
    client.list_items(Endpoint(audience=API, url=f"{API}/a"))

    assert len(token_requests) == 2


def test_rejected_token_request_raises() -> None:
    def route(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_client"})

    client = PowerPlatformClient(config=_config(), client_factory=_factory(route))

    with pytest.raises(PowerPlatformAPIError, match="Token request"):
        client.list_items(Endpoint(audience=API, url=f"{API}/a"))
