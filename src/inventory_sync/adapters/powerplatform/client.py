"""HTTP client for the Power Platform admin and Dataverse Web APIs."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from inventory_sync.adapters.http_resilience import ResilientClient

from .auth import ClientCredentialsTokenProvider
from .errors import PowerPlatformAPIError
from .schema import ErrorResponse, ListResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from inventory_sync.config.http_resilience import ResilienceConfig
    from inventory_sync.config.platform import PlatformConfig
    from inventory_sync.domain.model import Payload

log = getLogger(__name__)

MAX_PAGES = 50

type Accept = Callable[[Sequence[Payload]], bool]
type Reshape = Callable[[Payload], Payload]


@dataclass(slots=True, frozen=True)
class Endpoint:
    """One GET endpoint, the token audience it requires and an optional item reshape."""

    audience: str
    url: str
    params: Mapping[str, str] = field(default_factory=dict[str, str])
    reshape: Reshape | None = field(default=None, compare=False)

    def __str__(self) -> str:
        return self.url


def _non_empty(items: Sequence[Payload]) -> bool:
    return bool(items)


class PowerPlatformClient:
    """Low-level client; every public call runs its own event loop."""

    def __init__(
        self,
        *,
        config: PlatformConfig,
        token_provider: ClientCredentialsTokenProvider | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._tokens = token_provider or ClientCredentialsTokenProvider(
            config, client_factory=self._client_factory
        )

    def list_items(self, endpoint: Endpoint) -> list[Payload]:
        return asyncio.run(self._list_first_async((endpoint,), accept=_non_empty))

    def list_first(
        self,
        endpoints: Sequence[Endpoint],
        *,
        accept: Accept | None = None,
    ) -> list[Payload]:
        """Walk ``endpoints`` in order and return the first acceptable listing.

        When no listing is acceptable the first successful one is returned;
        when every endpoint fails the last error is raised.
        """

        return asyncio.run(self._list_first_async(endpoints, accept=accept or _non_empty))

    def get_item(self, endpoint: Endpoint) -> Payload:
        return asyncio.run(self._get_item_async(endpoint))

    async def _list_first_async(
        self,
        endpoints: Sequence[Endpoint],
        *,
        accept: Accept,
    ) -> list[Payload]:
        fallback: list[Payload] | None = None
        last_error: PowerPlatformAPIError | None = None

        async with self._client_factory(self._resilience) as client:
            for endpoint in endpoints:
                try:
                    items = await self._collect(client, endpoint)
                except PowerPlatformAPIError as exc:
                    log.info("Endpoint %s unavailable: %s", endpoint, exc)
                    last_error = exc
                    continue
                if accept(items):
                    return items
                if fallback is None:
                    fallback = items

        if fallback is not None:
            return fallback
        if last_error is not None:
            raise last_error
        raise PowerPlatformAPIError("No endpoints to query")

    async def _get_item_async(self, endpoint: Endpoint) -> Payload:
        async with self._client_factory(self._resilience) as client:
            payload = await self._get_json(client, endpoint.audience, endpoint.url, endpoint.params)
        if not isinstance(payload, Mapping):
            raise PowerPlatformAPIError("Expected a JSON object", url=endpoint.url)
        return payload  # pyright: ignore[reportUnknownVariableType]

    async def _collect(self, client: ResilientClient, endpoint: Endpoint) -> list[Payload]:
        items: list[Payload] = []
        url = endpoint.url
        params: Mapping[str, str] | None = endpoint.params
        for _ in range(MAX_PAGES):
            payload = await self._get_json(client, endpoint.audience, url, params)
            if isinstance(payload, list):
                payload = {"value": payload}
            try:
                page = ListResponse.model_validate(payload)
            except ValidationError as exc:
                raise PowerPlatformAPIError("Unexpected list payload", url=url) from exc
            if endpoint.reshape is None:
                items.extend(page.value)
            else:
                items.extend(endpoint.reshape(item) for item in page.value)
            if not page.next_link:
                return items
            url, params = page.next_link, None
        log.warning("Stopped paging %s after %d pages", endpoint, MAX_PAGES)
        return items

    async def _get_json(
        self,
        client: ResilientClient,
        audience: str,
        url: str,
        params: Mapping[str, str] | None,
    ) -> object:
        token = await self._tokens.token_for(audience)
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            response = await client.get(url, params=dict(params) if params else None, headers=headers)
        except httpx.HTTPError as exc:
            raise PowerPlatformAPIError(f"Request failed: {exc}", url=url) from exc

        if response.is_error:
            raise PowerPlatformAPIError(
                f"HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
                url=url,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise PowerPlatformAPIError("Response is not JSON", url=url) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        error = ErrorResponse.model_validate(response.json()).error
    except ValueError:
        return response.text[:150]
    return error.message or error.code or response.reason_phrase
