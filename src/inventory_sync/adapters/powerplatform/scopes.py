"""Environment enumeration with capacity hydration."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, cast

from inventory_sync.domain.model import TENANT_SENTINEL, OrdinaryScope

from .errors import PowerPlatformAPIError
from .feeds import bap, preview

if TYPE_CHECKING:
    from inventory_sync.domain.model import Payload

    from .client import Endpoint, PowerPlatformClient

log = getLogger(__name__)

CAPACITY_EXPANSION = "properties/capacity"


def environment_listing_chain() -> tuple[Endpoint, ...]:
    return (
        preview("environmentmanagement/environments", **{"$expand": CAPACITY_EXPANSION}),
        bap(
            "scopes/admin/environments",
            api_version="2020-10-01",
            **{"$expand": CAPACITY_EXPANSION},
        ),
        bap(
            "scopes/admin/environments",
            api_version="2016-11-01",
            **{"$expand": "permissions,properties.capacity"},
        ),
    )


def environment_detail(environment_id: str) -> Endpoint:
    return bap(
        f"scopes/admin/environments/{environment_id}",
        api_version="2020-10-01",
        **{"$expand": CAPACITY_EXPANSION},
    )


def _properties(payload: Payload) -> Payload | None:
    properties = payload.get("properties")
    if isinstance(properties, Mapping):
        return cast("Payload", properties)
    return None


def has_capacity(payload: Payload) -> bool:
    properties = _properties(payload)
    return properties is not None and properties.get("capacity") is not None


def _any_capacity(environments: Sequence[Payload]) -> bool:
    return any(has_capacity(environment) for environment in environments)


@dataclass(slots=True)
class PowerPlatformScopeEnumerator:
    """``ScopeEnumerator`` listing every environment of the tenant."""

    client: PowerPlatformClient
    hydrate_capacity: bool = True

    def __call__(self) -> Sequence[OrdinaryScope]:
        environments = self.client.list_first(environment_listing_chain(), accept=_any_capacity)
        log.info("Discovered %d environments", len(environments))

        scopes: list[OrdinaryScope] = []
        for environment in environments:
            scope = self._to_scope(environment)
            if scope is not None:
                scopes.append(scope)
        return scopes

    def _to_scope(self, environment: Payload) -> OrdinaryScope | None:
        identifier = environment.get("name")
        if not isinstance(identifier, str) or not identifier.strip():
            log.warning("Skipping environment without a name: %s", environment.get("id"))
            return None
        identifier = identifier.strip()
        if identifier == TENANT_SENTINEL:
            log.warning("Skipping environment using the reserved tenant id")
            return None

        if self.hydrate_capacity and not has_capacity(environment):
            environment = self._hydrate(identifier, environment)

        properties = _properties(environment) or {}
        display_name = properties.get("displayName")
        return OrdinaryScope(
            id=identifier,
            display_name=display_name if isinstance(display_name, str) else None,
            attributes=environment,
        )

    def _hydrate(self, identifier: str, environment: Payload) -> Payload:
        log.info("Capacity missing for %s; fetching environment detail", identifier)
        try:
            detail = self.client.get_item(environment_detail(identifier))
        except PowerPlatformAPIError as exc:
            log.warning("Capacity hydration failed for %s: %s", identifier, exc)
            return environment

        detail_properties = _properties(detail)
        capacity = detail_properties.get("capacity") if detail_properties else None
        if capacity is None:
            log.info("Hydration yielded no capacity data for %s", identifier)
            return environment

        hydrated = dict(environment)
        hydrated["properties"] = {**(_properties(environment) or {}), "capacity": capacity}
        return hydrated
