"""Scope guard: keep records of sibling scopes out of the current pass."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, cast

from inventory_sync.domain.model import OrdinaryScope

if TYPE_CHECKING:
    from inventory_sync.domain.model import Payload, Scope


def declared_scope(payload: Payload) -> str | None:
    """Return the environment a payload claims to belong to, if any."""

    properties = payload.get("properties")
    bag = cast("Payload", properties) if isinstance(properties, Mapping) else payload
    environment = bag.get("environment")
    if not isinstance(environment, Mapping):
        return None
    environment = cast("Payload", environment)

    name = environment.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()

    resource_id = environment.get("id")
    if isinstance(resource_id, str):
        segments = [segment for segment in resource_id.split("/") if segment]
        if segments:
            return segments[-1]
    return None


def admit(declared: str | None, target: Scope) -> bool:
    """Return whether a record declaring ``declared`` may be stored under ``target``."""

    if not declared:
        return True
    if not isinstance(target, OrdinaryScope):
        return True
    return declared.casefold() == target.id.casefold()
