"""Isolation boundaries for reconciled records.

A scope is either one ordinary platform environment or the tenant-wide global
aggregate. Isolation and purge exemptions branch on the variant, never on the
persisted sentinel string.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import ClassVar, Final

TENANT_SENTINEL: Final[str] = "00000000-0000-0000-0000-000000000000"


@dataclass(frozen=True, slots=True)
class OrdinaryScope:
    """One platform environment, identified by its upstream id."""

    id: str
    display_name: str | None = field(default=None, compare=False)
    attributes: Mapping[str, object] = field(
        default_factory=dict[str, object], compare=False, hash=False, repr=False
    )

    is_global: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Ordinary scope id must not be blank")
        if self.id.strip() == TENANT_SENTINEL:
            raise ValueError("The tenant sentinel id is reserved for the global scope")

    @property
    def key(self) -> str:
        return self.id

    @property
    def label(self) -> str:
        return self.display_name or self.id


@dataclass(frozen=True, slots=True)
class GlobalScope:
    """The tenant-wide aggregate scope."""

    is_global: ClassVar[bool] = True

    @property
    def key(self) -> str:
        return TENANT_SENTINEL

    @property
    def label(self) -> str:
        return "Global Tenant"


type Scope = OrdinaryScope | GlobalScope

GLOBAL_SCOPE: Final[GlobalScope] = GlobalScope()


def scope_from_key(key: str) -> Scope:
    """Rebuild a scope from its persisted key."""

    if key.strip() == TENANT_SENTINEL:
        return GLOBAL_SCOPE
    return OrdinaryScope(id=key)
