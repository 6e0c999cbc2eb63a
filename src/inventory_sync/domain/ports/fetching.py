"""Ports for fetching inventory data from upstream feeds."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from inventory_sync.domain.model import Scope, SourceKind, SourceRecord


@runtime_checkable
class SourceFeed(Protocol):
    """Callable port returning the records one feed holds for one scope.

    Implementations may raise; the engine treats any exception as a failure of
    this feed only.
    """

    def __call__(self, scope: Scope, kind: SourceKind) -> Sequence[SourceRecord]: ...


@runtime_checkable
class ScopeEnumerator(Protocol):
    """Callable port listing the ordinary scopes to reconcile."""

    def __call__(self) -> Sequence[Scope]: ...


__all__ = ["ScopeEnumerator", "SourceFeed"]
