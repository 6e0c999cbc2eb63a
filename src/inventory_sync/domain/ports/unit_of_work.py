"""Transaction boundary over the inventory repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self

if TYPE_CHECKING:
    from types import TracebackType

    from inventory_sync.domain.ports.persistence import (
        CanonicalRecordRepository,
        ScopeRecordRepository,
    )


@dataclass(slots=True)
class InventoryRepositories:
    records: CanonicalRecordRepository
    scopes: ScopeRecordRepository


class InventoryUnitOfWork(Protocol):
    """Context manager that owns one transaction.

    Leaving the block with an exception rolls back; nothing is committed
    unless ``commit`` is called inside the block.
    """

    @property
    def repositories(self) -> InventoryRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
