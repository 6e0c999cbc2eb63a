"""Error taxonomy for reconciliation runs."""

from __future__ import annotations


class InventorySyncError(RuntimeError):
    """Base class for reconciliation errors."""


class FeedFetchError(InventorySyncError):
    """Raised by a source feed that could not deliver records for a scope."""

    def __init__(self, message: str, *, kind: str | None = None, scope_key: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.scope_key = scope_key


class StoreUnavailableError(InventorySyncError):
    """Raised when the record store fails its readiness check; fatal for a run."""


class StoreWriteError(InventorySyncError):
    """Raised by a record store when a single write could not be applied."""
