"""Synchronization defaults for reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_int_env

DEFAULT_MAX_WORKERS = 4
DEFAULT_RICH_PAYLOAD_THRESHOLD = 500


@dataclass(frozen=True, slots=True)
class SyncConfig:
    max_workers: int = DEFAULT_MAX_WORKERS
    rich_payload_threshold: int = DEFAULT_RICH_PAYLOAD_THRESHOLD
    include_global: bool = True


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        max_workers=optional_int_env(
            "INVENTORY_SYNC_MAX_WORKERS", DEFAULT_MAX_WORKERS, minimum=1
        ),
        rich_payload_threshold=optional_int_env(
            "INVENTORY_SYNC_RICH_THRESHOLD", DEFAULT_RICH_PAYLOAD_THRESHOLD
        ),
    )
