"""Public interface for the Power Platform adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .auth import ClientCredentialsTokenProvider
from .client import Endpoint, PowerPlatformClient
from .errors import PowerPlatformAPIError
from .feeds import PowerPlatformSourceFeed, build_feeds
from .scopes import PowerPlatformScopeEnumerator

if TYPE_CHECKING:
    from inventory_sync.config.platform import PlatformConfig


def build_http_client(config: PlatformConfig) -> PowerPlatformClient:
    return PowerPlatformClient(config=config)


__all__ = [
    "ClientCredentialsTokenProvider",
    "Endpoint",
    "PowerPlatformAPIError",
    "PowerPlatformClient",
    "PowerPlatformScopeEnumerator",
    "PowerPlatformSourceFeed",
    "build_feeds",
    "build_http_client",
]
