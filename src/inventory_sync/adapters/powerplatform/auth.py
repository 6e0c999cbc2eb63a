"""OAuth client-credentials tokens for the tenant's service principal."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from inventory_sync.adapters.http_resilience import ResilientClient

from .errors import PowerPlatformAPIError
from .schema import TokenResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from inventory_sync.config.http_resilience import ResilienceConfig
    from inventory_sync.config.platform import PlatformConfig

log = getLogger(__name__)

_EXPIRY_MARGIN = timedelta(seconds=60)


@dataclass(slots=True, frozen=True)
class AccessToken:
    value: str
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now + _EXPIRY_MARGIN < self.expires_at


class ClientCredentialsTokenProvider:
    """Acquire and cache bearer tokens per audience."""

    def __init__(
        self,
        config: PlatformConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._tokens: dict[str, AccessToken] = {}
        self._lock = threading.Lock()

    async def token_for(self, audience: str) -> str:
        key = audience.rstrip("/")
        with self._lock:
            cached = self._tokens.get(key)
        if cached is not None and cached.is_fresh(self._clock()):
            return cached.value

        token = await self._acquire(key)
        with self._lock:
            self._tokens[key] = token
        return token.value

    async def _acquire(self, audience: str) -> AccessToken:
        log.debug("Requesting token for %s", audience)
        form = {
            "grant_type": "client_credentials",
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "scope": f"{audience}/.default",
        }
        async with self._client_factory(self._config.resilience) as client:
            try:
                response = await client.post(self._config.token_url, data=form)
            except httpx.HTTPError as exc:
                raise PowerPlatformAPIError(
                    f"Token request failed: {exc}", url=self._config.token_url
                ) from exc

        if response.is_error:
            raise PowerPlatformAPIError(
                f"Token request for {audience} rejected",
                status_code=response.status_code,
                url=self._config.token_url,
            )
        try:
            payload = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PowerPlatformAPIError("Unexpected token response payload") from exc

        expires_at = self._clock() + timedelta(seconds=payload.expires_in)
        return AccessToken(value=payload.access_token, expires_at=expires_at)
