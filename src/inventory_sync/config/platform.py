"""Power Platform tenant configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

POWERPLATFORM_TIMEOUT_SECONDS = 60.0
LOGIN_AUTHORITY = "https://login.microsoftonline.com"


def _default_resilience() -> ResilienceConfig:
    return ResilienceConfig(
        name="powerplatform",
        timeout_seconds=POWERPLATFORM_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={"User-Agent": "inventory-sync"},
    )


@dataclass(frozen=True)
class PlatformConfig:
    """Service principal used to query the tenant's admin APIs."""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    authority: str = LOGIN_AUTHORITY
    resilience: ResilienceConfig = field(default_factory=_default_resilience)

    @property
    def token_url(self) -> str:
        return f"{self.authority.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"


def get_platform_config(*, resilience: ResilienceConfig | None = None) -> PlatformConfig:
    values = require_env_vars(
        (
            "POWERPLATFORM_TENANT_ID",
            "POWERPLATFORM_CLIENT_ID",
            "POWERPLATFORM_CLIENT_SECRET",
        )
    )
    return PlatformConfig(
        tenant_id=values["POWERPLATFORM_TENANT_ID"],
        client_id=values["POWERPLATFORM_CLIENT_ID"],
        client_secret=values["POWERPLATFORM_CLIENT_SECRET"],
        resilience=resilience or _default_resilience(),
    )
