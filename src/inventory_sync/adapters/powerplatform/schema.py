"""Pydantic models describing Power Platform admin API envelopes.

Only the envelopes are validated; list items stay loosely-structured mappings
because their shape varies by service and API version.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PowerPlatformBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TokenResponse(PowerPlatformBaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3599

    @field_validator("expires_in", mode="before")
    @classmethod
    def _parse_seconds(cls, value: int | str) -> int:
        return int(value)


class ListResponse(PowerPlatformBaseModel):
    value: list[dict[str, object]] = Field(
        default_factory=list[dict[str, object]],
        validation_alias=AliasChoices("value", "tenantCapacities"),
    )
    next_link: str | None = Field(
        default=None,
        validation_alias=AliasChoices("@odata.nextLink", "nextLink"),
    )

    @field_validator("value", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]  # pyright: ignore[reportUnknownVariableType]
        return value


class ErrorDetail(PowerPlatformBaseModel):
    code: str | None = None
    message: str | None = None


class ErrorResponse(PowerPlatformBaseModel):
    error: ErrorDetail

    @field_validator("error", mode="before")
    @classmethod
    def _wrap_plain_error(cls, value: object) -> object:
        if isinstance(value, str):
            return {"code": value}
        return value
