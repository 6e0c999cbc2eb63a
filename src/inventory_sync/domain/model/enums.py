"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SourceKind(StrEnum):
    """Names the feed a source record was pulled from."""

    CANVAS_APP = "Canvas App"
    CLOUD_FLOW = "Cloud Flow"
    POWER_PAGE = "Power Page"
    SOLUTION = "Solution"
    USER = "User"

    DATAVERSE_SOLUTION = "Dataverse Solution"
    DATAVERSE_WORKFLOW = "Dataverse Workflow"
    DATAVERSE_CANVAS_APP = "Dataverse Canvas App"

    CAPACITY = "Capacity"
    LICENSE = "License"
    DLP_POLICY = "DLP Policy"

    SCOPE_METADATA = "Scope Metadata"

    @property
    def is_tenant_level(self) -> bool:
        """Tenant-level feeds are only queried for the global scope."""
        return self in _TENANT_LEVEL_KINDS

    @property
    def is_package(self) -> bool:
        return self in {SourceKind.SOLUTION, SourceKind.DATAVERSE_SOLUTION}

    @property
    def is_site(self) -> bool:
        return self is SourceKind.POWER_PAGE


_TENANT_LEVEL_KINDS = frozenset(
    {SourceKind.CAPACITY, SourceKind.LICENSE, SourceKind.DLP_POLICY}
)


class Health(StrEnum):
    HEALTHY = "Healthy"
    DISABLED = "Disabled"
    ISSUES = "Issues"
