"""Coarse health labels derived from upstream state strings."""

from __future__ import annotations

from typing import Final

from inventory_sync.domain.model import Health

_DISABLED_MARKERS: Final[tuple[str, ...]] = ("stopped", "off", "disabled", "suspended")
_ISSUE_MARKERS: Final[tuple[str, ...]] = ("failed", "issue")


def classify(state: str | None) -> Health:
    """Map a raw state to Healthy, Disabled or Issues.

    Matching is a case-insensitive substring test; the raw state is kept
    verbatim on the record, so the label is only an at-a-glance flag.
    """

    lowered = (state or "").casefold()
    if any(marker in lowered for marker in _DISABLED_MARKERS):
        return Health.DISABLED
    if any(marker in lowered for marker in _ISSUE_MARKERS):
        return Health.ISSUES
    return Health.HEALTHY
