"""Reconciliation core for folding upstream inventory feeds into the record store.

Layered flow of one scope pass:
1) fetch source records from every applicable feed
2) drop records that declare a sibling scope
3) derive deterministic record keys
4) normalize payloads into canonical records (health included)
5) upsert every admitted record
6) purge stored records the pass did not see
"""

from __future__ import annotations

from .contracts import FeedFailure, PassResult, PassState, RunResult
from .engine import ReconciliationEngine, display_name_filter
from .guard import admit, declared_scope
from .health import classify
from .identity import resolve
from .normalize import normalize

__all__ = [
    "FeedFailure",
    "PassResult",
    "PassState",
    "ReconciliationEngine",
    "RunResult",
    "admit",
    "classify",
    "declared_scope",
    "display_name_filter",
    "normalize",
    "resolve",
]
