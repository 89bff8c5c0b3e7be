"""Procare childcare activity sync.

This package fetches children and daily activities from the Procare Connect
parent API, normalizes them into canonical models, and upserts them into a
local store with per-child sync watermarks.

Subpackages:
    adapters/ — Procare API client and session authentication
    storage/  — ActivityStore contract, in-memory and Postgres backends
    sync/     — Incremental sync engine and dedup helpers

Core modules:
    base       — Child / Activity / details variants / DailySummary
    mapper     — Procare payload → canonical model normalization
    vocabulary — Load/validate vocabulary.yaml
    errors     — Exception hierarchy
"""

from src.childcare.base import (
    Activity,
    ActivityType,
    Child,
    DailySummary,
)
from src.childcare.vocabulary import Vocabulary, get_vocabulary

__all__ = [
    "Activity",
    "ActivityType",
    "Child",
    "DailySummary",
    "Vocabulary",
    "get_vocabulary",
]
