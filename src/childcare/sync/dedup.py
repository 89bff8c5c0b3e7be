"""Deduplication logic for activity ingestion.

Re-syncing the same window is routine (the engine re-fetches everything from
the watermark date onward), so writes must be idempotent.

Dedup keys:
    - activities:    (id) — PRIMARY KEY, upserted
    - children:      (id) — PRIMARY KEY, upserted
    - sync_metadata: (key) — PRIMARY KEY, upserted
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Iterable

from src.childcare.base import Activity

logger = logging.getLogger("procare_sync.sync.dedup")


def activity_key(source_id: str, child_id: str, fanned_out: bool) -> str:
    """Build the stored id for one child's copy of an upstream activity.

    Procare reuses one activity id for every child the record names.  A
    single-child record keeps the upstream id; a multi-child record gets
    ``"<source_id>:<child_id>"`` so each copy has its own row.

    Args:
        source_id:  Procare activity id.
        child_id:   Child this copy belongs to.
        fanned_out: True when the upstream record named more than one child.

    Returns:
        Activity id used as the storage primary key.
    """
    if not fanned_out:
        return source_id
    return f"{source_id}:{child_id}"


def payload_content_hash(payload: dict) -> str:
    """SHA-256 hex digest of the payload's canonical JSON.

    Keys are sorted, so two payloads with the same content hash the same
    regardless of key order.
    """
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def fallback_source_id(raw: dict) -> str:
    """Stable stand-in id for an upstream record that arrived without one.

    Derived from the record's content, so replaying the same record maps to
    the same row instead of piling up copies.
    """
    return f"noid-{payload_content_hash(raw)[:16]}"


def collapse_duplicates(activities: Iterable[Activity]) -> list[Activity]:
    """Drop repeated ids from a batch, keeping the last occurrence.

    Pages can shift while the feed is being walked, so the same record may
    show up twice in one fetch.  Order of first appearance is preserved.

    Args:
        activities: Mapped activities, possibly with repeated ids.

    Returns:
        Activities with unique ids.
    """
    latest: dict[str, Activity] = {}
    seen = 0
    for activity in activities:
        latest[activity.id] = activity
        seen += 1
    if seen != len(latest):
        logger.debug("Collapsed %d repeated activity ids", seen - len(latest))
    return list(latest.values())


def build_upsert_query(
    table: str,
    columns: list[str],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> str:
    """Build the parameterized upsert used for every activity-store write.

    ``children`` and ``activities`` conflict on ``id`` and ``sync_metadata``
    on ``key``; a replayed row overwrites the stored one and bumps
    ``updated_at``.  With nothing left to update the statement becomes
    ``DO NOTHING``.

    Args:
        table:            Target table name.
        columns:          All columns to insert.
        conflict_columns: Columns that define the UNIQUE constraint.
        update_columns:   Columns to update on conflict (defaults to non-key columns).

    Returns:
        Parameterized SQL string.
    """
    if update_columns is None:
        update_columns = [c for c in columns if c not in conflict_columns]

    placeholders = ", ".join(f"${n}" for n in range(1, len(columns) + 1))
    if update_columns:
        assignments = [f"{col} = EXCLUDED.{col}" for col in update_columns]
        assignments.append("updated_at = NOW()")
        on_conflict = "DO UPDATE SET " + ", ".join(assignments)
    else:
        on_conflict = "DO NOTHING"

    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT ({', '.join(conflict_columns)}) {on_conflict}"
    )
