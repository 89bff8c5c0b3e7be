"""Incremental sync from the Procare API into an ActivityStore.

One run:

1. Refresh every child profile (full list, upserted).
2. For each child, in order:
   a. Resolve the lower bound: explicit ``since_date``, else the stored
      ``last_sync_<child_id>`` watermark, else today minus ``sync_days_back``.
   b. Fetch the whole feed up to today (the API has no lower-bound filter).
   c. Keep records dated on or after the lower bound.
   d. Map them, dropping copies that belong to other children.
   e. Upsert the batch atomically (skipped when empty).
   f. Set the watermark to today.
3. Record ``last_sync_time`` and return a SyncSummary.

"Today" is the calendar date in the daycare's time zone (``tz``), the same
clock Procare uses for ``activity_date``.  The watermark is today, not the
newest activity seen, so the next run re-reads today's records; the id-keyed
upsert makes that harmless.  Errors are not caught here: a failing child
aborts the run.

Usage::

    engine = SyncEngine(client=ProcareClient(token), store=store)
    summary = await engine.sync_all()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable

from src.childcare.adapters.procare import ProcareClient
from src.childcare.base import Activity, Child
from src.childcare.mapper import map_activity, map_kid
from src.childcare.storage.base import ActivityStore
from src.childcare.sync.dedup import collapse_duplicates

logger = logging.getLogger("procare_sync.sync.engine")

LAST_SYNC_TIME_KEY = "last_sync_time"
DEFAULT_SYNC_DAYS_BACK = 7


def child_watermark_key(child_id: str) -> str:
    return f"last_sync_{child_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChildSyncResult:
    """Outcome of syncing one child.

    Attributes:
        child_id:          Child id.
        stored_activities: Activities written in this pass.
        since_date:        Lower bound (YYYY-MM-DD) that was applied.
    """

    child_id: str
    stored_activities: int
    since_date: str

    def to_json(self) -> dict:
        return {
            "child_id": self.child_id,
            "stored_activities": self.stored_activities,
            "since_date": self.since_date,
        }


@dataclass
class SyncSummary:
    """Outcome of a full sync run.

    Attributes:
        synced_children:   Number of children refreshed and synced.
        synced_activities: Total activities written across children.
        per_child:         Per-child breakdown, in sync order.
        synced_at:         ISO timestamp at completion.
    """

    synced_children: int
    synced_activities: int
    per_child: list[ChildSyncResult] = field(default_factory=list)
    synced_at: str = ""

    def to_json(self) -> dict:
        return {
            "synced_children": self.synced_children,
            "synced_activities": self.synced_activities,
            "per_child": [r.to_json() for r in self.per_child],
            "synced_at": self.synced_at,
        }


class SyncEngine:
    """Drive children refresh and per-child incremental activity sync.

    The engine keeps no state between runs; everything it needs to resume
    lives in the store's sync metadata.
    """

    def __init__(
        self,
        client: ProcareClient,
        store: ActivityStore,
        sync_days_back: int = DEFAULT_SYNC_DAYS_BACK,
        now: Callable[[], datetime] | None = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        """Initialize the engine.

        Args:
            client:         Procare API client (anything with get_kids and
                            get_all_daily_activities).
            store:          Destination store.
            sync_days_back: Lookback window when a child has no watermark.
            now:            Clock returning an aware datetime; UTC now by default.
            tz:             Zone whose calendar date counts as "today"; must match
                            the zone of Procare's ``activity_date``.
        """
        self._client = client
        self._store = store
        self._sync_days_back = sync_days_back
        self._now = now or _utcnow
        self._tz = tz

    async def sync_all(self, since_date: str | None = None) -> SyncSummary:
        """Refresh children, sync each one, then stamp ``last_sync_time``.

        Args:
            since_date: Optional YYYY-MM-DD lower bound applied to every child
                        instead of their watermarks.
        """
        children = await self.sync_children()
        per_child: list[ChildSyncResult] = []

        for child in children:
            per_child.append(await self.sync_child(child.id, since_date=since_date))

        synced_at = self._now().isoformat()
        await self._store.set_sync_metadata(LAST_SYNC_TIME_KEY, synced_at)

        summary = SyncSummary(
            synced_children=len(children),
            synced_activities=sum(r.stored_activities for r in per_child),
            per_child=per_child,
            synced_at=synced_at,
        )
        logger.info(
            "Sync complete: %d children, %d activities at %s",
            summary.synced_children, summary.synced_activities, synced_at,
        )
        return summary

    async def sync_children(self) -> list[Child]:
        """Fetch the full child list and upsert every profile."""
        raw_kids = await self._client.get_kids()
        children = [map_kid(raw) for raw in raw_kids]

        for child in children:
            await self._store.upsert_child(child)

        logger.info("Refreshed %d children", len(children))
        return children

    async def sync_child(
        self, child_id: str, since_date: str | None = None
    ) -> ChildSyncResult:
        """Sync one child's activities from the resolved lower bound to today.

        Args:
            child_id:   Procare kid id.
            since_date: Optional YYYY-MM-DD override of the lower bound.

        Returns:
            ChildSyncResult with the number of activities written.
        """
        local_today = self._today()
        today = local_today.isoformat()
        watermark_key = child_watermark_key(child_id)

        resolved_since = (
            since_date
            or await self._store.get_sync_metadata(watermark_key)
            or self._default_since(local_today)
        )

        raw_activities = await self._client.get_all_daily_activities(child_id, today)
        in_window = [
            raw for raw in raw_activities
            if (raw.get("activity_date") or "") >= resolved_since
        ]

        activities = self._scope_to_child(child_id, in_window)
        await self._write(activities)
        await self._store.set_sync_metadata(watermark_key, today)

        logger.info(
            "Child %s: %d fetched, %d in window since %s, %d stored",
            child_id, len(raw_activities), len(in_window), resolved_since, len(activities),
        )
        return ChildSyncResult(
            child_id=child_id,
            stored_activities=len(activities),
            since_date=resolved_since,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _today(self) -> date:
        return self._now().astimezone(self._tz).date()

    def _default_since(self, today: date) -> str:
        return (today - timedelta(days=self._sync_days_back)).isoformat()

    def _scope_to_child(self, child_id: str, raw_activities: list[dict]) -> list[Activity]:
        mapped = [a for raw in raw_activities for a in map_activity(raw)]
        scoped = [a for a in mapped if a.child_id == child_id]

        foreign = len(mapped) - len(scoped)
        if foreign:
            logger.warning(
                "Child %s: dropped %d mapped activities owned by other children",
                child_id, foreign,
            )
        return collapse_duplicates(scoped)

    async def _write(self, activities: list[Activity]) -> None:
        if not activities:
            return
        await self._store.add_activities(activities)
