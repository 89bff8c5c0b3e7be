"""Storage contract consumed by the sync engine and read-side consumers.

The engine only ever talks to ``ActivityStore``; it never sees SQL or any
other backend detail.  Two implementations ship:

    InMemoryActivityStore — dict-backed, for tests and dry runs
    PostgresActivityStore — asyncpg, the production backend
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.childcare.base import Activity, ActivityType, Child, DailySummary


class ActivityStore(ABC):
    """Abstract base class for activity storage backends.

    Write semantics every backend must honor:
        - ``upsert_child`` / ``add_activity`` replace any row with the same id.
        - ``add_activities`` does the same for a batch, all-or-nothing.
        - ``set_sync_metadata`` overwrites the previous value for the key.

    Read queries return activities ordered by timestamp, most recent first.
    Backend failures surface as ``StorageError``.
    """

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_child(self, child: Child) -> None:
        """Insert or replace a child profile."""

    @abstractmethod
    async def add_activity(self, activity: Activity) -> None:
        """Insert or replace a single activity, keyed by ``activity.id``."""

    @abstractmethod
    async def add_activities(self, activities: list[Activity]) -> None:
        """Insert or replace a batch of activities atomically.

        Either every activity in the batch is stored or none is.
        """

    @abstractmethod
    async def get_sync_metadata(self, key: str) -> str | None:
        """Return the stored watermark for ``key``, or None if never set."""

    @abstractmethod
    async def set_sync_metadata(self, key: str, value: str) -> None:
        """Create or overwrite the watermark for ``key``."""

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_children(self) -> list[Child]:
        """List every stored child."""

    @abstractmethod
    async def get_child(self, child_id: str) -> Child | None:
        """Return one child, or None."""

    @abstractmethod
    async def get_activities(
        self,
        child_id: str,
        date: str | None = None,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        """Activities for a child, optionally limited to one date and/or kind.

        Args:
            child_id: Child id.
            date:     ISO date (YYYY-MM-DD) matched against ``activity_date``.
            type:     Activity kind filter.
        """

    @abstractmethod
    async def get_latest_activity(
        self, child_id: str, type: ActivityType
    ) -> Activity | None:
        """Most recent activity of ``type`` for a child, or None."""

    @abstractmethod
    async def get_activities_in_range(
        self,
        child_id: str,
        start_date: str,
        end_date: str,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        """Activities with ``start_date <= activity_date <= end_date`` (inclusive)."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    async def get_daily_summary(self, child_id: str, date: str) -> DailySummary:
        """Aggregate one child's day: check in/out, diapers, naps, meals, notes.

        Built on ``get_activities`` so every backend gets it for free.
        """
        activities = await self.get_activities(child_id, date)
        ordered = sorted(activities, key=lambda a: a.timestamp)

        check_in = next((a for a in ordered if a.type == ActivityType.CHECK_IN), None)
        check_out = next((a for a in ordered if a.type == ActivityType.CHECK_OUT), None)

        return DailySummary(
            child_id=child_id,
            date=date,
            check_in=check_in.timestamp if check_in else None,
            check_out=check_out.timestamp if check_out else None,
            activities=ordered,
            diaper_count=sum(1 for a in ordered if a.type == ActivityType.DIAPER),
            naps=[a for a in ordered if a.type == ActivityType.NAP],
            meals=[a for a in ordered if a.type == ActivityType.MEAL],
            notes=[a.notes for a in ordered if a.notes],
        )
