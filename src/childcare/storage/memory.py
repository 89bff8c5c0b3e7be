"""Dict-backed ActivityStore for tests and dry runs."""

from __future__ import annotations

import copy
import logging

from src.childcare.base import Activity, ActivityType, Child
from src.childcare.errors import StorageError
from src.childcare.storage.base import ActivityStore

logger = logging.getLogger("procare_sync.storage.memory")


class InMemoryActivityStore(ActivityStore):
    """In-process store with the same upsert semantics as the SQL backend.

    Records are deep-copied on the way in and out so callers cannot mutate
    stored state.  ``add_activities`` validates the whole batch before
    touching the store, which makes it all-or-nothing.

    Usage::

        store = InMemoryActivityStore()
        await store.add_activities(activities)
        await store.get_activities("kid-1", date="2026-02-06")
    """

    def __init__(self) -> None:
        self._children: dict[str, Child] = {}
        self._activities: dict[str, Activity] = {}
        self._metadata: dict[str, str] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    async def upsert_child(self, child: Child) -> None:
        self._check_open()
        self._children[child.id] = copy.deepcopy(child)

    async def add_activity(self, activity: Activity) -> None:
        self._check_open()
        self._validate(activity)
        self._activities[activity.id] = copy.deepcopy(activity)

    async def add_activities(self, activities: list[Activity]) -> None:
        self._check_open()
        staged = {}
        for activity in activities:
            self._validate(activity)
            staged[activity.id] = copy.deepcopy(activity)
        self._activities.update(staged)
        logger.debug("Stored %d activities", len(staged))

    async def get_sync_metadata(self, key: str) -> str | None:
        self._check_open()
        return self._metadata.get(key)

    async def set_sync_metadata(self, key: str, value: str) -> None:
        self._check_open()
        self._metadata[key] = value

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_children(self) -> list[Child]:
        self._check_open()
        return [copy.deepcopy(c) for c in self._children.values()]

    async def get_child(self, child_id: str) -> Child | None:
        self._check_open()
        child = self._children.get(child_id)
        return copy.deepcopy(child) if child else None

    async def get_activities(
        self,
        child_id: str,
        date: str | None = None,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        return self._select(
            lambda a: a.child_id == child_id
            and (date is None or a.activity_date == date)
            and (type is None or a.type == type)
        )

    async def get_latest_activity(
        self, child_id: str, type: ActivityType
    ) -> Activity | None:
        matches = await self.get_activities(child_id, type=type)
        return matches[0] if matches else None

    async def get_activities_in_range(
        self,
        child_id: str,
        start_date: str,
        end_date: str,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        return self._select(
            lambda a: a.child_id == child_id
            and start_date <= a.activity_date <= end_date
            and (type is None or a.type == type)
        )

    async def close(self) -> None:
        self._closed = True

    def __len__(self) -> int:
        return len(self._activities)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select(self, predicate) -> list[Activity]:
        self._check_open()
        matches = [a for a in self._activities.values() if predicate(a)]
        matches.sort(key=lambda a: a.timestamp, reverse=True)
        return [copy.deepcopy(a) for a in matches]

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("InMemoryActivityStore is closed")

    @staticmethod
    def _validate(activity: Activity) -> None:
        if not activity.id:
            raise StorageError("Activity id is required")
        if not isinstance(activity.type, ActivityType):
            raise StorageError(f"Activity {activity.id} has invalid type {activity.type!r}")
