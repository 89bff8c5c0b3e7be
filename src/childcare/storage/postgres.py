"""asyncpg-backed ActivityStore.

All writes are ``INSERT ... ON CONFLICT DO UPDATE`` so replays are harmless.
``add_activities`` runs the whole batch in one transaction.  Driver errors
are re-raised as ``StorageError`` with the original chained.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from src.childcare.base import (
    Activity,
    ActivityType,
    Child,
    details_from_json,
    details_to_json,
)
from src.childcare.errors import StorageError
from src.childcare.storage.base import ActivityStore
from src.childcare.sync.dedup import build_upsert_query

logger = logging.getLogger("procare_sync.storage.postgres")

CHILD_COLUMNS = ["id", "first_name", "last_name", "classroom", "date_of_birth"]
ACTIVITY_COLUMNS = [
    "id",
    "source_id",
    "child_id",
    "type",
    "timestamp",
    "activity_date",
    "end_time",
    "details",
    "notes",
    "reported_by",
]

UPSERT_CHILD_SQL = build_upsert_query("children", CHILD_COLUMNS, ["id"])
UPSERT_ACTIVITY_SQL = build_upsert_query("activities", ACTIVITY_COLUMNS, ["id"])
UPSERT_METADATA_SQL = build_upsert_query("sync_metadata", ["key", "value"], ["key"])

_SELECT_ACTIVITIES = f"SELECT {', '.join(ACTIVITY_COLUMNS)} FROM activities"


def _activity_params(activity: Activity) -> tuple:
    return (
        activity.id,
        activity.source_id,
        activity.child_id,
        activity.type.value,
        activity.timestamp,
        activity.activity_date,
        activity.end_time,
        json.dumps(details_to_json(activity.details)),
        activity.notes,
        activity.reported_by,
    )


def _row_to_activity(row: Any) -> Activity:
    details = row["details"]
    if isinstance(details, str):
        details = json.loads(details)
    return Activity(
        id=row["id"],
        child_id=row["child_id"],
        type=ActivityType(row["type"]),
        timestamp=row["timestamp"],
        details=details_from_json(details or {}),
        source_id=row["source_id"],
        end_time=row["end_time"],
        notes=row["notes"],
        reported_by=row["reported_by"],
    )


def _row_to_child(row: Any) -> Child:
    return Child(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        classroom=row["classroom"],
        date_of_birth=row["date_of_birth"],
    )


class PostgresActivityStore(ActivityStore):
    """Production ActivityStore on a shared asyncpg pool.

    Usage::

        pool = await init_pool(settings)
        store = PostgresActivityStore(pool)
        await store.add_activities(activities)
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def _connection(
        self, transactional: bool = False
    ) -> AsyncGenerator[asyncpg.Connection, None]:
        try:
            async with self._pool.acquire() as conn:
                if transactional:
                    async with conn.transaction():
                        yield conn
                else:
                    yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise StorageError(f"Postgres operation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    async def upsert_child(self, child: Child) -> None:
        async with self._connection() as conn:
            await conn.execute(
                UPSERT_CHILD_SQL,
                child.id,
                child.first_name,
                child.last_name,
                child.classroom,
                child.date_of_birth,
            )

    async def add_activity(self, activity: Activity) -> None:
        async with self._connection() as conn:
            await conn.execute(UPSERT_ACTIVITY_SQL, *_activity_params(activity))

    async def add_activities(self, activities: list[Activity]) -> None:
        if not activities:
            return
        rows = [_activity_params(a) for a in activities]
        async with self._connection(transactional=True) as conn:
            await conn.executemany(UPSERT_ACTIVITY_SQL, rows)
        logger.debug("Upserted %d activities", len(rows))

    async def get_sync_metadata(self, key: str) -> str | None:
        async with self._connection() as conn:
            return await conn.fetchval(
                "SELECT value FROM sync_metadata WHERE key = $1", key
            )

    async def set_sync_metadata(self, key: str, value: str) -> None:
        async with self._connection() as conn:
            await conn.execute(UPSERT_METADATA_SQL, key, value)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_children(self) -> list[Child]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {', '.join(CHILD_COLUMNS)} FROM children ORDER BY last_name, first_name"
            )
        return [_row_to_child(r) for r in rows]

    async def get_child(self, child_id: str) -> Child | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {', '.join(CHILD_COLUMNS)} FROM children WHERE id = $1",
                child_id,
            )
        return _row_to_child(row) if row else None

    async def get_activities(
        self,
        child_id: str,
        date: str | None = None,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        conditions = ["child_id = $1"]
        params: list[Any] = [child_id]
        if date:
            params.append(date)
            conditions.append(f"activity_date = ${len(params)}")
        if type:
            params.append(type.value)
            conditions.append(f"type = ${len(params)}")
        return await self._fetch_activities(conditions, params)

    async def get_latest_activity(
        self, child_id: str, type: ActivityType
    ) -> Activity | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"{_SELECT_ACTIVITIES} WHERE child_id = $1 AND type = $2 "
                "ORDER BY timestamp DESC LIMIT 1",
                child_id,
                type.value,
            )
        return _row_to_activity(row) if row else None

    async def get_activities_in_range(
        self,
        child_id: str,
        start_date: str,
        end_date: str,
        type: ActivityType | None = None,
    ) -> list[Activity]:
        conditions = ["child_id = $1", "activity_date >= $2", "activity_date <= $3"]
        params: list[Any] = [child_id, start_date, end_date]
        if type:
            params.append(type.value)
            conditions.append(f"type = ${len(params)}")
        return await self._fetch_activities(conditions, params)

    async def _fetch_activities(
        self, conditions: list[str], params: list[Any]
    ) -> list[Activity]:
        sql = f"{_SELECT_ACTIVITIES} WHERE {' AND '.join(conditions)} ORDER BY timestamp DESC"
        async with self._connection() as conn:
            rows = await conn.fetch(sql, *params)
        return [_row_to_activity(r) for r in rows]
