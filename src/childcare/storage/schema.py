"""Versioned Postgres schema for the activity store.

``initialize_schema`` applies any migrations newer than the version recorded
in ``schema_version``, inside a single transaction.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger("procare_sync.storage.schema")

SCHEMA_VERSION = 1

MIGRATIONS: list[str] = [
    # v1: initial schema
    """
    CREATE TABLE IF NOT EXISTS children (
        id            TEXT PRIMARY KEY,
        first_name    TEXT NOT NULL,
        last_name     TEXT NOT NULL,
        classroom     TEXT NOT NULL,
        date_of_birth TEXT NOT NULL,
        updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS activities (
        id            TEXT PRIMARY KEY,
        source_id     TEXT,
        child_id      TEXT NOT NULL,
        type          TEXT NOT NULL,
        timestamp     TEXT NOT NULL,
        activity_date TEXT NOT NULL,
        end_time      TEXT,
        details       JSONB NOT NULL DEFAULT '{}'::jsonb,
        notes         TEXT,
        reported_by   TEXT,
        updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_activities_child_id ON activities (child_id);
    CREATE INDEX IF NOT EXISTS idx_activities_type ON activities (type);
    CREATE INDEX IF NOT EXISTS idx_activities_timestamp ON activities (timestamp);
    CREATE INDEX IF NOT EXISTS idx_activities_child_date
        ON activities (child_id, activity_date);
    CREATE INDEX IF NOT EXISTS idx_activities_child_type_ts
        ON activities (child_id, type, timestamp);

    CREATE TABLE IF NOT EXISTS sync_metadata (
        key        TEXT PRIMARY KEY,
        value      TEXT NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY
    );
    """,
]


async def get_schema_version(conn: asyncpg.Connection) -> int:
    """Return the applied schema version, 0 for an empty database."""
    try:
        version = await conn.fetchval("SELECT version FROM schema_version LIMIT 1")
    except asyncpg.UndefinedTableError:
        return 0
    return int(version or 0)


async def initialize_schema(conn: asyncpg.Connection) -> int:
    """Bring the database up to ``SCHEMA_VERSION``.

    Args:
        conn: An open asyncpg connection.

    Returns:
        The schema version after migration.
    """
    current = await get_schema_version(conn)
    if current >= SCHEMA_VERSION:
        logger.debug("Schema already at v%d", current)
        return current

    async with conn.transaction():
        for migration in MIGRATIONS[current:SCHEMA_VERSION]:
            await conn.execute(migration)
        await conn.execute("DELETE FROM schema_version")
        await conn.execute(
            "INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION
        )

    logger.info("Migrated schema v%d -> v%d", current, SCHEMA_VERSION)
    return SCHEMA_VERSION
