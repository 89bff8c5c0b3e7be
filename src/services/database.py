"""Postgres connection pool for the activity store.

The sync CLI opens one pool per run and hands it to ``PostgresActivityStore``;
``bootstrap_schema`` applies pending migrations on a connection from it.
"""

from __future__ import annotations

import logging

import asyncpg

from src.childcare.storage.schema import initialize_schema
from src.config import Settings, get_settings

logger = logging.getLogger("procare_sync.db")

# Sync runs are sequential, so a handful of connections is plenty
POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 5

_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Open the shared asyncpg pool against ``DATABASE_URL``."""
    global _pool
    s = settings or get_settings()
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=POOL_MIN_SIZE,
        max_size=POOL_MAX_SIZE,
        command_timeout=30,
    )
    logger.info("Database pool ready (min=%d, max=%d)", POOL_MIN_SIZE, POOL_MAX_SIZE)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool is not open; call init_pool() first")
    return _pool


async def bootstrap_schema() -> int:
    """Apply pending schema migrations. Returns the resulting version."""
    async with get_pool().acquire() as conn:
        return await initialize_schema(conn)
