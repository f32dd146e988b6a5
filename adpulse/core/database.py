"""
Async PostgreSQL connection pool module.

This module provides an async PostgreSQL connection pool using asyncpg. It is
the single data access entry point for the AdPulse engine: the repository
acquires connections from here and every write is an idempotent upsert.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool at process startup
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool at process shutdown
- ensure_schema(): Apply the table definitions from adpulse.sql.schema

Connection Pool Configuration:
- min_size: 2 (minimum idle connections kept in pool)
- max_size: 10 (maximum connections in pool)
- command_timeout: 60 seconds (query timeout)

Usage:
    # At batch startup
    await init_db()

    # In services
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM experiment WHERE status = $1", "active")

    # At batch shutdown
    await close_db()

Environment Variables:
    DATABASE_URL: PostgreSQL connection string (Required)
"""

from typing import Optional

import asyncpg
from asyncpg import Pool

from adpulse.core.config import get_settings
from adpulse.sql.schema import SCHEMA_STATEMENTS


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called; shared across all tasks of the process
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    If the pool is already initialized, the existing pool is returned
    without creating a new one (idempotent behavior).

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails during lazy init.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Waits for active queries to complete before closing connections. After
    the call the pool is reset to None, so a later get_db_pool() creates a
    fresh pool. Calling it when no pool exists has no effect.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


async def ensure_schema() -> None:
    """
    Create the AdPulse tables and indexes when they do not exist yet.

    Every statement uses IF NOT EXISTS, so running this on each batch start
    is safe.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
