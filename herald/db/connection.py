"""Database connection management for the avatar index."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

logger = logging.getLogger("herald.db")

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")

_pool: Optional[asyncpg.Pool] = None


async def init_db(
    dsn: str,
    min_size: int = 1,
    max_size: int = 5,
    retry_delays: tuple[float, ...] = (2, 4, 8),
) -> asyncpg.Pool:
    """Initialize the connection pool, retrying while the server comes up.

    One attempt per delay plus a final one; the last failure is raised.
    """
    global _pool
    attempts = len(retry_delays) + 1

    for attempt in range(attempts):
        try:
            _pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
            if attempt > 0:
                logger.info(f"Database connected after {attempt + 1} attempts")
            return _pool
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            if attempt < attempts - 1:
                delay = retry_delays[attempt]
                logger.warning(f"Database not ready (attempt {attempt + 1}/{attempts}): {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database connection failed after {attempts} attempts: {e}")
                raise


async def apply_schema(pool: Optional[asyncpg.Pool] = None):
    """Apply schema.sql. Safe to run repeatedly (IF NOT EXISTS)."""
    with open(SCHEMA_PATH) as f:
        schema = f.read()
    async with (pool or get_pool()).acquire() as conn:
        await conn.execute(schema)


async def close_db():
    """Close the connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _pool


@asynccontextmanager
async def get_connection():
    """Get a database connection from the pool."""
    async with get_pool().acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction():
    """Get a database connection with an active transaction."""
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn
