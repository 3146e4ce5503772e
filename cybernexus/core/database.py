"""
Database Module

asyncpg connection pool management for the postgres storage backend.
"""

from typing import Optional

import asyncpg
from asyncpg.pool import Pool

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)

# Global asyncpg pool
_db_pool: Optional[Pool] = None


async def init_db_pool(
    database_url: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> Pool:
    """
    Initialize asyncpg connection pool

    Args:
        database_url: PostgreSQL connection URL
        min_size: Minimum number of connections
        max_size: Maximum number of connections

    Returns:
        Database connection pool
    """
    global _db_pool

    if _db_pool is not None:
        return _db_pool

    if database_url is None:
        database_url = str(settings.database_url)

    try:
        _db_pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size or settings.database_pool_min_size,
            max_size=max_size or settings.database_pool_max_size,
            command_timeout=settings.database_command_timeout,
            server_settings={
                "application_name": "cybernexus_isms",
                "jit": "off",
            },
        )

        async with _db_pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            logger.info("Connected to PostgreSQL", version=version)

        return _db_pool

    except (OSError, asyncpg.PostgresError) as e:
        logger.error("Failed to create database pool", error=str(e))
        raise


async def close_db_pool() -> None:
    """Close asyncpg connection pool"""
    global _db_pool

    if _db_pool is not None:
        await _db_pool.close()
        _db_pool = None
        logger.info("Database pool closed")


def get_db_pool() -> Pool:
    if _db_pool is None:
        raise RuntimeError("Database not initialized. Call init_db_pool() first.")
    return _db_pool


async def ping() -> bool:
    """True when a connection can be acquired and answers a trivial query"""
    if _db_pool is None:
        return False
    try:
        async with _db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return True
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.warning("Database ping failed", error=str(e))
        return False
