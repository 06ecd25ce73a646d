"""Database connection pool management.

This module provides utilities for creating and closing asyncpg connection
pools for the managed PostgreSQL databases.
"""

import asyncio
import logging

import asyncpg
from asyncpg import Pool

from bori_pg_mcp.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)


async def create_pool(config: DatabaseConfig, database: str, host: str, port: int) -> Pool:
    """Create a connection pool for one database at the given address.

    Args:
        config: Credentials and pool settings.
        database: Name of the database to connect to.
        host: Address to connect to (the local tunnel endpoint or the database host).
        port: Port to connect to.

    Returns:
        Pool: An asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the address is unreachable.

    Example:
        >>> pool = await create_pool(config, "haksa_sis", "127.0.0.1", 49321)
        >>> async with pool.acquire() as conn:
        ...     result = await conn.fetch("SELECT 1")
    """
    logger.debug("Creating pool for %s", config.safe_dsn_for(database, host, port))
    pool = await asyncpg.create_pool(
        dsn=config.dsn_for(database, host, port),
        min_size=config.min_pool_size,
        max_size=config.max_pool_size,
        timeout=config.pool_timeout,
        command_timeout=config.command_timeout,
    )

    if pool is None:
        raise RuntimeError(f"Failed to create connection pool for {database}")

    return pool


async def close_pools(pools: dict[str, Pool], timeout: float = 10.0) -> None:
    """Close connection pools gracefully.

    If graceful shutdown takes too long, or fails, the pool is forcefully
    terminated.

    Args:
        pools: Dictionary mapping database names to their pools.
        timeout: Maximum time in seconds to wait for graceful shutdown
            before forcing termination. Default: 10.0 seconds.
    """
    for db_name, pool in pools.items():
        try:
            await asyncio.wait_for(pool.close(), timeout=timeout)
            logger.info("Connection pool for '%s' closed gracefully", db_name)
        except TimeoutError:
            logger.warning("Graceful close timed out for '%s', forcing termination", db_name)
            pool.terminate()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error("Error closing pool for '%s': %s", db_name, e)
            pool.terminate()
