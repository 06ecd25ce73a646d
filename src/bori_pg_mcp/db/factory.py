"""Pooled database clients for the managed database set.

``build_clients`` points one asyncpg pool per database at an endpoint (the
local tunnel proxy or the database host itself) and acquires one client
from each, concurrently. Results follow the order of the requested names.
The first acquisition to fail cancels the others, and everything already
opened is torn down (clients, pools and the SSH tunnel) before
:class:`ClientAcquisitionError` is raised.
"""

import asyncio
import functools
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from asyncpg import Connection, Pool

from bori_pg_mcp.config.settings import MANAGED_DATABASES, DatabaseConfig
from bori_pg_mcp.db.pool import close_pools, create_pool
from bori_pg_mcp.db.transaction import read_only_transaction
from bori_pg_mcp.models.connection import DirectEndpoint, TunnelEndpoint
from bori_pg_mcp.models.errors import ClientAcquisitionError
from bori_pg_mcp.observability.metrics import metrics
from bori_pg_mcp.tunnel.negotiator import SSHTunnel

logger = logging.getLogger(__name__)


class PooledClient:
    """A connection acquired from the pool of one managed database.

    The owner is responsible for calling :meth:`close` (or :meth:`release`)
    when done. Request handlers borrow further connections from the same
    pool through :meth:`read_only`.

    Attributes:
        database: Logical database name.
        pool: Pool the client belongs to.
        connection: The acquired connection, or None once released.
    """

    def __init__(self, database: str, pool: Pool, connection: Connection) -> None:
        self.database = database
        self.pool = pool
        self.connection: Connection | None = connection

    def __repr__(self) -> str:
        state = "released" if self.connection is None else "acquired"
        return f"PooledClient(database={self.database!r}, {state})"

    @asynccontextmanager
    async def read_only(self) -> AsyncIterator[Connection]:
        """Borrow a pool connection inside a read-only, rolled-back transaction."""
        async with self.pool.acquire() as connection, read_only_transaction(connection):
            yield connection

    async def release(self) -> None:
        """Return the acquired connection to its pool."""
        if self.connection is None:
            return
        connection, self.connection = self.connection, None
        await self.pool.release(connection)

    async def close(self, timeout: float = 10.0) -> None:
        """Release the connection and close the pool."""
        try:
            await self.release()
        finally:
            await close_pools({self.database: self.pool}, timeout=timeout)


async def build_clients(
    endpoint: TunnelEndpoint | DirectEndpoint,
    config: DatabaseConfig,
    database_names: Sequence[str] = MANAGED_DATABASES,
    tunnel: SSHTunnel | None = None,
) -> list[PooledClient]:
    """Create one pool per database and acquire one client from each.

    Args:
        endpoint: Address database connections are made to.
        config: Credentials and pool settings.
        database_names: Ordered database names.
        tunnel: SSH tunnel behind ``endpoint``; closed if acquisition fails.

    Returns:
        list[PooledClient]: One client per name, in the order of ``database_names``.

    Raises:
        ClientAcquisitionError: If any pool or client could not be obtained.
            Wraps the first failure to occur; acquisitions still pending at
            that point are cancelled.

    Example:
        >>> clients = await build_clients(tunnel.endpoint, config, tunnel=tunnel)
        >>> [client.database for client in clients]
        ['haksa_sis', 'canvas_production']
    """
    names = list(database_names)
    tasks = [
        asyncio.ensure_future(_open_client(config, name, endpoint.host, endpoint.port))
        for name in names
    ]
    # Filled in completion order by done callbacks, ahead of asyncio.wait waking up.
    failures: list[tuple[str, BaseException]] = []
    for name, task in zip(names, tasks):
        task.add_done_callback(functools.partial(_record_failure, failures, name))

    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except BaseException:
        await _unwind(await _settle(tasks), tunnel)
        raise

    opened = await _settle(tasks)
    if not failures:
        logger.info(
            "Acquired clients for %s via %s:%d", ", ".join(names), endpoint.host, endpoint.port
        )
        return opened

    await _unwind(opened, tunnel)

    name, error = failures[0]
    if not isinstance(error, Exception):
        raise error
    raise ClientAcquisitionError(
        message=f"Failed to acquire database client for '{name}': {error}",
        database=name,
        details={"error_type": type(error).__name__, "failed": [n for n, _ in failures]},
    ) from error


def _record_failure(
    failures: list[tuple[str, BaseException]], name: str, task: asyncio.Future[Any]
) -> None:
    if not task.cancelled() and task.exception() is not None:
        failures.append((name, task.exception()))


async def _settle(tasks: list[asyncio.Future[Any]]) -> list[PooledClient]:
    """Cancel unfinished acquisitions and return the clients that were opened, in order."""
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    return [result for result in results if isinstance(result, PooledClient)]


async def _open_client(config: DatabaseConfig, database: str, host: str, port: int) -> PooledClient:
    try:
        pool = await create_pool(config, database, host, port)
    except asyncio.CancelledError:
        metrics.increment_client_acquisition(database=database, status="cancelled")
        raise
    except Exception:
        metrics.increment_client_acquisition(database=database, status="error")
        logger.error("PostgreSQL connection error for '%s'", database, exc_info=True)
        raise

    try:
        connection = await pool.acquire()
    except asyncio.CancelledError:
        metrics.increment_client_acquisition(database=database, status="cancelled")
        await close_pools({database: pool})
        raise
    except Exception:
        metrics.increment_client_acquisition(database=database, status="error")
        logger.error("Could not acquire a client for '%s'", database, exc_info=True)
        await close_pools({database: pool})
        raise

    metrics.increment_client_acquisition(database=database, status="success")
    return PooledClient(database, pool, connection)


async def _unwind(clients: list[PooledClient], tunnel: SSHTunnel | None) -> None:
    try:
        for client in clients:
            await client.close()
    finally:
        if tunnel is not None:
            await tunnel.close()
