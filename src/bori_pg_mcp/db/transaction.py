"""Scoped read-only transactions.

``read_only_transaction`` opens ``BEGIN READ ONLY`` on a connection and
always rolls back when the block exits. The rollback is awaited before the
connection can go back to its pool; if it fails after a successful block the
failure is raised, otherwise it is logged next to the original error.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
from asyncpg import Connection
from asyncpg.transaction import Transaction

from bori_pg_mcp.models.errors import DatabaseError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def read_only_transaction(connection: Connection) -> AsyncIterator[Connection]:
    """Run a block inside a read-only transaction that is always rolled back.

    Args:
        connection: Connection acquired by the caller.

    Yields:
        Connection: The same connection, inside the transaction.

    Raises:
        DatabaseError: If the rollback fails after the block succeeded.

    Example:
        >>> async with pool.acquire() as conn, read_only_transaction(conn):
        ...     rows = await conn.fetch("SELECT * FROM users")
    """
    transaction = connection.transaction(readonly=True)
    await transaction.start()
    try:
        yield connection
    except BaseException:
        await _rollback(transaction, raise_on_failure=False)
        raise
    else:
        await _rollback(transaction, raise_on_failure=True)


async def _rollback(transaction: Transaction, raise_on_failure: bool) -> None:
    try:
        await transaction.rollback()
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        logger.warning("Could not roll back transaction: %s", e)
        if raise_on_failure:
            raise DatabaseError(
                message=f"Could not roll back read-only transaction: {e!s}",
                details={"error_type": type(e).__name__},
            ) from e
