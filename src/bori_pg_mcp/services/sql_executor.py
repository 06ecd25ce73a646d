"""SQL executor for read-only PostgreSQL queries.

Caller-supplied SQL runs on a borrowed pool connection inside a read-only
transaction that is always rolled back. Rows are capped at the configured
limit and converted to JSON-compatible values.
"""

import asyncio
import datetime
import decimal
from typing import Any

import asyncpg
from asyncpg import Connection

from bori_pg_mcp.config.settings import SecurityConfig
from bori_pg_mcp.db.factory import PooledClient
from bori_pg_mcp.models.errors import BoriMcpError, DatabaseError, ExecutionTimeoutError


class SQLExecutor:
    """Run SQL against one managed database without letting it write.

    ``statement_timeout``, ``search_path`` and the optional read-only role are
    set with ``SET LOCAL`` so they vanish with the rollback.

    Example:
        >>> executor = SQLExecutor(security_config)
        >>> rows, count = await executor.execute(client, "SELECT * FROM users")
    """

    def __init__(self, security_config: SecurityConfig) -> None:
        self.security_config = security_config

    async def execute(
        self,
        client: PooledClient,
        sql: str,
        timeout: float | None = None,  # noqa: ASYNC109
        max_rows: int | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Execute SQL inside a read-only transaction.

        Args:
            client: Pooled client of the target database.
            sql: SQL to run. It is not parsed; the read-only transaction
                rejects writes.
            timeout: Query timeout in seconds (uses config default if None).
            max_rows: Maximum rows to return (uses config default if None).

        Returns:
            tuple: (results, total_row_count) where:
                - results: List of row dictionaries with serialized values
                - total_row_count: Total number of rows (before limiting)

        Raises:
            ExecutionTimeoutError: If query execution exceeds timeout.
            DatabaseError: If the database rejects the query.
        """
        timeout = timeout or self.security_config.max_execution_time
        max_rows = max_rows or self.security_config.max_rows

        try:
            async with client.read_only() as connection:
                await self._set_session_params(connection, timeout)

                try:
                    records = await asyncio.wait_for(connection.fetch(sql), timeout=timeout)
                except TimeoutError as e:
                    raise ExecutionTimeoutError(
                        message=f"Query execution exceeded timeout of {timeout} seconds",
                        details={"timeout_seconds": timeout, "sql": sql[:200]},
                    ) from e

        except BoriMcpError:
            raise
        except asyncpg.PostgresError as e:
            raise DatabaseError(
                message=f"Database query failed: {e!s}",
                details={
                    "database": client.database,
                    "error_code": getattr(e, "sqlstate", None),
                    "error_message": str(e),
                    "sql": sql[:200],
                },
            ) from e
        except (asyncpg.InterfaceError, OSError) as e:
            raise DatabaseError(
                message=f"Database connection failed: {e!s}",
                details={"database": client.database, "error_type": type(e).__name__},
            ) from e

        total_count = len(records)
        if total_count > max_rows:
            records = records[:max_rows]

        results = self._serialize_results([dict(record) for record in records])
        return results, total_count

    async def _set_session_params(
        self,
        conn: Connection,
        timeout: float,  # noqa: ASYNC109
    ) -> None:
        """Apply transaction-local limits before running the query.

        Raises:
            DatabaseError: If the configured values are unsafe.
        """
        timeout_ms = int(timeout * 1000)
        await conn.execute(f"SET LOCAL statement_timeout = {timeout_ms}")

        search_path = self.security_config.safe_search_path
        if not all(c.isalnum() or c in ("_", ",", " ") for c in search_path):
            raise DatabaseError(
                message="Invalid search_path configuration",
                details={"search_path": search_path},
            )
        await conn.execute(f"SET LOCAL search_path = {search_path}")

        readonly_role = self.security_config.readonly_role
        if readonly_role:
            if not all(c.isalnum() or c == "_" for c in readonly_role):
                raise DatabaseError(
                    message="Invalid readonly_role configuration",
                    details={"readonly_role": readonly_role},
                )
            await conn.execute(f"SET LOCAL ROLE {readonly_role}")

    def _serialize_results(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{column: to_jsonable(value) for column, value in row.items()} for row in rows]


def to_jsonable(value: Any) -> Any:
    """Convert a value decoded by asyncpg into something ``json.dumps`` accepts.

    Temporal values become ISO strings (intervals use ``str``), numerics
    become floats, and UUID, network and geometric types become their text
    form. ``bytea`` is hex encoded. Arrays, geometric tuples, ranges and
    composite values are converted element by element.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, asyncpg.Range):
        if value.isempty:
            return {"empty": True}
        return {
            "lower": to_jsonable(value.lower),
            "upper": to_jsonable(value.upper),
            "lower_inc": value.lower_inc,
            "upper_inc": value.upper_inc,
        }
    if isinstance(value, (dict, asyncpg.Record)):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    # uuid, inet, cidr, macaddr, bit strings
    return str(value)
