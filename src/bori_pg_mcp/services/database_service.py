"""Request handling for the MCP tools and resources.

``DatabaseService`` turns tool and resource calls into catalog lookups and
read-only queries against the managed databases and shapes the results as
JSON for the MCP client.
"""

import json
import logging
import time
from typing import Any

from bori_pg_mcp.context import AppContext
from bori_pg_mcp.db.introspection import TableCatalog
from bori_pg_mcp.models.errors import BoriMcpError, ExecutionTimeoutError
from bori_pg_mcp.observability.metrics import MetricsCollector
from bori_pg_mcp.observability.tracing import request_context
from bori_pg_mcp.services.sql_executor import SQLExecutor

logger = logging.getLogger(__name__)


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


class DatabaseService:
    """Serve table listings, table schemas and read-only queries.

    Example:
        >>> service = DatabaseService(context, metrics)
        >>> text = await service.query("SELECT 1 AS one", "haksa_sis")
    """

    def __init__(self, context: AppContext, metrics_collector: MetricsCollector) -> None:
        self.context = context
        self.executor = SQLExecutor(context.settings.security)
        self.metrics = metrics_collector

    async def list_tables(self, database: str | None = None) -> list[dict[str, Any]]:
        """Resource descriptors for public tables.

        Args:
            database: Restrict to one database; all managed databases when None.

        Returns:
            list[dict]: ``{"uri", "mimeType", "name"}`` per table, grouped by
            database in managed order.
        """
        clients = [self.context.client(database)] if database else self.context.clients
        resources: list[dict[str, Any]] = []
        async with request_context():
            for client in clients:
                tables = await TableCatalog(client).list_tables()
                logger.debug("Listed %d tables in %s", len(tables), client.database)
                resources.extend(table.model_dump(by_alias=True) for table in tables)
        return resources

    async def read_table_schema(self, database: str, table: str) -> str:
        """JSON list of ``{column_name, data_type, is_nullable}`` for one table."""
        async with request_context(database=database):
            columns = await TableCatalog(self.context.client(database)).describe_table(table)
        return to_json([column.model_dump() for column in columns])

    async def query(self, sql: str, database: str | None = None) -> str:
        """Run SQL in a read-only transaction and return the rows as JSON.

        Raises:
            ValidationError: Unknown database.
            ExecutionTimeoutError: Query exceeded the configured time limit.
            DatabaseError: Query failed.
        """
        client = self.context.client(database)
        async with request_context(database=client.database):
            logger.info("Running read-only query on %s", client.database)
            start = time.perf_counter()
            try:
                with self.metrics.query_duration.time():
                    rows, total = await self.executor.execute(client, sql)
            except ExecutionTimeoutError:
                self.metrics.increment_query_request(status="timeout", database=client.database)
                raise
            except BoriMcpError as e:
                self.metrics.increment_query_request(status="error", database=client.database)
                logger.warning("Query on %s failed: %s", client.database, e.message)
                raise

            self.metrics.increment_query_request(status="success", database=client.database)
            logger.info(
                "Query returned %d of %d rows in %.1fms",
                len(rows),
                total,
                (time.perf_counter() - start) * 1000,
            )
        return to_json(rows)
