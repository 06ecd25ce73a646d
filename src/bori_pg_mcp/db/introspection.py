"""Table catalog lookups for the managed databases.

This module lists the public tables of a database and reads the column
schema of a single table from information_schema. Both lookups run inside
a read-only transaction on a connection borrowed from the client's pool.
"""

from bori_pg_mcp.db.factory import PooledClient
from bori_pg_mcp.models.schema import ColumnSchema, TableResource

LIST_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public'
    ORDER BY table_name
"""

TABLE_COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = $1
    ORDER BY ordinal_position
"""


class TableCatalog:
    """Catalog queries against one managed database.

    Example:
        >>> catalog = TableCatalog(client)
        >>> tables = await catalog.list_tables()
        >>> columns = await catalog.describe_table("users")
    """

    def __init__(self, client: PooledClient) -> None:
        self.client = client

    @property
    def database(self) -> str:
        return self.client.database

    async def table_names(self) -> list[str]:
        """Names of all tables in the public schema."""
        async with self.client.read_only() as conn:
            rows = await conn.fetch(LIST_TABLES_SQL)
        return [row["table_name"] for row in rows]

    async def list_tables(self) -> list[TableResource]:
        """Resource descriptors for all tables in the public schema."""
        return [TableResource.for_table(self.database, name) for name in await self.table_names()]

    async def describe_table(self, table: str) -> list[ColumnSchema]:
        """Column name, type and nullability of one table.

        Args:
            table: Table name in the public schema.

        Returns:
            list[ColumnSchema]: Columns in ordinal order; empty for unknown tables.
        """
        async with self.client.read_only() as conn:
            rows = await conn.fetch(TABLE_COLUMNS_SQL, table)
        return [ColumnSchema(**dict(row)) for row in rows]
