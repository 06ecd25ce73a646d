"""Database connection and catalog utilities.

This package builds the pooled clients for the managed databases, provides
the scoped read-only transaction and the table catalog lookups.
"""

from bori_pg_mcp.db.factory import PooledClient, build_clients
from bori_pg_mcp.db.introspection import TableCatalog
from bori_pg_mcp.db.pool import close_pools, create_pool
from bori_pg_mcp.db.transaction import read_only_transaction

__all__ = [
    "PooledClient",
    "TableCatalog",
    "build_clients",
    "close_pools",
    "create_pool",
    "read_only_transaction",
]
