"""Service layer for the Bori PostgreSQL MCP Server.

This module provides the request-handling services behind the MCP tools and
resources: read-only SQL execution and table catalog lookups.
"""

from bori_pg_mcp.services.database_service import DatabaseService
from bori_pg_mcp.services.sql_executor import SQLExecutor

__all__ = [
    "DatabaseService",
    "SQLExecutor",
]
