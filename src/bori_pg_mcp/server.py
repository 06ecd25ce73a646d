"""FastMCP server exposing the managed PostgreSQL databases.

Tools:
    query: run a read-only SQL statement.
    list_tables: list tables as resource descriptors.

Resources:
    postgres://tables: every table of every managed database.
    postgres://{database}/{table}/schema: column schema of one table.

The lifespan connects to the databases (through the SSH tunnel when
``SSH_HOST`` is set) before the first request and closes everything on
shutdown. Connection failures abort startup.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ResourceError, ToolError
from pydantic import Field

from bori_pg_mcp.config.settings import get_settings
from bori_pg_mcp.context import AppContext
from bori_pg_mcp.models.errors import BoriMcpError
from bori_pg_mcp.models.schema import RESOURCE_MIME_TYPE
from bori_pg_mcp.observability.metrics import metrics
from bori_pg_mcp.services.database_service import DatabaseService, to_json

logger = logging.getLogger(__name__)

SERVER_NAME = "bori-mcp-servers/postgres"

DatabaseName = Literal["haksa_sis", "canvas_production"]


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Connect to the managed databases for the lifetime of the server."""
    settings = get_settings()

    if settings.observability.metrics_enabled:
        metrics.start_metrics_server(settings.observability.metrics_port)
        logger.info("Metrics server listening on port %d", settings.observability.metrics_port)

    try:
        context = await AppContext.open(settings)
    except BoriMcpError as e:
        logger.error("Startup failed at %s stage: %s", e.details.get("stage", "unknown"), e.message)
        raise

    logger.info("%s ready: %s", server.name, ", ".join(context.database_names))
    try:
        yield context
    finally:
        await context.close()


mcp = FastMCP(SERVER_NAME, lifespan=lifespan)


def _service(ctx: Context) -> DatabaseService:
    return DatabaseService(ctx.request_context.lifespan_context, metrics)


@mcp.tool
async def query(
    sql: Annotated[str, Field(description="The PostgreSQL query to run")],
    ctx: Context,
    database: Annotated[
        DatabaseName,
        Field(
            description=(
                "If table name starts with 'lms', use 'haksa_sis' database, "
                "otherwise use 'canvas_production' database"
            )
        ),
    ] = "canvas_production",
) -> str:
    """Run a read-only SQL query"""
    try:
        return await _service(ctx).query(sql, database)
    except BoriMcpError as e:
        raise ToolError(e.message) from e


@mcp.tool
async def list_tables(
    ctx: Context,
    database: Annotated[
        DatabaseName | None,
        Field(description="Database to list; both databases when omitted"),
    ] = None,
) -> list[dict[str, Any]]:
    """List public tables with the resource URI of each table's schema"""
    try:
        return await _service(ctx).list_tables(database)
    except BoriMcpError as e:
        raise ToolError(e.message) from e


@mcp.resource("postgres://tables", mime_type=RESOURCE_MIME_TYPE)
async def tables_resource(ctx: Context) -> str:
    """Tables of every managed database"""
    try:
        return to_json(await _service(ctx).list_tables())
    except BoriMcpError as e:
        raise ResourceError(e.message) from e


@mcp.resource("postgres://{database}/{table}/schema", mime_type=RESOURCE_MIME_TYPE)
async def table_schema_resource(database: str, table: str, ctx: Context) -> str:
    """Column names, data types and nullability of a table"""
    try:
        return await _service(ctx).read_table_schema(database, table)
    except BoriMcpError as e:
        raise ResourceError(e.message) from e
