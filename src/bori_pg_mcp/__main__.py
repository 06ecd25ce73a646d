"""Main entry point for the Bori PostgreSQL MCP Server.

This module provides the CLI entry point for running the MCP server
using FastMCP with stdio transport.
"""

import logging
import sys

import anyio

from bori_pg_mcp.config.settings import get_settings
from bori_pg_mcp.models.errors import BoriMcpError
from bori_pg_mcp.observability.logging import configure_logging
from bori_pg_mcp.server import mcp

logger = logging.getLogger("bori_pg_mcp")


def _leaf_errors(group: BaseExceptionGroup) -> list[BaseException]:
    errors: list[BaseException] = []
    for error in group.exceptions:
        if isinstance(error, BaseExceptionGroup):
            errors.extend(_leaf_errors(error))
        else:
            errors.append(error)
    return errors


def main() -> None:
    """Main entry point for the Bori PostgreSQL MCP Server.

    Configuration comes from environment variables (or ``.env``). Setting
    ``SSH_HOST`` routes database traffic through an SSH tunnel; otherwise
    the databases are reached directly at ``DATABASE_HOST``.

    Exits with status 1 when the databases cannot be reached at startup.

    Example:
        Run the server through a bastion:
        >>> DATABASE_HOST=10.0.0.5 DATABASE_USER=reader DATABASE_PASSWORD=... \\
        ...     SSH_HOST=bastion.example.com SSH_USER=alice SSH_PASSWORD=... \\
        ...     python -m bori_pg_mcp
    """
    settings = get_settings()
    configure_logging(
        level=settings.observability.log_level,
        log_format=settings.observability.log_format,
    )

    failed = False
    try:
        anyio.run(mcp.run_stdio_async)
    except* BoriMcpError as group:
        for error in _leaf_errors(group):
            logger.critical("Server startup failed: %s", error)
        failed = True

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
