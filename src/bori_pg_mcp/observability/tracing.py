"""Request tracing for MCP handlers.

Every tool or resource call runs inside :func:`request_context`, which
stores a short request ID (and the database being served, when known) in
context variables. :class:`RequestIdFilter` stamps both onto log records
emitted while the request is in flight, including records from the SQL
executor and the pool.
"""

import contextvars
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_database_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "database", default=None
)


def generate_request_id() -> str:
    """Return a 12 character hex request ID."""
    return uuid.uuid4().hex[:12]


def get_request_id() -> str | None:
    return _request_id_var.get()


def get_request_database() -> str | None:
    return _database_var.get()


@asynccontextmanager
async def request_context(
    request_id: str | None = None, database: str | None = None
) -> AsyncIterator[str]:
    """Bind a request ID (and optionally a database) for the enclosed block.

    Args:
        request_id: ID to use; a new one is generated when omitted.
        database: Managed database the request targets.

    Yields:
        str: The request ID.

    Example:
        >>> async with request_context(database="haksa_sis") as request_id:
        ...     logger.info("Running query")
    """
    request_id = request_id or generate_request_id()
    id_token = _request_id_var.set(request_id)
    db_token = _database_var.set(database)
    try:
        yield request_id
    finally:
        _database_var.reset(db_token)
        _request_id_var.reset(id_token)


class RequestIdFilter(logging.Filter):
    """Copy the active request ID and database onto log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = _request_id_var.get()
        if request_id and not hasattr(record, "request_id"):
            record.request_id = request_id

        database = _database_var.get()
        if database and not hasattr(record, "database"):
            record.database = database
        return True
