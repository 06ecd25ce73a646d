"""Observability module for the Bori PostgreSQL MCP Server.

This module provides:
- Prometheus metrics for the tunnel, client acquisition and queries
- Structured logging with credential redaction
- Request ID propagation for MCP request handlers

Example:
    >>> from bori_pg_mcp.observability import configure_logging, metrics, request_context
    >>>
    >>> configure_logging(level="INFO", log_format="json")
    >>> metrics.start_metrics_server(9090)
    >>>
    >>> async with request_context() as request_id:
    ...     metrics.increment_query_request(status="success", database="haksa_sis")
"""

from bori_pg_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
)
from bori_pg_mcp.observability.metrics import MetricsCollector, metrics
from bori_pg_mcp.observability.tracing import (
    RequestIdFilter,
    generate_request_id,
    get_request_database,
    get_request_id,
    request_context,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "metrics",
    # Logging
    "configure_logging",
    "JSONFormatter",
    "TextFormatter",
    "SensitiveDataFilter",
    # Tracing
    "RequestIdFilter",
    "request_context",
    "generate_request_id",
    "get_request_id",
    "get_request_database",
]
