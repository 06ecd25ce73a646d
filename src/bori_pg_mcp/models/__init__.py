"""Data models module."""

from bori_pg_mcp.models.connection import ConnectionArgs, DirectEndpoint, TunnelEndpoint
from bori_pg_mcp.models.errors import (
    BoriMcpError,
    ClientAcquisitionError,
    ClientError,
    ConnectionStage,
    DatabaseError,
    ErrorCode,
    ExecutionTimeoutError,
    ForwardError,
    KeyReadError,
    LocalListenError,
    MissingCredentialsError,
    SSHConnectError,
    TunnelError,
    ValidationError,
)
from bori_pg_mcp.models.schema import ColumnSchema, TableResource, table_schema_uri

__all__ = [
    # Connection models
    "ConnectionArgs",
    "DirectEndpoint",
    "TunnelEndpoint",
    # Catalog models
    "ColumnSchema",
    "TableResource",
    "table_schema_uri",
    # Error models
    "ErrorCode",
    "ConnectionStage",
    "BoriMcpError",
    "ValidationError",
    "DatabaseError",
    "ExecutionTimeoutError",
    "TunnelError",
    "MissingCredentialsError",
    "KeyReadError",
    "SSHConnectError",
    "ForwardError",
    "LocalListenError",
    "ClientError",
    "ClientAcquisitionError",
]
