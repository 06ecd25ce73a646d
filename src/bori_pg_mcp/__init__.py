"""Bori PostgreSQL MCP Server.

A Model Context Protocol server that lists tables, reads column schemas and
runs read-only SQL against the haksa_sis and canvas_production databases,
directly or through an SSH-forwarded tunnel.
"""

__version__ = "0.1.0"

from bori_pg_mcp.config.settings import MANAGED_DATABASES, Settings, get_settings
from bori_pg_mcp.models.connection import ConnectionArgs, DirectEndpoint, TunnelEndpoint
from bori_pg_mcp.models.errors import (
    BoriMcpError,
    ClientAcquisitionError,
    ErrorCode,
    ForwardError,
    KeyReadError,
    LocalListenError,
    MissingCredentialsError,
    SSHConnectError,
    TunnelError,
)

__all__ = [
    "__version__",
    # Config
    "MANAGED_DATABASES",
    "Settings",
    "get_settings",
    # Models
    "ConnectionArgs",
    "DirectEndpoint",
    "TunnelEndpoint",
    # Errors
    "BoriMcpError",
    "TunnelError",
    "MissingCredentialsError",
    "KeyReadError",
    "SSHConnectError",
    "ForwardError",
    "LocalListenError",
    "ClientAcquisitionError",
    "ErrorCode",
]
