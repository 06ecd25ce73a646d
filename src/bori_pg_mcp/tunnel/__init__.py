"""SSH tunnelling to the database host.

This package negotiates the SSH session and runs the loopback proxy that
forwards each database connection over its own SSH channel.
"""

from bori_pg_mcp.tunnel.negotiator import (
    SSHTunnel,
    build_ssh_options,
    establish_tunnel,
    load_private_key,
)
from bori_pg_mcp.tunnel.proxy import LocalProxyListener

__all__ = [
    "LocalProxyListener",
    "SSHTunnel",
    "build_ssh_options",
    "establish_tunnel",
    "load_private_key",
]
