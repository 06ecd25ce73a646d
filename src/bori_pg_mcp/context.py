"""Application context shared by all MCP request handlers.

The context is built once by the server lifespan and handed to each request
through the MCP request context. It owns the pooled clients and, when the
databases are reached over SSH, the tunnel they depend on.
"""

import logging
from dataclasses import dataclass, field

from bori_pg_mcp.config.settings import DEFAULT_DATABASE, MANAGED_DATABASES, Settings
from bori_pg_mcp.db.factory import PooledClient, build_clients
from bori_pg_mcp.models.connection import ConnectionArgs, DirectEndpoint
from bori_pg_mcp.models.errors import ValidationError
from bori_pg_mcp.tunnel.negotiator import SSHTunnel, establish_tunnel

logger = logging.getLogger(__name__)


async def connect_databases(
    args: ConnectionArgs,
    settings: Settings,
) -> tuple[list[PooledClient], SSHTunnel | None]:
    """Open the tunnel (when an SSH host is given) and acquire one client per database.

    Args:
        args: Connection arguments.
        settings: Pool, SSH and timeout settings.

    Returns:
        tuple: (clients in ``MANAGED_DATABASES`` order, tunnel or None on the direct path)

    Raises:
        TunnelError: If the SSH tunnel could not be established.
        ClientAcquisitionError: If a database client could not be acquired. The
            tunnel is already closed when this is raised.
    """
    db_config = settings.database.model_copy(
        update={"user": args.db_user, "password": args.db_password}
    )

    if not args.uses_tunnel:
        endpoint = DirectEndpoint(host=args.db_host_remote, port=args.db_port_remote)
        logger.info("Connecting directly to %s:%d", endpoint.host, endpoint.port)
        clients = await build_clients(endpoint, db_config, MANAGED_DATABASES)
        return clients, None

    tunnel = await establish_tunnel(args, settings.ssh)
    clients = await build_clients(tunnel.endpoint, db_config, MANAGED_DATABASES, tunnel=tunnel)
    return clients, tunnel


@dataclass
class AppContext:
    """Live database clients and the tunnel behind them."""

    settings: Settings
    clients: list[PooledClient]
    tunnel: SSHTunnel | None = None
    _by_name: dict[str, PooledClient] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_name = {client.database: client for client in self.clients}

    @classmethod
    async def open(cls, settings: Settings) -> "AppContext":
        """Connect to every managed database using ``settings``."""
        clients, tunnel = await connect_databases(ConnectionArgs.from_settings(settings), settings)
        return cls(settings=settings, clients=clients, tunnel=tunnel)

    @property
    def database_names(self) -> list[str]:
        return [client.database for client in self.clients]

    def client(self, database: str | None = None) -> PooledClient:
        """Look up the client of a managed database.

        Args:
            database: Database name; ``canvas_production`` when omitted.

        Raises:
            ValidationError: If the database is not one of the managed databases.
        """
        name = database or DEFAULT_DATABASE
        try:
            return self._by_name[name]
        except KeyError:
            raise ValidationError(
                message=f"Unknown database '{name}'",
                details={"database": name, "available": self.database_names},
            ) from None

    async def close(self) -> None:
        """Close every client and pool, then the tunnel."""
        try:
            for client in self.clients:
                await client.close()
        finally:
            if self.tunnel is not None:
                await self.tunnel.close()
        logger.info("Application context closed")
