"""Local TCP proxy that bridges connections through an SSH session.

Every connection accepted on the loopback listener gets its own forwarded
(direct-tcpip) channel to the remote database, so a connection pool can hold
several simultaneous database connections over a single SSH session.
"""

import asyncio
import contextlib
import logging
from typing import Any

import asyncssh

from bori_pg_mcp.config.settings import LOCAL_BIND_HOST
from bori_pg_mcp.observability.metrics import metrics

logger = logging.getLogger(__name__)


class LocalProxyListener:
    """Loopback listener whose accepted connections are spliced to forwarded channels.

    Example:
        >>> listener = LocalProxyListener(conn, "10.0.0.5", 5432)
        >>> port = await listener.start()
        >>> # connect a database client to 127.0.0.1:port
        >>> await listener.close()
    """

    def __init__(
        self,
        connection: asyncssh.SSHClientConnection,
        remote_host: str,
        remote_port: int,
        bind_host: str = LOCAL_BIND_HOST,
        bind_port: int = 0,
        buffer_size: int = 65536,
    ) -> None:
        """Initialize the listener.

        Args:
            connection: Authenticated SSH connection used to open channels.
            remote_host: Database host as seen from the SSH server.
            remote_port: Database port as seen from the SSH server.
            bind_host: Local address to listen on.
            bind_port: Local port to listen on; 0 lets the kernel choose.
            buffer_size: Maximum bytes read per copy.
        """
        self.connection = connection
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.buffer_size = buffer_size

        self._server: asyncio.Server | None = None
        self._port: int | None = None
        self._bridges: set[asyncio.Task[Any]] = set()

    @property
    def port(self) -> int:
        """Port the listener is bound to."""
        if self._port is None:
            raise RuntimeError("Proxy listener has not been started")
        return self._port

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def active_connections(self) -> int:
        """Number of local connections currently bridged."""
        return len(self._bridges)

    async def start(self) -> int:
        """Bind the listener and start accepting connections.

        Returns:
            int: The bound local port.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._server = await asyncio.start_server(
            self._handle_client, self.bind_host, self.bind_port
        )
        self._port = self._server.sockets[0].getsockname()[1]
        logger.info(
            "Local proxy listening on %s:%d -> %s:%d",
            self.bind_host,
            self._port,
            self.remote_host,
            self.remote_port,
        )
        return self._port

    async def close(self) -> None:
        """Stop accepting connections and tear down every active bridge."""
        if self._server is None:
            return

        server, self._server = self._server, None
        server.close()

        bridges = list(self._bridges)
        for task in bridges:
            task.cancel()
        await asyncio.gather(*bridges, return_exceptions=True)

        await server.wait_closed()
        logger.info("Local proxy on %s:%s closed", self.bind_host, self._port)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._bridges.add(task)

        peer_host, peer_port = "", 0
        try:
            peername = writer.get_extra_info("peername")
            if peername:
                peer_host, peer_port = peername[:2]
            try:
                chan_reader, chan_writer = await self.connection.open_connection(
                    self.remote_host,
                    self.remote_port,
                    orig_host=peer_host,
                    orig_port=peer_port,
                )
            except (asyncssh.Error, OSError) as e:
                metrics.channel_failed()
                logger.warning(
                    "Could not open forwarded channel to %s:%d for %s:%s: %s",
                    self.remote_host,
                    self.remote_port,
                    peer_host,
                    peer_port,
                    e,
                )
                return

            metrics.channel_opened()
            logger.debug("Bridging %s:%s through SSH", peer_host, peer_port)
            try:
                await self._splice(reader, writer, chan_reader, chan_writer)
            finally:
                chan_writer.close()
                metrics.channel_closed()
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            if task is not None:
                self._bridges.discard(task)
            logger.debug("Connection from %s:%s closed", peer_host, peer_port)

    async def _splice(
        self,
        local_reader: asyncio.StreamReader,
        local_writer: asyncio.StreamWriter,
        chan_reader: asyncssh.SSHReader,
        chan_writer: asyncssh.SSHWriter,
    ) -> None:
        """Copy bytes both ways until either side reaches EOF or fails."""
        upstream = asyncio.ensure_future(self._pipe(local_reader, chan_writer, "upstream"))
        downstream = asyncio.ensure_future(self._pipe(chan_reader, local_writer, "downstream"))
        pipes = (upstream, downstream)
        try:
            await asyncio.wait(pipes, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pipe in pipes:
                pipe.cancel()
            results = await asyncio.gather(*pipes, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.debug("Bridge ended with %s: %s", type(result).__name__, result)

    async def _pipe(self, reader: Any, writer: Any, direction: str) -> None:
        while True:
            data = await reader.read(self.buffer_size)
            if not data:
                break
            writer.write(data)
            await writer.drain()
            metrics.add_tunnel_bytes(direction, len(data))
