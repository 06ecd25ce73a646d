"""SSH tunnel negotiation.

This module authenticates to the SSH bastion and starts a
:class:`~bori_pg_mcp.tunnel.proxy.LocalProxyListener` whose connections are
forwarded to the remote database. Credential problems are reported before
any network I/O; every failure after the SSH session is up closes the
session before the error is raised. Nothing is retried here.
"""

import asyncio
import logging
import os
from typing import Any

import asyncssh

from bori_pg_mcp.config.settings import LOCAL_BIND_HOST, SSHConfig
from bori_pg_mcp.models.connection import ConnectionArgs, TunnelEndpoint
from bori_pg_mcp.models.errors import (
    ForwardError,
    KeyReadError,
    LocalListenError,
    MissingCredentialsError,
    SSHConnectError,
)
from bori_pg_mcp.observability.metrics import metrics
from bori_pg_mcp.tunnel.proxy import LocalProxyListener

logger = logging.getLogger(__name__)


class SSHTunnel:
    """An authenticated SSH session together with its local proxy listener.

    The session must outlive every database client pointed at
    :attr:`endpoint`; the owner closes it during teardown. If the server
    ends the session first, the listener is stopped and the tunnel reports
    itself :attr:`closed`.
    """

    def __init__(
        self,
        connection: asyncssh.SSHClientConnection,
        listener: LocalProxyListener,
        endpoint: TunnelEndpoint,
    ) -> None:
        self.connection = connection
        self.listener = listener
        self.endpoint = endpoint
        self._closed = False
        self._watcher = asyncio.ensure_future(self._watch_session())

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop the proxy listener and end the SSH session. Safe to call twice."""
        current = asyncio.current_task()
        if self._closed:
            if not self._watcher.done() and self._watcher is not current:
                await asyncio.wait([self._watcher])
            return
        self._closed = True
        if self._watcher is not current:
            self._watcher.cancel()

        try:
            await self.listener.close()
        finally:
            await _close_connection(self.connection)
        logger.info("SSH tunnel closed: %s", self.endpoint)

    async def _watch_session(self) -> None:
        await self.connection.wait_closed()
        if self._closed:
            return
        logger.warning("SSH session ended by the server: %s", self.endpoint)
        metrics.increment_ssh_session(status="lost")
        await self.close()

    async def __aenter__(self) -> "SSHTunnel":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def load_private_key(path: str, passphrase: str | None = None) -> asyncssh.SSHKey:
    """Read an SSH private key from disk.

    Args:
        path: Key file path; ``~`` is expanded.
        passphrase: Passphrase for an encrypted key.

    Returns:
        asyncssh.SSHKey: The decoded private key.

    Raises:
        KeyReadError: If the file is unreadable, malformed, or cannot be decrypted.
    """
    try:
        return asyncssh.read_private_key(os.path.expanduser(path), passphrase)
    except (OSError, asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
        raise KeyReadError(
            message=f"Failed to read SSH private key: {e}",
            details={"path": path, "error_type": type(e).__name__},
        ) from e


def build_ssh_options(args: ConnectionArgs, ssh_config: SSHConfig) -> dict[str, Any]:
    """Build keyword arguments for :func:`asyncssh.connect`.

    Exactly one credential form is configured: the private key when a key
    path is given, otherwise the password. Agent and default-key lookup are
    disabled so no other credential is tried.

    Raises:
        MissingCredentialsError: If neither a password nor a key path is set.
        KeyReadError: If the private key cannot be loaded.
    """
    options: dict[str, Any] = {
        "host": args.ssh_host,
        "port": args.ssh_port or 22,
        "username": args.ssh_user,
        "known_hosts": ssh_config.known_hosts,
        "agent_path": None,
        "keepalive_interval": ssh_config.keepalive_interval,
    }

    if args.ssh_private_key_path:
        passphrase = args.ssh_passphrase.get_secret_value() if args.ssh_passphrase else None
        options["client_keys"] = [load_private_key(args.ssh_private_key_path, passphrase)]
        options["password"] = None
    elif args.ssh_password and args.ssh_password.get_secret_value():
        options["client_keys"] = None
        options["password"] = args.ssh_password.get_secret_value()
    else:
        raise MissingCredentialsError(
            message="SSH password or private key must be provided",
            details={"ssh_host": args.ssh_host, "ssh_user": args.ssh_user},
        )

    return options


async def establish_tunnel(args: ConnectionArgs, ssh_config: SSHConfig | None = None) -> SSHTunnel:
    """Authenticate to the SSH server and start the local proxy listener.

    Args:
        args: Connection arguments; ``ssh_host`` must be set.
        ssh_config: Timeouts, local port and host key settings.

    Returns:
        SSHTunnel: Live tunnel whose endpoint database clients should use.

    Raises:
        MissingCredentialsError: No SSH credential supplied (no network I/O).
        KeyReadError: Private key unusable (no network I/O).
        SSHConnectError: Transport failure, timeout, or authentication rejected.
        ForwardError: Listener setup timed out after the session was established.
        LocalListenError: The local port could not be bound.

    Example:
        >>> tunnel = await establish_tunnel(args)
        >>> print(tunnel.endpoint)
        127.0.0.1:49321 -> 10.0.0.5:5432
        >>> await tunnel.close()
    """
    ssh_config = ssh_config or SSHConfig()
    options = build_ssh_options(args, ssh_config)

    logger.info(
        "Connecting to SSH server %s:%d as %s",
        args.ssh_host,
        options["port"],
        args.ssh_user,
    )
    try:
        connection = await asyncio.wait_for(
            asyncssh.connect(**options), timeout=ssh_config.connect_timeout
        )
    except TimeoutError as e:
        metrics.increment_ssh_session(status="timeout")
        raise SSHConnectError(
            message=(
                f"SSH connection error: timed out after {ssh_config.connect_timeout}s "
                f"connecting to {args.ssh_host}:{options['port']}"
            ),
            details={"ssh_host": args.ssh_host, "timeout_seconds": ssh_config.connect_timeout},
        ) from e
    except asyncssh.PermissionDenied as e:
        metrics.increment_ssh_session(status="rejected")
        raise SSHConnectError(
            message=f"SSH connection error: {e.reason}",
            details={"ssh_host": args.ssh_host, "ssh_user": args.ssh_user},
        ) from e
    except (asyncssh.Error, OSError) as e:
        metrics.increment_ssh_session(status="error")
        raise SSHConnectError(
            message=f"SSH connection error: {e}",
            details={"ssh_host": args.ssh_host, "error_type": type(e).__name__},
        ) from e

    metrics.increment_ssh_session(status="success")
    logger.info("SSH connection established")

    listener = LocalProxyListener(
        connection,
        remote_host=args.db_host_remote,
        remote_port=args.db_port_remote,
        bind_host=LOCAL_BIND_HOST,
        bind_port=ssh_config.local_port,
        buffer_size=ssh_config.buffer_size,
    )
    try:
        local_port = await asyncio.wait_for(listener.start(), timeout=ssh_config.forward_timeout)
    except TimeoutError as e:
        await listener.close()
        await _close_connection(connection)
        raise ForwardError(
            message=f"SSH forwarding error: proxy setup timed out after {ssh_config.forward_timeout}s",
            details={"timeout_seconds": ssh_config.forward_timeout},
        ) from e
    except OSError as e:
        await _close_connection(connection)
        raise LocalListenError(
            message=f"Failed to listen on {LOCAL_BIND_HOST}:{ssh_config.local_port}: {e}",
            details={"bind_host": LOCAL_BIND_HOST, "bind_port": ssh_config.local_port},
        ) from e

    endpoint = TunnelEndpoint(
        host=LOCAL_BIND_HOST,
        port=local_port,
        remote_host=args.db_host_remote,
        remote_port=args.db_port_remote,
    )
    logger.info("SSH tunnel established: %s", endpoint)
    return SSHTunnel(connection, listener, endpoint)


async def _close_connection(connection: asyncssh.SSHClientConnection) -> None:
    connection.close()
    await connection.wait_closed()
