"""Pytest configuration and shared fixtures.

This module provides shared fixtures and configuration for all tests,
including fake asyncpg pools/connections and a fake SSH connection.
"""

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from bori_pg_mcp.config.settings import reset_settings


@pytest.fixture(autouse=True)
def reset_config() -> None:
    """Reset global settings before each test."""
    reset_settings()


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables and .env files out of the tests."""
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "false")
    for name in (
        "SSH_HOST",
        "SSH_USER",
        "SSH_PASSWORD",
        "SSH_PRIVATE_KEY_PATH",
        "SSH_PASSPHRASE",
        "DATABASE_HOST",
        "DATABASE_PORT",
        "DATABASE_USER",
        "DATABASE_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


class _AcquireContext:
    """Mimics asyncpg's PoolAcquireContext: awaitable and async context manager."""

    def __init__(self, pool: "FakePool") -> None:
        self._pool = pool

    def __await__(self) -> Any:
        return self._pool._acquire().__await__()

    async def __aenter__(self) -> Any:
        return await self._pool._acquire()

    async def __aexit__(self, *exc_info: object) -> None:
        await self._pool.release(self._pool.connection)


class FakePool:
    """Minimal stand-in for asyncpg.Pool."""

    def __init__(self, connection: Any, acquire_error: BaseException | None = None) -> None:
        self.connection = connection
        self.acquire_error = acquire_error
        self.acquired = 0
        self.release = AsyncMock()
        self.close = AsyncMock()
        self.terminate = MagicMock()

    def acquire(self) -> _AcquireContext:
        return _AcquireContext(self)

    async def _acquire(self) -> Any:
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        return self.connection


def make_connection(rows: list[dict[str, Any]] | None = None) -> MagicMock:
    """Create a mock asyncpg connection whose fetch returns ``rows``."""
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock(return_value=rows or [])
    transaction = MagicMock()
    transaction.start = AsyncMock()
    transaction.rollback = AsyncMock()
    conn.transaction = MagicMock(return_value=transaction)
    return conn


@pytest.fixture
def connection_factory() -> Callable[..., MagicMock]:
    return make_connection


@pytest.fixture
def pool_factory() -> type[FakePool]:
    return FakePool


@pytest.fixture
def ssh_connection() -> MagicMock:
    """Mock asyncssh.SSHClientConnection.

    ``wait_closed`` blocks until ``close`` is called or ``closed_event`` is set.
    """
    closed = asyncio.Event()
    conn = MagicMock()
    conn.closed_event = closed
    conn.close = MagicMock(side_effect=closed.set)
    conn.wait_closed = AsyncMock(side_effect=closed.wait)
    conn.open_connection = AsyncMock()
    return conn


class LoopbackSSHConnection:
    """SSH connection double whose channels are plain TCP connections.

    ``open_connection`` records the requested destination and claimed
    originator, then connects to the destination directly.
    """

    def __init__(self) -> None:
        self.channels: list[dict[str, Any]] = []
        self.fail_with: BaseException | None = None

    async def open_connection(
        self, host: str, port: int, *, orig_host: str = "", orig_port: int = 0
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        if self.fail_with is not None:
            raise self.fail_with
        self.channels.append(
            {"host": host, "port": port, "orig_host": orig_host, "orig_port": orig_port}
        )
        return await asyncio.open_connection(host, port)


@pytest.fixture
def loopback_ssh_connection() -> LoopbackSSHConnection:
    return LoopbackSSHConnection()
