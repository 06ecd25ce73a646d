"""Unit tests for the pooled client factory."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bori_pg_mcp.config.settings import DatabaseConfig
from bori_pg_mcp.db.factory import PooledClient, build_clients
from bori_pg_mcp.models.connection import DirectEndpoint, TunnelEndpoint
from bori_pg_mcp.models.errors import ClientAcquisitionError, ErrorCode


@pytest.fixture
def db_config() -> DatabaseConfig:
    return DatabaseConfig(host="10.0.0.5", user="reader", password="dbpass")


@pytest.fixture
def endpoint() -> TunnelEndpoint:
    return TunnelEndpoint(host="127.0.0.1", port=49321, remote_host="10.0.0.5", remote_port=5432)


@pytest.fixture
def tunnel() -> MagicMock:
    mock_tunnel = MagicMock()
    mock_tunnel.close = AsyncMock()
    return mock_tunnel


class TestBuildClients:
    """Test concurrent client acquisition."""

    @pytest.mark.asyncio
    async def test_preserves_requested_order(
        self,
        db_config: DatabaseConfig,
        endpoint: TunnelEndpoint,
        pool_factory,
        connection_factory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        pools = {name: pool_factory(connection_factory()) for name in ("haksa_sis", "canvas_production")}

        async def fake_create_pool(config, database, host, port):
            # The first database finishes last.
            if database == "haksa_sis":
                await asyncio.sleep(0.05)
            return pools[database]

        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", fake_create_pool)

        clients = await build_clients(endpoint, db_config)

        assert [client.database for client in clients] == ["haksa_sis", "canvas_production"]
        assert clients[0].pool is pools["haksa_sis"]
        assert clients[1].pool is pools["canvas_production"]
        assert all(client.connection is not None for client in clients)

    @pytest.mark.asyncio
    async def test_connects_to_endpoint_address(
        self,
        db_config: DatabaseConfig,
        pool_factory,
        connection_factory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        create_pool = AsyncMock(side_effect=lambda *args: pool_factory(connection_factory()))
        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", create_pool)

        await build_clients(DirectEndpoint(host="db.internal", port=6543), db_config, ["haksa_sis"])

        create_pool.assert_awaited_once_with(db_config, "haksa_sis", "db.internal", 6543)

    @pytest.mark.asyncio
    async def test_second_failure_unwinds_everything(
        self,
        db_config: DatabaseConfig,
        endpoint: TunnelEndpoint,
        tunnel: MagicMock,
        pool_factory,
        connection_factory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        first_pool = pool_factory(connection_factory())

        async def fake_create_pool(config, database, host, port):
            if database == "canvas_production":
                raise OSError("Connection refused")
            return first_pool

        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", fake_create_pool)

        with pytest.raises(ClientAcquisitionError) as exc_info:
            await build_clients(endpoint, db_config, tunnel=tunnel)

        error = exc_info.value
        assert error.database == "canvas_production"
        assert error.code == ErrorCode.ACQUISITION_FAILURE
        assert error.details["stage"] == "acquisition"
        assert isinstance(error.__cause__, OSError)
        first_pool.release.assert_awaited_once_with(first_pool.connection)
        first_pool.close.assert_awaited_once()
        tunnel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_first_failure_to_occur_is_reported(
        self,
        db_config: DatabaseConfig,
        endpoint: TunnelEndpoint,
        tunnel: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def fake_create_pool(config, database, host, port):
            if database == "haksa_sis":
                await asyncio.sleep(10)
            raise OSError(f"{database} unreachable")

        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", fake_create_pool)

        with pytest.raises(ClientAcquisitionError, match="canvas_production unreachable") as exc_info:
            await asyncio.wait_for(build_clients(endpoint, db_config, tunnel=tunnel), timeout=1.0)

        assert exc_info.value.database == "canvas_production"
        assert exc_info.value.details["failed"] == ["canvas_production"]
        tunnel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_cancels_pending_acquire(
        self,
        db_config: DatabaseConfig,
        endpoint: TunnelEndpoint,
        tunnel: MagicMock,
        pool_factory,
        connection_factory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        stuck_pool = pool_factory(connection_factory())
        acquire_started = asyncio.Event()

        async def hang():
            acquire_started.set()
            await asyncio.sleep(10)

        stuck_pool._acquire = hang

        async def fake_create_pool(config, database, host, port):
            if database == "canvas_production":
                await acquire_started.wait()
                raise OSError("Connection refused")
            return stuck_pool

        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", fake_create_pool)

        with pytest.raises(ClientAcquisitionError) as exc_info:
            await asyncio.wait_for(build_clients(endpoint, db_config, tunnel=tunnel), timeout=1.0)

        assert exc_info.value.database == "canvas_production"
        stuck_pool.close.assert_awaited_once()
        stuck_pool.release.assert_not_awaited()
        tunnel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_acquire_failure_closes_that_pool(
        self,
        db_config: DatabaseConfig,
        endpoint: TunnelEndpoint,
        tunnel: MagicMock,
        pool_factory,
        connection_factory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        good_pool = pool_factory(connection_factory())
        bad_pool = pool_factory(connection_factory(), acquire_error=OSError("pool exhausted"))
        pools = {"haksa_sis": bad_pool, "canvas_production": good_pool}

        async def fake_create_pool(config, database, host, port):
            return pools[database]

        monkeypatch.setattr("bori_pg_mcp.db.factory.create_pool", fake_create_pool)

        with pytest.raises(ClientAcquisitionError) as exc_info:
            await build_clients(endpoint, db_config, tunnel=tunnel)

        assert exc_info.value.database == "haksa_sis"
        bad_pool.close.assert_awaited_once()
        bad_pool.release.assert_not_awaited()
        good_pool.release.assert_awaited_once()
        good_pool.close.assert_awaited_once()
        tunnel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_direct_failure_without_tunnel(
        self,
        db_config: DatabaseConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            "bori_pg_mcp.db.factory.create_pool", AsyncMock(side_effect=OSError("no route"))
        )

        with pytest.raises(ClientAcquisitionError):
            await build_clients(DirectEndpoint(host="10.0.0.5", port=5432), db_config)


class TestPooledClient:
    """Test client release and shutdown."""

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, pool_factory, connection_factory) -> None:
        pool = pool_factory(connection_factory())
        client = PooledClient("haksa_sis", pool, pool.connection)

        await client.release()
        await client.release()

        pool.release.assert_awaited_once()
        assert client.connection is None
        assert "released" in repr(client)

    @pytest.mark.asyncio
    async def test_close_releases_and_closes_pool(self, pool_factory, connection_factory) -> None:
        pool = pool_factory(connection_factory())
        client = PooledClient("canvas_production", pool, pool.connection)

        await client.close()

        pool.release.assert_awaited_once_with(pool.connection)
        pool.close.assert_awaited_once()
        pool.terminate.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_only_borrows_from_pool(self, pool_factory, connection_factory) -> None:
        conn = connection_factory()
        pool = pool_factory(conn)
        client = PooledClient("haksa_sis", pool, conn)

        async with client.read_only() as borrowed:
            assert borrowed is conn

        conn.transaction.assert_called_once_with(readonly=True)
        conn.transaction.return_value.rollback.assert_awaited_once()
        pool.release.assert_awaited_once_with(conn)
