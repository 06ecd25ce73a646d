"""Unit tests for DatabaseService request handling."""

import json
from unittest.mock import MagicMock

import asyncpg
import pytest

from bori_pg_mcp.config.settings import Settings
from bori_pg_mcp.context import AppContext
from bori_pg_mcp.db.factory import PooledClient
from bori_pg_mcp.models.errors import DatabaseError, ValidationError
from bori_pg_mcp.services.database_service import DatabaseService


@pytest.fixture
def mock_metrics() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_context(pool_factory, connection_factory):
    """Build an AppContext whose clients all return ``rows`` from fetch."""

    def _make(rows=None) -> AppContext:
        clients = []
        for name in ("haksa_sis", "canvas_production"):
            conn = connection_factory(rows)
            clients.append(PooledClient(name, pool_factory(conn), conn))
        return AppContext(settings=Settings(), clients=clients)

    return _make


class TestListTables:
    """Test table resource listing."""

    @pytest.mark.asyncio
    async def test_lists_tables_of_every_database(self, make_context, mock_metrics) -> None:
        service = DatabaseService(make_context([{"table_name": "users"}]), mock_metrics)

        resources = await service.list_tables()

        assert resources == [
            {
                "uri": "postgres://haksa_sis/users/schema",
                "mimeType": "application/json",
                "name": '"users" table from haksa_sis database',
            },
            {
                "uri": "postgres://canvas_production/users/schema",
                "mimeType": "application/json",
                "name": '"users" table from canvas_production database',
            },
        ]

    @pytest.mark.asyncio
    async def test_lists_one_database(self, make_context, mock_metrics) -> None:
        context = make_context([{"table_name": "courses"}, {"table_name": "enrollments"}])
        service = DatabaseService(context, mock_metrics)

        resources = await service.list_tables("canvas_production")

        assert [r["uri"] for r in resources] == [
            "postgres://canvas_production/courses/schema",
            "postgres://canvas_production/enrollments/schema",
        ]
        haksa = context.client("haksa_sis")
        haksa.connection.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_database(self, make_context, mock_metrics) -> None:
        service = DatabaseService(make_context(), mock_metrics)

        with pytest.raises(ValidationError, match="Unknown database 'lms'"):
            await service.list_tables("lms")


class TestReadTableSchema:
    """Test the table schema resource."""

    @pytest.mark.asyncio
    async def test_returns_columns_as_json(self, make_context, mock_metrics) -> None:
        rows = [
            {"column_name": "id", "data_type": "integer", "is_nullable": "NO"},
            {"column_name": "email", "data_type": "text", "is_nullable": "YES"},
        ]
        context = make_context(rows)
        service = DatabaseService(context, mock_metrics)

        text = await service.read_table_schema("haksa_sis", "users")

        assert json.loads(text) == rows
        conn = context.client("haksa_sis").connection
        assert conn.fetch.await_args.args[1] == "users"
        conn.transaction.return_value.rollback.assert_awaited_once()


class TestQuery:
    """Test read-only query handling."""

    @pytest.mark.asyncio
    async def test_defaults_to_canvas(self, make_context, mock_metrics) -> None:
        context = make_context([{"id": 7, "name": "Intro to SQL"}])
        service = DatabaseService(context, mock_metrics)

        text = await service.query("SELECT id, name FROM courses")

        assert json.loads(text) == [{"id": 7, "name": "Intro to SQL"}]
        context.client("canvas_production").connection.fetch.assert_awaited_once()
        mock_metrics.increment_query_request.assert_called_once_with(
            status="success", database="canvas_production"
        )

    @pytest.mark.asyncio
    async def test_targets_named_database(self, make_context, mock_metrics) -> None:
        context = make_context([{"one": 1}])
        service = DatabaseService(context, mock_metrics)

        await service.query("SELECT 1 AS one", "haksa_sis")

        context.client("haksa_sis").connection.fetch.assert_awaited_once()
        context.client("canvas_production").connection.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_counted(self, make_context, mock_metrics) -> None:
        context = make_context()
        context.client("canvas_production").connection.fetch.side_effect = (
            asyncpg.PostgresError("cannot execute INSERT in a read-only transaction")
        )
        service = DatabaseService(context, mock_metrics)

        with pytest.raises(DatabaseError, match="read-only transaction"):
            await service.query("INSERT INTO courses VALUES (1)")

        mock_metrics.increment_query_request.assert_called_once_with(
            status="error", database="canvas_production"
        )
