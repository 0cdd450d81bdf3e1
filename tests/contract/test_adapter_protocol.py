"""Contract tests for adapter protocol compliance."""

from __future__ import annotations

import pytest

from row_orm.adapters.protocol import Adapter
from row_orm.adapters.sqlite import SqliteAdapter
from row_orm.core.connection import Connection, ConnectionConfig
from row_orm.core.exceptions import AdapterError


class TestSqliteAdapterProtocol:
    def test_implements_protocol(self) -> None:
        assert isinstance(SqliteAdapter(), Adapter)

    def test_paramstyle(self) -> None:
        assert SqliteAdapter().paramstyle == "named"

    def test_no_row_locks(self) -> None:
        assert SqliteAdapter().supports_for_update is False

    def test_lifecycle(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        assert conn is not None

        cursor = adapter.execute(conn, "SELECT :val AS val", {"val": 1})
        assert cursor.fetchone()["val"] == 1

        cursor = adapter.execute(conn, "PRAGMA foreign_keys")
        assert cursor.fetchone()[0] == 1

        adapter.close(conn)


class TestConnectionAdapterLoading:
    def test_default_adapter_from_driver(self, sqlite_config: ConnectionConfig) -> None:
        assert isinstance(Connection(sqlite_config).adapter, SqliteAdapter)

    def test_unsupported_driver_raises(self) -> None:
        config = ConnectionConfig(driver="db2", database="x")
        with pytest.raises(AdapterError, match="db2"):
            Connection(config)
