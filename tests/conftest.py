"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from row_orm.core.connection import Connection, ConnectionConfig
from row_orm.persistence.manager import EntityManager
from tests.models import SCHEMA, build_entities, build_registry


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config with foreign keys enforced."""
    return ConnectionConfig(driver="sqlite", database=":memory:", extra={"foreign_keys": True})


@pytest.fixture
def connection(sqlite_config: ConnectionConfig) -> Iterator[Connection]:
    """Open connection with the dept/emp/project schema created."""
    conn = Connection(sqlite_config)
    conn.raw.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def make_manager(connection: Connection) -> Callable[..., EntityManager]:
    """Build an EntityManager over the test schema.

    Keyword arguments are passed to ``build_registry``.
    """

    def _make(**options) -> EntityManager:
        manager = EntityManager(connection, build_registry(**options))
        manager.add_entities(*build_entities())
        return manager

    return _make


@pytest.fixture
def manager(make_manager) -> EntityManager:
    return make_manager()


@pytest.fixture
def rows(connection: Connection) -> Callable[[str], list[dict]]:
    """Return every row of a table, ordered by its first column."""

    def _rows(table: str) -> list[dict]:
        return connection.query(f"SELECT * FROM {table} ORDER BY 1")

    return _rows
