"""SQLite adapter (sqlite3 stdlib)."""

from __future__ import annotations

import sqlite3
from typing import Any

from row_orm.core.connection import ConnectionConfig


class SqliteAdapter:
    """Synchronous SQLite adapter using stdlib sqlite3."""

    @property
    def paramstyle(self) -> str:
        return "named"

    @property
    def supports_for_update(self) -> bool:
        # sqlite locks the whole database on write
        return False

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        """Open a connection; ``extra["foreign_keys"]`` enables FK enforcement."""
        conn = sqlite3.connect(config.database, timeout=config.timeout)
        conn.row_factory = sqlite3.Row
        if config.extra.get("foreign_keys"):
            conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        return connection.execute(sql, params or {})

    def close(self, connection: sqlite3.Connection) -> None:
        connection.close()
