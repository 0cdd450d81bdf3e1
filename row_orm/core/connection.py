"""Connection configuration and statement execution.

ConnectionConfig is a Pydantic model for type-safe connection config.
Connection wraps one DB-API connection behind the adapter protocol and is the
collaborator every Entity executes its statements through.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel

from row_orm.core.exceptions import AdapterError
from row_orm.core.transaction import TransactionManager

logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for a database connection."""

    driver: str = "sqlite"
    database: str
    timeout: float = 5.0
    extra: dict[str, Any] = {}


# Adapter module mapping: driver name → (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    "sqlite": ("row_orm.adapters.sqlite", "SqliteAdapter"),
}


def _load_adapter(driver: str) -> Any:
    """Load an adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported database driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


def _row_to_dict(columns: list[str], row: Any) -> dict[str, Any]:
    """Convert a tuple-like or dict-like row to a dict."""
    if isinstance(row, dict):
        return dict(row)
    return dict(zip(columns, row, strict=True))


class Connection:
    """Executes statements and queries on a single database connection.

    Statements executed outside a transaction are committed immediately.
    Inside ``transaction()`` they are committed or rolled back together.
    """

    def __init__(self, config: ConnectionConfig, adapter: Any | None = None) -> None:
        self.config = config
        self._adapter = adapter if adapter is not None else _load_adapter(config.driver)
        self._raw: Any = None
        self._transaction: TransactionManager | None = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def raw(self) -> Any:
        """The underlying DB-API connection, opened on first use."""
        if self._raw is None:
            self.open()
        return self._raw

    def open(self) -> Any:
        if self._raw is None:
            logger.debug("Opening %s connection to %s", self.config.driver, self.config.database)
            self._raw = self._adapter.connect(self.config)
        return self._raw

    def close(self) -> None:
        if self._raw is not None:
            self._adapter.close(self._raw)
            self._raw = None

    def __enter__(self) -> Connection:
        self.open()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def transaction(self) -> TransactionManager:
        """Return the active transaction, or a new one.

        Entering an already active transaction joins it: only the outermost
        block commits or rolls back.
        """
        if self._transaction is None:
            self._transaction = TransactionManager(self)
        return self._transaction

    def _transaction_finished(self, transaction: TransactionManager) -> None:
        if self._transaction is transaction:
            self._transaction = None

    def execute_statement(self, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Execute a DML statement and return the cursor."""
        cursor = self._adapter.execute(self.raw, sql, params)
        if not self.in_transaction:
            self.raw.commit()
        return cursor

    def query_cursor(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        """Execute a query and yield rows as dicts."""
        cursor = self._adapter.execute(self.raw, sql, params)
        if cursor.description is None:
            return
        columns = [desc[0] for desc in cursor.description]
        for row in cursor:
            yield _row_to_dict(columns, row)

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dicts."""
        return list(self.query_cursor(sql, params))
