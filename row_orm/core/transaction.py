"""Transaction boundary.

Groups the statements of one unit of work. Auto-commits on success,
auto-rolls-back on exception. Nested ``with`` blocks join the outermost one.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from row_orm.core.exceptions import TransactionStateError

if TYPE_CHECKING:
    from row_orm.core.connection import Connection


class _TxState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TransactionManager:
    """Synchronous transaction context manager."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._state = _TxState.IDLE
        self._depth = 0

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def is_active(self) -> bool:
        return self._state == _TxState.ACTIVE

    def __enter__(self) -> TransactionManager:
        if self._depth == 0:
            if self._state != _TxState.IDLE:
                raise TransactionStateError(self._state.value, "begin")
            self._state = _TxState.ACTIVE
        self._depth += 1
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self._depth -= 1
        if self._depth > 0:
            return
        try:
            if self._state == _TxState.ACTIVE:
                if exc_type is not None:
                    self._connection.raw.rollback()
                    self._state = _TxState.ROLLED_BACK
                else:
                    self._connection.raw.commit()
                    self._state = _TxState.COMMITTED
        finally:
            self._connection._transaction_finished(self)

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a write statement within this transaction."""
        self._check_active()
        cursor = self._connection.execute_statement(sql, params)
        return int(cursor.rowcount)

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch all rows within transaction context."""
        self._check_active()
        return self._connection.query(sql, params)

    def commit(self) -> None:
        """Explicitly commit the transaction."""
        if self._state == _TxState.ROLLED_BACK:
            raise TransactionStateError("rolled_back", "commit")
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "commit")
        self._connection.raw.commit()
        self._state = _TxState.COMMITTED

    def rollback(self) -> None:
        """Explicitly rollback the transaction."""
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "rollback")
        self._connection.raw.rollback()
        self._state = _TxState.ROLLED_BACK

    def _check_active(self) -> None:
        if self._state == _TxState.IDLE:
            raise TransactionStateError("idle", "execute")
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "execute")
        if self._state == _TxState.ROLLED_BACK:
            raise TransactionStateError("rolled_back", "execute")
