"""Database adapter protocol.

Every adapter module implements this protocol so that Connection can stay
driver agnostic.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from row_orm.core.connection import ConnectionConfig


@runtime_checkable
class Adapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style. Statements are built with ':name' binds."""
        ...

    @property
    def supports_for_update(self) -> bool:
        """True if the database takes row locks with SELECT ... FOR UPDATE."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a DB-API connection."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor-like object."""
        ...

    def close(self, connection: Any) -> None:
        """Close the connection."""
        ...
