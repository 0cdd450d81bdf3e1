"""Value generators for autogenerated column values.

An Entity lists generators per column. Before an insert, every column with
a generator and no supplied value receives ``generator.next_value()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from row_orm.schema import sql as statements

if TYPE_CHECKING:
    from row_orm.core.connection import Connection

logger = logging.getLogger(__name__)


@runtime_checkable
class ValueGenerator(Protocol):
    """Produces the next value for a column."""

    def next_value(self) -> Any: ...


class CallableGenerator:
    """Wraps a zero-argument callable, e.g. ``uuid.uuid4``."""

    def __init__(self, func: Callable[[], Any]) -> None:
        self._func = func

    def next_value(self) -> Any:
        return self._func()


class SequenceGenerator:
    """Reads the next value of a database sequence."""

    def __init__(
        self,
        connection: Connection,
        sequence_name: str,
        *,
        sql_template: str = "SELECT nextval('{name}') AS val",
    ) -> None:
        self._connection = connection
        self.sequence_name = statements.validate_identifier(sequence_name)
        self._sql = sql_template.format(name=sequence_name)

    def next_value(self) -> Any:
        rows = self._connection.query(self._sql)
        return next(iter(rows[0].values()))


class TableGenerator:
    """Keeps one counter row per generator name in a table.

    With ``allocation_size`` > 1 a block of values is reserved per round trip
    and handed out from memory.
    """

    def __init__(
        self,
        connection: Connection,
        name: str,
        *,
        table: str = "seq_generator",
        name_column: str = "pk_column",
        value_column: str = "value_column",
        initial_value: int = 1,
        allocation_size: int = 1,
    ) -> None:
        self._connection = connection
        self.name = name
        self.table = statements.validate_identifier(table)
        self.name_column = statements.validate_identifier(name_column)
        self.value_column = statements.validate_identifier(value_column)
        self.initial_value = initial_value
        self.allocation_size = max(1, allocation_size)
        self._next: int | None = None
        self._limit = 0

    def next_value(self) -> int:
        if self._next is None or self._next >= self._limit:
            self._next = self._reserve()
            self._limit = self._next + self.allocation_size
        value = self._next
        self._next += 1
        return value

    def _reserve(self) -> int:
        sql, params = statements.select(
            self.table, [self.value_column], {self.name_column: self.name}
        )
        rows = self._connection.query(sql, params)
        if not rows:
            start = self.initial_value
            sql, params = statements.insert(
                self.table,
                {self.name_column: self.name, self.value_column: start + self.allocation_size},
            )
        else:
            start = int(rows[0][self.value_column])
            sql, params = statements.update(
                self.table,
                {self.value_column: start + self.allocation_size},
                {self.name_column: self.name},
            )
        self._connection.execute_statement(sql, params)
        logger.debug("Reserved %s values from %s for '%s'", self.allocation_size, start, self.name)
        return start
