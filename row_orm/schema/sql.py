"""Statement builder.

Produces ``(sql, params)`` pairs using ``:name`` bind parameters. Conditions
are column/value mappings joined with AND: ``None`` becomes ``IS NULL`` and a
list, tuple or set becomes ``IN (...)``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from row_orm.core.exceptions import MappingError

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def validate_identifier(name: str) -> str:
    """Return *name* if it is a plain SQL identifier, raise MappingError otherwise."""
    if not isinstance(name, str) or not _IDENTIFIER_PATTERN.match(name):
        raise MappingError(f"Invalid SQL identifier: {name!r}")
    return name


def _qualify(column: str, alias: str | None) -> str:
    return f"{alias}.{column}" if alias else column


def where_clause(
    condition: Mapping[str, Any] | None,
    *,
    alias: str | None = None,
    prefix: str = "w",
) -> tuple[str, dict[str, Any]]:
    """Build an AND-joined WHERE body and its bind parameters."""
    if not condition:
        return "", {}
    parts: list[str] = []
    params: dict[str, Any] = {}
    for i, (column, value) in enumerate(condition.items()):
        ref = _qualify(column, alias)
        if value is None:
            parts.append(f"{ref} IS NULL")
        elif isinstance(value, (list, tuple, set, frozenset)):
            names = []
            for j, item in enumerate(value):
                name = f"{prefix}{i}_{j}"
                params[name] = item
                names.append(f":{name}")
            parts.append(f"{ref} IN ({', '.join(names)})" if names else "1 = 0")
        else:
            name = f"{prefix}{i}"
            params[name] = value
            parts.append(f"{ref} = :{name}")
    return " AND ".join(parts), params


def select(
    table: str,
    columns: Sequence[str],
    condition: Mapping[str, Any] | None = None,
    *,
    order_by: str | None = None,
    for_update: bool = False,
) -> tuple[str, dict[str, Any]]:
    sql = f"SELECT {', '.join(columns)} FROM {table}"
    where, params = where_clause(condition)
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if for_update:
        sql += " FOR UPDATE"
    return sql, params


def join_select(
    target_table: str,
    target_columns: Sequence[str],
    owner_table: str,
    on: Iterable[tuple[str, str]],
    condition: Mapping[str, Any] | None = None,
    *,
    order_by: str | None = None,
) -> tuple[str, dict[str, Any]]:
    """Select target rows joined to owner rows matching *condition*.

    *on* holds ``(target_column, owner_column)`` pairs. The target is aliased
    ``t`` and the owner ``o`` so self-referencing relationships work.
    """
    on_clause = " AND ".join(f"t.{target} = o.{owner}" for target, owner in on)
    columns = ", ".join(f"t.{column}" for column in target_columns)
    sql = f"SELECT {columns} FROM {target_table} t INNER JOIN {owner_table} o ON {on_clause}"
    where, params = where_clause(condition, alias="o")
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    return sql, params


def insert(table: str, values: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    params = {f"v{i}": value for i, value in enumerate(values.values())}
    columns = ", ".join(values)
    binds = ", ".join(f":{name}" for name in params)
    return f"INSERT INTO {table} ({columns}) VALUES ({binds})", params


def update(
    table: str,
    values: Mapping[str, Any],
    condition: Mapping[str, Any],
) -> tuple[str, dict[str, Any]]:
    params: dict[str, Any] = {}
    assignments = []
    for i, (column, value) in enumerate(values.items()):
        params[f"v{i}"] = value
        assignments.append(f"{column} = :v{i}")
    sql = f"UPDATE {table} SET {', '.join(assignments)}"
    where, where_params = where_clause(condition)
    if where:
        sql += f" WHERE {where}"
    params.update(where_params)
    return sql, params


def delete(table: str, condition: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    sql = f"DELETE FROM {table}"
    where, params = where_clause(condition)
    if where:
        sql += f" WHERE {where}"
    return sql, params
