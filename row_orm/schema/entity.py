"""SQL entity: a table with its keys, relationships and triggers.

An Entity generates and executes the DML/DQL for one table through the
entity manager's connection. Rows are plain dicts unless a mapped class is
requested, in which case the entity manager deserializes them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import TriggerEvent
from row_orm.core.exceptions import (
    MappingError,
    PersistenceError,
    PrimaryKeyUnresolvableError,
    UnknownRelationshipError,
)
from row_orm.core.triggers import Triggers
from row_orm.schema import sql as statements

if TYPE_CHECKING:
    from row_orm.persistence.manager import EntityManager

logger = logging.getLogger(__name__)


@dataclass
class SQLRelationship:
    """Join between an entity and a target entity.

    On a to-one relationship the join columns belong to the owning entity and
    reference the target's primary key. On a to-many relationship they belong
    to the target and reference the owner's primary key.
    """

    target_entity: str
    join_columns: list[str] = field(default_factory=list)
    name: str | None = None
    order_by: str | None = None

    def __post_init__(self) -> None:
        if self.name is None:
            self.name = self.target_entity
        for column in self.join_columns:
            statements.validate_identifier(column)


def _qualify_order_by(order_by: str | None, alias: str) -> str | None:
    if not order_by:
        return order_by
    parts = []
    for item in order_by.split(","):
        item = item.strip()
        parts.append(item if "." in item else f"{alias}.{item}")
    return ", ".join(parts)


class Entity:
    """Database entity (table) definition and row gateway.

    Args:
        name: Table name.
        columns: Column names.
        primary_key: Primary key column names, in key order.
        unique_columns: Columns whose values identify a row when the primary
            key is not known.
        to_one_relationships: Relationships whose join columns live here.
        to_many_relationships: Relationships whose join columns live on the target.
        value_generators: Column name to generator (or generator name
            registered with the entity manager).
        dml_filter_values: Column values added to every DML statement.
        filter_condition_values: Column values added to every find condition.
    """

    def __init__(
        self,
        name: str,
        *,
        columns: Iterable[str],
        primary_key: Iterable[str],
        unique_columns: Iterable[str] = (),
        to_one_relationships: Iterable[SQLRelationship] = (),
        to_many_relationships: Iterable[SQLRelationship] = (),
        value_generators: Mapping[str, Any] | None = None,
        dml_filter_values: Mapping[str, Any] | None = None,
        filter_condition_values: Mapping[str, Any] | None = None,
    ) -> None:
        self.name = statements.validate_identifier(name)
        self.columns: list[str] = [statements.validate_identifier(c) for c in columns]
        self.primary_key: list[str] = list(primary_key)
        self.unique_columns: list[str] = list(unique_columns)
        for column in (*self.primary_key, *self.unique_columns):
            if column not in self.columns:
                raise MappingError(f"Entity '{name}' has no column '{column}'")
        self._to_one: dict[str, SQLRelationship] = {}
        self._to_many: dict[str, SQLRelationship] = {}
        self.add_to_one_relationships(*to_one_relationships)
        self.add_to_many_relationships(*to_many_relationships)
        self.value_generators: dict[str, Any] = dict(value_generators or {})
        self.dml_filter_values: dict[str, Any] = dict(dml_filter_values or {})
        self.filter_condition_values: dict[str, Any] = dict(filter_condition_values or {})
        self.triggers = Triggers()
        self.entity_manager: EntityManager | None = None

    def __repr__(self) -> str:
        return f"<Entity name={self.name} primary_key={self.primary_key}>"

    # --- Relationships ---

    def add_to_one_relationships(self, *relationships: SQLRelationship) -> None:
        for relationship in relationships:
            self._to_one[relationship.name] = relationship

    def add_to_many_relationships(self, *relationships: SQLRelationship) -> None:
        for relationship in relationships:
            self._to_many[relationship.name] = relationship

    @property
    def sql_relationships(self) -> list[SQLRelationship]:
        return [*self._to_one.values(), *self._to_many.values()]

    def is_to_one(self, name: str) -> bool:
        return name in self._to_one

    def relationship(self, name: str) -> SQLRelationship:
        """Return the to-one or to-many relationship called *name*.

        Raises:
            UnknownRelationshipError: If the entity has no such relationship.
        """
        relationship = self._to_one.get(name) or self._to_many.get(name)
        if relationship is None:
            raise UnknownRelationshipError(f"entity '{self.name}'", name)
        return relationship

    # --- Triggers ---

    def trigger(self, event_name: str | TriggerEvent, callback: Callable[..., Any]) -> None:
        """Register a row-level trigger; it receives the field values dict."""
        self.triggers.set(f"entity '{self.name}'", event_name, callback)

    def run_event(self, event: TriggerEvent, *args: Any) -> None:
        self.triggers.run(event, *args)

    # --- Manager plumbing ---

    @property
    def manager(self) -> EntityManager:
        if self.entity_manager is None:
            raise PersistenceError(f"Entity '{self.name}' is not attached to an entity manager")
        return self.entity_manager

    def target(self, relationship: SQLRelationship) -> Entity:
        return self.manager.entity(relationship.target_entity)

    # --- Queries ---

    def find(self, class_: type | None = None, /, **condition: Any) -> list[Any]:
        """Return rows (or *class_* objects) matching *condition*.

        When *class_* has an entity mapping the condition keys are its
        attribute names, otherwise they are column names.
        """
        return self.search(None, class_, **condition)

    def search(
        self,
        columns: Iterable[str] | None,
        class_: type | None = None,
        /,
        **condition: Any,
    ) -> list[Any]:
        """Like find, restricted to *columns*."""
        manager = self.manager
        condition_values = {
            **manager._condition_converter(class_, condition),
            **self.filter_condition_values,
        }
        sql, params = statements.select(
            self.name, list(columns) if columns else self.columns, condition_values
        )
        return self._execute_query(sql, params, class_)

    def lock(self, class_: type | None = None, /, **condition: Any) -> list[Any]:
        """Like find, locking the matched rows with SELECT ... FOR UPDATE.

        Adapters without row locks run the plain select; call it inside a
        transaction so the lock lasts until commit.
        """
        manager = self.manager
        condition_values = {
            **manager._condition_converter(class_, condition),
            **self.filter_condition_values,
        }
        for_update = manager.connection.adapter.supports_for_update
        if not for_update:
            logger.debug("Adapter takes no row locks, selecting '%s' without FOR UPDATE", self.name)
        sql, params = statements.select(
            self.name, self.columns, condition_values, for_update=for_update
        )
        return self._execute_query(sql, params, class_)

    def relationship_query(
        self,
        relation_name: str,
        class_: type | None = None,
        target_class: type | None = None,
        /,
        **condition: Any,
    ) -> list[Any]:
        """Return the target rows related to the rows of this entity matching *condition*.

        *class_* names the mapped class the condition refers to, *target_class*
        the class the target rows are deserialized to (dicts when None).
        """
        relationship = self.relationship(relation_name)
        target = self.target(relationship)
        if self.is_to_one(relation_name):
            pairs = zip(target.primary_key, relationship.join_columns, strict=True)
        else:
            pairs = zip(relationship.join_columns, self.primary_key, strict=True)
        condition_values = self.manager._condition_converter(class_, condition)
        sql, params = statements.join_select(
            target.name,
            target.columns,
            self.name,
            list(pairs),
            condition_values,
            order_by=_qualify_order_by(relationship.order_by, "t"),
        )
        return target._execute_query(sql, params, target_class)

    # --- DML ---

    def insert(self, /, **fields_values: Any) -> dict[str, Any]:
        """Insert a row and return its field values, including generated ones."""
        values = dict(fields_values)
        self._autogenerated_values(values)
        values.update(self.dml_filter_values)
        self.run_event(TriggerEvent.BEFORE_INSERT, values)
        row = {
            column: value
            for column, value in self._writable(values).items()
            if not (column in self.primary_key and value is None)
        }
        sql, params = statements.insert(self.name, row)
        cursor = self.manager.connection.execute_statement(sql, params)
        if len(self.primary_key) == 1 and values.get(self.primary_key[0]) is None:
            last_row_id = getattr(cursor, "lastrowid", None)
            if last_row_id is not None:
                values[self.primary_key[0]] = last_row_id
        if self.primary_key and self.is_refresh_required(values):
            self._refresh_primary_key(values)
        self.run_event(TriggerEvent.AFTER_INSERT, values)
        return values

    def _refresh_primary_key(self, values: dict[str, Any]) -> None:
        # database-side key defaults, read back through the unique columns
        unique_values = {
            column: values[column]
            for column in self.unique_columns
            if values.get(column) is not None
        }
        if not unique_values:
            return
        key = self.retrieve_primary_key_values(unique_values)
        if key is not None:
            values.update(key)

    def update(self, fields_values: Mapping[str, Any], condition_values: Mapping[str, Any]) -> int:
        """Update rows matching *condition_values*; returns the affected row count."""
        values = {**fields_values, **self.dml_filter_values}
        self.run_event(TriggerEvent.BEFORE_UPDATE, values)
        assignments = self._writable(values)
        if not assignments:
            return 0
        sql, params = statements.update(self.name, assignments, condition_values)
        cursor = self.manager.connection.execute_statement(sql, params)
        self.run_event(TriggerEvent.AFTER_UPDATE, values)
        return int(cursor.rowcount)

    def delete(self, /, **condition_values: Any) -> int:
        """Delete rows matching *condition_values*; returns the affected row count."""
        condition = {**condition_values, **self.dml_filter_values}
        if not condition:
            raise PersistenceError(f"Refusing to delete from '{self.name}' without a condition")
        self.run_event(TriggerEvent.BEFORE_DELETE, condition)
        sql, params = statements.delete(self.name, condition)
        cursor = self.manager.connection.execute_statement(sql, params)
        self.run_event(TriggerEvent.AFTER_DELETE, condition)
        return int(cursor.rowcount)

    def merge(self, /, **fields_values: Any) -> dict[str, Any]:
        """Update the row identified by primary key or unique columns, or insert it.

        Returns the merged field values, including the primary key.
        """
        condition = self.unique_condition_values(fields_values, required=True)
        existing = self.find(None, **condition)
        if not existing:
            return self.insert(**fields_values)
        changes = {k: v for k, v in fields_values.items() if k not in condition}
        if changes:
            self.update(changes, condition)
        return {**existing[0], **fields_values}

    # --- Keys ---

    def has_primary_key_values(self, dataset: Mapping[str, Any] | None) -> bool:
        dataset = dataset or {}
        return bool(self.primary_key) and all(
            dataset.get(column) is not None for column in self.primary_key
        )

    def is_refresh_required(self, fields_values: Mapping[str, Any]) -> bool:
        """Return True if *fields_values* lack part of the primary key."""
        return not self.has_primary_key_values(fields_values)

    def unique_condition_values(
        self,
        dataset: Mapping[str, Any],
        required: bool = False,
    ) -> dict[str, Any]:
        """Return the values that identify a row: primary key, else unique columns."""
        if self.has_primary_key_values(dataset):
            return {column: dataset[column] for column in self.primary_key}
        result = {
            column: dataset[column]
            for column in self.unique_columns
            if dataset.get(column) is not None
        }
        if not result and required:
            raise PrimaryKeyUnresolvableError(
                self.name, dict(dataset), "no primary key or unique column values"
            )
        return result

    def primary_key_values(
        self,
        dataset: Mapping[str, Any],
        required: bool = False,
    ) -> dict[str, Any] | None:
        """Return primary key values, looking them up through unique columns if needed.

        Raises:
            PrimaryKeyUnresolvableError: If *required* and no values are found.
        """
        if self.has_primary_key_values(dataset):
            return {column: dataset[column] for column in self.primary_key}
        result = None
        unique_values = self.unique_condition_values(dataset)
        if unique_values:
            result = self.retrieve_primary_key_values(unique_values)
        if result is None and required:
            raise PrimaryKeyUnresolvableError(self.name, dict(dataset))
        return result

    def retrieve_primary_key_values(self, condition: Mapping[str, Any]) -> dict[str, Any] | None:
        """Look up the primary key of the single row matching *condition*."""
        if not self.primary_key:
            raise MappingError(f"Primary key must be defined for entity '{self.name}'")
        rows = self.search(self.primary_key, None, **condition)
        if len(rows) > 1:
            logger.warning(
                "Unique condition %s matched %d rows in '%s'", dict(condition), len(rows), self.name
            )
            raise PrimaryKeyUnresolvableError(
                self.name, dict(condition), f"unique columns matched {len(rows)} rows"
            )
        return rows[0] if rows else None

    def primary_key_signature(self, values: Mapping[str, Any]) -> tuple[Any, ...]:
        """Ordered tuple of primary key values identifying one row."""
        return tuple(values[column] for column in self.primary_key)

    # --- Internals ---

    def _writable(self, values: Mapping[str, Any]) -> dict[str, Any]:
        result = {k: v for k, v in values.items() if k in self.columns}
        ignored = set(values) - set(result)
        if ignored:
            logger.debug("Ignoring non-column fields %s for '%s'", sorted(ignored), self.name)
        return result

    def _autogenerated_values(self, values: dict[str, Any]) -> None:
        for column, generator in self.value_generators.items():
            if values.get(column) is not None:
                continue
            if isinstance(generator, str):
                generator = self.manager.value_generator(generator)
            values[column] = generator.next_value()

    def _execute_query(
        self,
        sql: str,
        params: dict[str, Any],
        class_: type | None,
    ) -> list[Any]:
        manager = self.manager
        results = []
        for row in manager.connection.query(sql, params):
            result = manager._deserialize_object(class_, row) if class_ is not None else row
            self.run_event(TriggerEvent.ON_FETCH, result)
            results.append(result)
        return results
