"""Object-relational mapping for one class.

EntityMapping ties a class to an entity: it maps columns to attributes,
holds object-level triggers and converts between rows and objects.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import Cascade, FetchMethod, TriggerEvent
from row_orm.core.exceptions import DuplicateColumnError, MappingError
from row_orm.core.triggers import Triggers
from row_orm.mapping.attribute import bind_context, initial_values
from row_orm.mapping.column import ColumnMapping

if TYPE_CHECKING:
    from row_orm.mapping.registry import MappingRegistry
    from row_orm.persistence.manager import EntityManager
    from row_orm.relationship.base import ManyToMany, OneToMany, ToOne
    from row_orm.schema.entity import Entity


class EntityMapping:
    """Mapping between a class and a database entity.

    Args:
        mapped_class: The domain class.
        entity_name: Name of the entity (table) rows come from.
        registry: Registry the mapping belongs to; required to declare
            relationships.
    """

    def __init__(
        self,
        mapped_class: type,
        entity_name: str,
        registry: MappingRegistry | None = None,
    ) -> None:
        self.mapped_class = mapped_class
        self.entity_name = entity_name
        self.registry = registry
        self.triggers = Triggers()
        self._columns: dict[str, ColumnMapping] = {}

    def __repr__(self) -> str:
        return (
            f"<EntityMapping class={self.class_name} entity={self.entity_name} "
            f"columns=[{', '.join(self._columns)}]>"
        )

    @property
    def class_name(self) -> str:
        return self.mapped_class.__name__

    @property
    def columns(self) -> Mapping[str, ColumnMapping]:
        return MappingProxyType(self._columns)

    # --- Columns ---

    def add_column(self, column_name: str, attribute_name: str | None = None) -> ColumnMapping:
        """Map *column_name* to *attribute_name* (defaults to the column name).

        Raises:
            DuplicateColumnError: If the column or the attribute's storage slot
                is already mapped.
            UnknownAttributeError: If the class does not declare the attribute.
        """
        if column_name in self._columns:
            raise DuplicateColumnError(self.class_name, column_name)
        column = ColumnMapping.for_attribute(
            self.mapped_class, column_name, attribute_name or column_name
        )
        for existing in self._columns.values():
            if existing.storage_key == column.storage_key:
                raise DuplicateColumnError(
                    self.class_name,
                    column_name,
                    f"storage slot '{column.storage_key}' already used by column "
                    f"'{existing.column_name}'",
                )
        self._columns[column_name] = column
        return column

    def add_columns(self, columns: Mapping[str, str]) -> None:
        """Map several ``column -> attribute`` pairs."""
        for column_name, attribute_name in columns.items():
            self.add_column(column_name, attribute_name)

    def column(self, column_name: str) -> ColumnMapping | None:
        return self._columns.get(column_name)

    # --- Triggers ---

    def trigger(self, event_name: str | TriggerEvent, callback: Callable[..., Any]) -> None:
        """Register an object-level trigger; it receives the object.

        Raises:
            InvalidTriggerNameError: If *event_name* is not a lifecycle event.
            InvalidCallbackError: If *callback* is not callable.
        """
        self.triggers.set(f"class {self.class_name}", event_name, callback)

    def run_event(self, event: TriggerEvent, obj: Any) -> None:
        self.triggers.run(event, obj)

    # --- Relationships ---

    def _relationships_registry(self) -> Any:
        if self.registry is None:
            raise MappingError(
                f"Mapping for {self.class_name} is not part of a registry, "
                "cannot declare relationships"
            )
        return self.registry.relationships

    def to_one(
        self,
        name: str,
        attribute: str,
        *,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
    ) -> ToOne:
        """Declare a to-one relationship over the entity relationship *name*."""
        from row_orm.relationship.base import ToOne

        return ToOne.register(
            self._relationships_registry(),
            self.mapped_class,
            name,
            attribute,
            fetch_method=fetch_method,
            cascade=cascade,
        )

    def one_to_many(
        self,
        name: str,
        attribute: str,
        *,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
        index_by: str | None = None,
    ) -> OneToMany:
        """Declare a one-to-many relationship over the entity relationship *name*."""
        from row_orm.relationship.base import OneToMany

        return OneToMany.register(
            self._relationships_registry(),
            self.mapped_class,
            name,
            attribute,
            fetch_method=fetch_method,
            cascade=cascade,
            index_by=index_by,
        )

    def many_to_many(
        self,
        name: str,
        attribute: str,
        *,
        join_entity_name: str,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
        index_by: str | None = None,
    ) -> ManyToMany:
        """Declare a many-to-many relationship mediated by *join_entity_name*."""
        from row_orm.relationship.base import ManyToMany

        return ManyToMany.register(
            self._relationships_registry(),
            self.mapped_class,
            name,
            attribute,
            fetch_method=fetch_method,
            cascade=cascade,
            index_by=index_by,
            join_entity_name=join_entity_name,
        )

    # --- Rows to objects ---

    def deserialize(self, row: Mapping[str, Any], manager: EntityManager) -> Any:
        """Materialize an object from a row.

        The object is allocated without calling ``__init__``; columns missing
        from *row* keep their defaults. Eager relationships are resolved before
        ``on_fetch`` fires, inside a begin/complete operation window.
        """
        obj = self.mapped_class.__new__(self.mapped_class)
        obj.__dict__.update(initial_values(self.mapped_class))
        for column_name, column in self._columns.items():
            if column_name in row:
                column.store(obj, row[column_name])
        bind_context(obj, manager)
        manager.begin_operation(self.entity_name, obj)
        try:
            self.deserialize_eager_relationships(obj, manager)
        finally:
            manager.complete_operation(self.entity_name)
        self.run_event(TriggerEvent.ON_FETCH, obj)
        return obj

    def deserialize_eager_relationships(self, obj: Any, manager: EntityManager) -> None:
        for relationship in manager.registry.relationships.eager_fetch_relationships(
            self.mapped_class
        ):
            relationship.deserialize_attribute(obj, manager, self)

    def deserialize_lazy_relationships(self, obj: Any, manager: EntityManager) -> None:
        """Force every lazy relationship of *obj* to load."""
        for relationship in manager.registry.relationships.lazy_fetch_relationships(
            self.mapped_class
        ):
            getattr(obj, relationship.attribute.name)

    # --- Objects to rows ---

    def serialize(self, obj: Any) -> dict[str, Any]:
        """Return the column values of every mapped column."""
        return {name: column.get_value(obj) for name, column in self._columns.items()}

    def column_values(self, obj: Any, columns: Iterable[str]) -> dict[str, Any]:
        """Return the values of the given mapped columns; unmapped columns are skipped."""
        result = {}
        for column_name in columns:
            column = self._columns.get(column_name)
            if column is not None:
                result[column_name] = column.get_value(obj)
        return result

    def primary_key_values(self, obj: Any, entity: Entity) -> dict[str, Any]:
        return self.column_values(obj, entity.primary_key)

    def unique_values(self, obj: Any, entity: Entity) -> dict[str, Any]:
        """Return primary key and unique column values of *obj*."""
        return self.column_values(obj, [*entity.primary_key, *entity.unique_columns])

    def attribute_to_column(self, attribute_name: str) -> str:
        """Return the column mapped to *attribute_name*, or the name itself."""
        return self.attribute_to_column_map().get(attribute_name, attribute_name)

    def attribute_to_column_map(self) -> dict[str, str]:
        return {column.attribute_name: name for name, column in self._columns.items()}

    def map_attributes_to_column_values(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Rekey an attribute-name mapping by column name."""
        attribute_map = self.attribute_to_column_map()
        return {attribute_map.get(k, k): v for k, v in attributes.items()}

    def update_object(
        self,
        obj: Any,
        column_values: Mapping[str, Any],
        columns: Iterable[str] | None = None,
    ) -> None:
        """Copy *column_values* onto the mapped attributes of *obj*."""
        for column_name in columns if columns is not None else column_values:
            column = self._columns.get(column_name)
            if column is None or column_name not in column_values:
                continue
            column.set_value(obj, column_values[column_name])
