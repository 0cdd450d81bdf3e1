"""Persistence context.

The EntityManager owns the entities of one database, the value generators
they reference, the deserialization window used to break eager cycles and
the lazy-fetch state of every object it loaded. Writes of mapped objects go
through its CascadeEngine.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Callable, Mapping
from typing import Any

from row_orm.core.connection import Connection, ConnectionConfig
from row_orm.core.enums import LazyState
from row_orm.core.exceptions import PersistenceError, UnknownEntityError
from row_orm.core.transaction import TransactionManager
from row_orm.mapping.attribute import persistence_context, unbind_context
from row_orm.mapping.orm import EntityMapping
from row_orm.mapping.registry import MappingRegistry
from row_orm.persistence.cascade import CascadeEngine
from row_orm.schema.entity import Entity

logger = logging.getLogger(__name__)


class EntityManager:
    """Persistence context for one connection and one mapping registry.

    Args:
        connection: Connection every entity executes its statements on.
        registry: Class to mapping catalog.
        name: Label used in log messages.
    """

    def __init__(
        self,
        connection: Connection,
        registry: MappingRegistry,
        name: str = "default",
    ) -> None:
        self.connection = connection
        self.registry = registry
        self.name = name
        self._entities: dict[str, Entity] = {}
        self._value_generators: dict[str, Any] = {}
        self._operations: list[tuple[str, Any]] = []
        # id(obj) -> (weak ref to obj, {attribute: state}); dropped when obj is collected
        self._lazy_states: dict[int, tuple[weakref.ref, dict[str, LazyState]]] = {}
        self.cascade = CascadeEngine(self)

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        registry: MappingRegistry,
        name: str = "default",
    ) -> EntityManager:
        """Create an EntityManager from a ConnectionConfig and MappingRegistry."""
        return cls(Connection(config), registry, name)

    def __repr__(self) -> str:
        return f"<EntityManager name={self.name} entities=[{', '.join(self._entities)}]>"

    # --- Entities and generators ---

    def add_entities(self, *entities: Entity) -> None:
        for entity in entities:
            entity.entity_manager = self
            self._entities[entity.name] = entity

    def entity(self, name: str) -> Entity:
        """Return the entity called *name*.

        Raises:
            UnknownEntityError: If no such entity was added.
        """
        entity = self._entities.get(name)
        if entity is None:
            raise UnknownEntityError(name)
        return entity

    @property
    def entities(self) -> Mapping[str, Entity]:
        return dict(self._entities)

    def add_value_generator(self, name: str, generator: Any) -> None:
        self._value_generators[name] = generator

    def value_generator(self, name: str) -> Any:
        """Return the generator registered as *name*.

        Raises:
            PersistenceError: If nothing is registered under that name.
        """
        generator = self._value_generators.get(name)
        if generator is None:
            raise PersistenceError(f"Value generator '{name}' is not registered with {self!r}")
        return generator

    # --- Deserialization window ---

    def find_entity_mapping(self, obj_or_class: Any) -> EntityMapping | None:
        return self.registry.mapping_for(obj_or_class)

    def begin_operation(self, entity_name: str, obj: Any) -> None:
        self._operations.append((entity_name, obj))

    def complete_operation(self, entity_name: str) -> None:
        if not self._operations or self._operations[-1][0] != entity_name:
            raise PersistenceError(
                f"Operation on '{entity_name}' completed out of order in {self!r}"
            )
        self._operations.pop()

    def in_flight(self, entity_name: str, row: Mapping[str, Any]) -> Any:
        """Return the object of *entity_name* for *row* being deserialized, or None."""
        entity = self._entities.get(entity_name)
        if entity is None or not entity.primary_key:
            return None
        if not entity.has_primary_key_values(row):
            return None
        signature = entity.primary_key_signature(row)
        for name, obj in reversed(self._operations):
            if name != entity_name:
                continue
            mapping = self.registry.mapping_for(obj)
            if mapping is None:
                continue
            values = mapping.primary_key_values(obj, entity)
            if entity.has_primary_key_values(values) and (
                entity.primary_key_signature(values) == signature
            ):
                return obj
        return None

    def _deserialize_object(self, cls: type, row: Mapping[str, Any]) -> Any:
        mapping = self.registry.require(cls)
        existing = self.in_flight(mapping.entity_name, row)
        if existing is not None:
            return existing
        return mapping.deserialize(row, self)

    # --- Lazy fetch state ---

    def lazy_state(self, obj: Any, attribute_name: str) -> LazyState:
        entry = self._lazy_states.get(id(obj))
        if entry is None or entry[0]() is not obj:
            return LazyState.UNRESOLVED
        return entry[1].get(attribute_name, LazyState.UNRESOLVED)

    def set_lazy_state(self, obj: Any, attribute_name: str, state: LazyState) -> None:
        key = id(obj)
        entry = self._lazy_states.get(key)
        if entry is None or entry[0]() is not obj:
            entry = (weakref.ref(obj, self._forget_lazy_state(key)), {})
            self._lazy_states[key] = entry
        entry[1][attribute_name] = state

    def _forget_lazy_state(self, key: int) -> Callable[[weakref.ref], None]:
        def forget(ref: weakref.ref) -> None:
            entry = self._lazy_states.get(key)
            if entry is not None and entry[0] is ref:
                del self._lazy_states[key]

        return forget

    def has_lazy_fetch_flag(self, obj: Any, attribute_name: str) -> bool:
        return self.lazy_state(obj, attribute_name) is LazyState.RESOLVED

    def add_lazy_fetch_flag(self, obj: Any, attribute_name: str) -> None:
        self.set_lazy_state(obj, attribute_name, LazyState.RESOLVED)

    def detach(self, obj: Any) -> None:
        """Forget *obj*: drop its lazy state and unbind it from this context."""
        self._lazy_states.pop(id(obj), None)
        if persistence_context(obj) is self:
            unbind_context(obj)

    def clear(self) -> None:
        """Detach every object this context tracks lazy state for."""
        logger.debug("Clearing %d tracked objects from %r", len(self._lazy_states), self)
        for ref, _ in list(self._lazy_states.values()):
            obj = ref()
            if obj is not None and persistence_context(obj) is self:
                unbind_context(obj)
        self._lazy_states.clear()

    # --- Queries ---

    def _condition_converter(
        self,
        cls: type | None,
        condition: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Rekey a condition given in attribute names by column name."""
        if cls is None:
            return dict(condition)
        mapping = self.registry.mapping_for(cls)
        if mapping is None:
            return dict(condition)
        return mapping.map_attributes_to_column_values(condition)

    def find(self, cls: type, /, **attributes: Any) -> list[Any]:
        """Return the objects of *cls* matching attribute values."""
        mapping = self.registry.require(cls)
        return self.entity(mapping.entity_name).find(cls, **attributes)

    def find_one(self, cls: type, /, **attributes: Any) -> Any:
        """Like find, returning the first match or None."""
        results = self.find(cls, **attributes)
        return results[0] if results else None

    def lock(self, cls: type, /, **attributes: Any) -> list[Any]:
        """Like find, locking the matched rows until the transaction ends."""
        mapping = self.registry.require(cls)
        return self.entity(mapping.entity_name).lock(cls, **attributes)

    # --- Writes ---

    def insert(self, obj: Any) -> Any:
        return self.cascade.insert(obj)

    def update(self, obj: Any, *attribute_names: str) -> Any:
        return self.cascade.update(obj, *attribute_names)

    def delete(self, obj: Any) -> None:
        self.cascade.delete(obj)

    def merge(self, obj: Any) -> Any:
        return self.cascade.merge(obj)

    def transaction(self) -> TransactionManager:
        """Group several operations into one transaction."""
        return self.connection.transaction()
