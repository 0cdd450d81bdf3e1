"""Relationship variants between mapped classes.

A relationship binds an attribute of the owner class to an SQL relationship
of the owner's entity (looked up by ``name``). ToOne holds a single object,
OneToMany and ManyToMany hold collections.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import Cascade, FetchMethod, Operation
from row_orm.core.exceptions import MissingAssociatedClassError, UnknownAttributeError
from row_orm.mapping.attribute import Attribute, find_attribute
from row_orm.relationship.lazy import LAZY_LOADER

if TYPE_CHECKING:
    from row_orm.mapping.orm import EntityMapping
    from row_orm.mapping.registry import MappingRegistry
    from row_orm.persistence.manager import EntityManager
    from row_orm.relationship.registry import RelationshipRegistry
    from row_orm.schema.entity import Entity


class Relationship(ABC):
    """Base relationship.

    Args:
        name: Name of the SQL relationship on the owner's entity.
        attribute: Owner attribute holding the related object(s).
        owner_class: Class declaring the attribute.
        fetch_method: LAZY (on first read) or EAGER (with the owner).
        cascade: Write operations propagated to the related rows.
    """

    is_to_one = False

    def __init__(
        self,
        name: str,
        attribute: Attribute,
        owner_class: type,
        *,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
    ) -> None:
        self.name = name
        self.attribute = attribute
        self.owner_class = owner_class
        self.fetch_method = fetch_method
        self.cascade = cascade

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.owner_class.__name__}.{self.attribute_name} "
            f"name={self.name} fetch={self.fetch_method.value} cascade={self.cascade.value}>"
        )

    @classmethod
    def register(
        cls,
        registry: RelationshipRegistry,
        owner_class: type,
        name: str,
        attribute: str,
        *,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
        **options: Any,
    ) -> Relationship:
        """Create a relationship and add it to *registry*.

        The deferred-read hook is installed on the attribute; it only fetches
        when the relationship of the reading object's context is LAZY.

        Raises:
            UnknownAttributeError: If *attribute* is not an Attribute of the class.
            MissingAssociatedClassError: If the attribute declares no associated class.
        """
        descriptor = find_attribute(owner_class, attribute)
        if descriptor is None:
            raise UnknownAttributeError(owner_class.__name__, attribute)
        if descriptor.associated_class is None:
            raise MissingAssociatedClassError(owner_class.__name__, attribute)
        relationship = cls(
            name,
            descriptor,
            owner_class,
            fetch_method=fetch_method,
            cascade=cascade,
            **options,
        )
        registry.add_relationship(owner_class, relationship)
        # shared by every registry mapping the class; on_read checks the fetch method
        descriptor.interceptor = LAZY_LOADER
        return relationship

    @property
    def attribute_name(self) -> str:
        return self.attribute.name or ""

    @property
    def is_eager(self) -> bool:
        return self.fetch_method is FetchMethod.EAGER

    def applies_to(self, operation: Operation) -> bool:
        """Return True if writes of *operation* cascade across this relationship."""
        return self.cascade.applies_to(operation)

    def target_class(self, registry: MappingRegistry) -> type:
        return registry.resolve_class(self.attribute.associated_class)  # type: ignore[arg-type]

    def values(self, owner: Any) -> list[Any]:
        """Return the related objects currently stored on *owner* as a list."""
        if not self.is_assigned(owner):
            return []
        value = self.attribute.get_value(owner)
        if value is None:
            return []
        if isinstance(value, dict):
            return list(value.values())
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]

    def is_assigned(self, owner: Any) -> bool:
        """Return True if *owner* holds a value for the attribute that was assigned or loaded.

        A collection materialized by a plain read counts only once something
        was added to it.
        """
        if self.attribute.is_assigned(owner):
            return True
        return bool(owner.__dict__.get(self.attribute.storage_key))

    def deserialize_attribute(
        self,
        owner: Any,
        manager: EntityManager,
        owner_mapping: EntityMapping,
    ) -> Any:
        """Fetch the related object(s) and store them on *owner*."""
        value = self.fetch(owner, manager, owner_mapping)
        self.attribute.set_value(owner, value)
        return value

    @abstractmethod
    def fetch(self, owner: Any, manager: EntityManager, owner_mapping: EntityMapping) -> Any:
        """Load the related object(s) of *owner* from the database."""

    def _owner_key(
        self,
        owner: Any,
        manager: EntityManager,
        owner_mapping: EntityMapping,
    ) -> tuple[Entity, dict[str, Any] | None]:
        entity = manager.entity(owner_mapping.entity_name)
        key = entity.primary_key_values(owner_mapping.unique_values(owner, entity))
        return entity, key


class ToOne(Relationship):
    """Owner references a single target row through its own join columns."""

    is_to_one = True

    def fetch(self, owner: Any, manager: EntityManager, owner_mapping: EntityMapping) -> Any:
        entity, key = self._owner_key(owner, manager, owner_mapping)
        if not key:
            return None
        rows = entity.relationship_query(
            self.name, None, self.target_class(manager.registry), **key
        )
        return rows[0] if rows else None


class _ToMany(Relationship):
    def __init__(
        self,
        name: str,
        attribute: Attribute,
        owner_class: type,
        *,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
        index_by: str | None = None,
    ) -> None:
        super().__init__(
            name, attribute, owner_class, fetch_method=fetch_method, cascade=cascade
        )
        self.index_by = index_by

    def _collection(self, items: list[Any]) -> list[Any] | dict[Any, Any]:
        if self.index_by is None:
            return items
        return {getattr(item, self.index_by): item for item in items}


class OneToMany(_ToMany):
    """Target rows reference the owner's primary key through their join columns."""

    def fetch(self, owner: Any, manager: EntityManager, owner_mapping: EntityMapping) -> Any:
        entity, key = self._owner_key(owner, manager, owner_mapping)
        if not key:
            return self._collection([])
        items = entity.relationship_query(
            self.name, None, self.target_class(manager.registry), **key
        )
        return self._collection(items)


class ManyToMany(_ToMany):
    """Owner and target rows linked through rows of a join entity.

    The owner's entity has a to-many relationship named *join_entity_name*; the
    join entity has a to-one relationship, named like this relationship, to the
    target entity.
    """

    def __init__(
        self,
        name: str,
        attribute: Attribute,
        owner_class: type,
        *,
        join_entity_name: str,
        fetch_method: FetchMethod = FetchMethod.LAZY,
        cascade: Cascade = Cascade.NONE,
        index_by: str | None = None,
    ) -> None:
        super().__init__(
            name,
            attribute,
            owner_class,
            fetch_method=fetch_method,
            cascade=cascade,
            index_by=index_by,
        )
        self.join_entity_name = join_entity_name

    def fetch(self, owner: Any, manager: EntityManager, owner_mapping: EntityMapping) -> Any:
        entity, key = self._owner_key(owner, manager, owner_mapping)
        if not key:
            return self._collection([])
        owner_to_join = entity.relationship(self.join_entity_name)
        join_entity = entity.target(owner_to_join)
        condition = dict(
            zip(owner_to_join.join_columns, entity.primary_key_signature(key), strict=True)
        )
        items = join_entity.relationship_query(
            self.name, None, self.target_class(manager.registry), **condition
        )
        return self._collection(items)
