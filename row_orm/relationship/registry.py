"""Relationship catalog, indexed per owner class by attribute name."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from row_orm.core.enums import FetchMethod, Operation
from row_orm.core.exceptions import UnknownRelationshipError

if TYPE_CHECKING:
    from row_orm.relationship.base import Relationship

logger = logging.getLogger(__name__)


class RelationshipRegistry:
    """Relationships of every mapped class.

    Filled while mappings are defined, read-only afterwards. Lookups follow
    the owner's MRO so subclasses see the relationships of their bases.
    """

    def __init__(self) -> None:
        self._relationships: dict[type, dict[str, Relationship]] = {}

    def add_relationship(self, owner_class: type, relationship: Relationship) -> None:
        """Index *relationship* under its attribute name; the last registration wins."""
        per_class = self._relationships.setdefault(owner_class, {})
        attribute_name = relationship.attribute_name
        if attribute_name in per_class:
            logger.warning(
                "Relationship %s.%s redefined: %r replaces %r",
                owner_class.__name__,
                attribute_name,
                relationship,
                per_class[attribute_name],
            )
        per_class[attribute_name] = relationship

    def relationships(self, owner_class: type) -> list[Relationship]:
        """All relationships of *owner_class*, base class ones first."""
        merged: dict[str, Relationship] = {}
        for klass in reversed(owner_class.__mro__):
            merged.update(self._relationships.get(klass, {}))
        return list(merged.values())

    def find(self, owner_class: type, attribute_name: str) -> Relationship | None:
        for klass in owner_class.__mro__:
            relationship = self._relationships.get(klass, {}).get(attribute_name)
            if relationship is not None:
                return relationship
        return None

    def relationship(self, owner_class: type, attribute_name: str) -> Relationship:
        """Return the relationship on *attribute_name*.

        Raises:
            UnknownRelationshipError: If the class has no such relationship.
        """
        relationship = self.find(owner_class, attribute_name)
        if relationship is None:
            raise UnknownRelationshipError(f"class {owner_class.__name__}", attribute_name)
        return relationship

    def relationships_for(
        self,
        owner_class: type,
        operation: Operation | None = None,
        to_one: bool | None = None,
    ) -> list[Relationship]:
        """Filter the relationships of *owner_class*.

        Args:
            owner_class: Owner class; unmapped classes yield an empty list.
            operation: Keep only relationships cascading this operation.
            to_one: True for to-one only, False for to-many only, None for both.
        """
        return [
            relationship
            for relationship in self.relationships(owner_class)
            if (operation is None or relationship.applies_to(operation))
            and (to_one is None or relationship.is_to_one == to_one)
        ]

    def eager_fetch_relationships(self, owner_class: type) -> list[Relationship]:
        return [
            r for r in self.relationships(owner_class) if r.fetch_method is FetchMethod.EAGER
        ]

    def lazy_fetch_relationships(self, owner_class: type) -> list[Relationship]:
        return [
            r for r in self.relationships(owner_class) if r.fetch_method is FetchMethod.LAZY
        ]
