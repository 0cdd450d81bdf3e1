"""Class to entity-mapping catalog.

A MappingRegistry is an explicit object, not ambient state: tests and
applications construct their own and hand it to the EntityManager.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from row_orm.core.exceptions import DuplicateMappingError, UnmappedClassError
from row_orm.mapping.orm import EntityMapping
from row_orm.relationship.registry import RelationshipRegistry

logger = logging.getLogger(__name__)


class MappingRegistry:
    """Holds exactly one EntityMapping per mapped class, plus its relationships."""

    def __init__(self) -> None:
        self._mappings: dict[type, EntityMapping] = {}
        self.relationships = RelationshipRegistry()

    def __contains__(self, cls: object) -> bool:
        return cls in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self) -> Iterator[EntityMapping]:
        return iter(self._mappings.values())

    def entity(
        self,
        entity_name: str,
        mapped_class: type,
        columns: Mapping[str, str] | None = None,
    ) -> EntityMapping:
        """Map *mapped_class* to *entity_name*.

        Args:
            entity_name: Entity (table) name.
            mapped_class: Class to map.
            columns: Optional ``column -> attribute`` pairs to add at once.

        Raises:
            DuplicateMappingError: If the class is already mapped to another entity.
        """
        existing = self._mappings.get(mapped_class)
        if existing is not None:
            if existing.entity_name != entity_name:
                raise DuplicateMappingError(
                    mapped_class.__name__, entity_name, existing.entity_name
                )
            mapping = existing
        else:
            mapping = EntityMapping(mapped_class, entity_name, self)
            self._mappings[mapped_class] = mapping
            logger.debug("Mapped class %s to entity '%s'", mapped_class.__name__, entity_name)
        if columns:
            mapping.add_columns(columns)
        return mapping

    def mapping_for(self, obj_or_class: Any) -> EntityMapping | None:
        """Return the mapping of a class or instance, walking base classes."""
        cls = obj_or_class if isinstance(obj_or_class, type) else type(obj_or_class)
        for klass in cls.__mro__:
            mapping = self._mappings.get(klass)
            if mapping is not None:
                return mapping
        return None

    def require(self, obj_or_class: Any) -> EntityMapping:
        """Like mapping_for, raising UnmappedClassError when there is none."""
        mapping = self.mapping_for(obj_or_class)
        if mapping is None:
            cls = obj_or_class if isinstance(obj_or_class, type) else type(obj_or_class)
            raise UnmappedClassError(cls.__name__)
        return mapping

    def resolve_class(self, reference: type | str) -> type:
        """Resolve a class or a mapped class name to the class.

        Raises:
            UnmappedClassError: If no mapped class has that name.
        """
        if isinstance(reference, type):
            return reference
        for cls in self._mappings:
            names = (cls.__name__, cls.__qualname__, f"{cls.__module__}.{cls.__qualname__}")
            if reference in names:
                return cls
        raise UnmappedClassError(reference)
